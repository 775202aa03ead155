from textwrap import dedent

import pytest
from click.testing import CliRunner

import cardamom.cli as cli


class _CustomRunner:
    def __init__(self, tmpdir):
        self.tmpdir = tmpdir
        self.cfg = tmpdir.join("config")
        self.runner = CliRunner()

    def invoke(self, args, env=None, **kwargs):
        env = env or {}
        env.setdefault("CARDAMOM_CONFIG", str(self.cfg))
        return self.runner.invoke(cli.app, args, env=env, **kwargs)

    def write_with_local(self, data=""):
        """Write a config with a default local account ``home``, followed by
        ``data``."""
        self.tmpdir.ensure("contacts", dir=True)
        self.cfg.write(
            dedent(
                """
        [account home]
        type = "local"
        default = true
        path = "{}/contacts/"
        """
            ).format(str(self.tmpdir))
        )
        self.cfg.write(dedent(data), mode="a")


@pytest.fixture
def runner(tmpdir):
    return _CustomRunner(tmpdir)
