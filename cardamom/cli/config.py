import json
import logging
import os
import string
from configparser import Error as ConfigParserError
from configparser import RawConfigParser
from itertools import chain

from .. import PROJECT_HOME
from .. import exceptions
from ..utils import expand_path
from .passwd import run_shell_command

logger = logging.getLogger(__name__)

SECTION_NAME_CHARS = frozenset(chain(string.ascii_letters, string.digits, "_"))

#: Account names meaning "the account marked as default".
DEFAULT_ACCOUNT_NAMES = frozenset(["", "default"])


class LocalAccount:
    """An account whose cards live in a local directory."""

    type = "local"

    def __init__(self, name, path):
        self.name = name
        self.path = path

    def __repr__(self):
        return f"<LocalAccount {self.name!r} path={self.path!r}>"


class RemoteAccount:
    """An account whose cards live on a CardDAV server.

    :param url: Base URL of the server.
    :param login: Username for authentication.
    :param passwd_cmd: Shell command printing the password.
    """

    type = "remote"

    def __init__(self, name, url, login, passwd_cmd):
        self.name = name
        self.url = url
        self.login = login
        self.passwd_cmd = passwd_cmd

    def passwd(self):
        """Run the password command and return its output, without trailing
        line terminators. Runs the command again on every call."""
        try:
            return run_shell_command(self.passwd_cmd)
        except exceptions.CredentialCommandFailed as e:
            raise exceptions.CredentialCommandFailed(
                f'cannot run passwd cmd of account "{self.name}"'
            ) from e

    def __repr__(self):
        # Never show the password command, it might contain the password.
        return f"<RemoteAccount {self.name!r} url={self.url!r} login={self.login!r}>"


#: Per account type: the class, its required options and its optional ones.
ACCOUNT_TYPES = {
    "local": (LocalAccount, frozenset(["path"]), frozenset(["default"])),
    "remote": (
        RemoteAccount,
        frozenset(["url", "login", "passwd-cmd"]),
        frozenset(["default"]),
    ),
}


def validate_section_name(name, section_type):
    invalid = set(name) - SECTION_NAME_CHARS
    if invalid:
        chars_display = "".join(sorted(SECTION_NAME_CHARS))
        raise exceptions.ConfigParseError(
            'The {}-section "{}" contains invalid characters. Only '
            "the following characters are allowed for account "
            "names:\n{}".format(section_type, name, chars_display)
        )


def _validate_account_options(name, options):
    account_type = options.get("type")
    try:
        _, required, optional = ACCOUNT_TYPES[account_type]
    except (KeyError, TypeError):
        raise exceptions.ConfigParseError(
            "Account {!r}: unknown type {}, expected one of: {}".format(
                name, json.dumps(account_type), ", ".join(sorted(ACCOUNT_TYPES))
            )
        )

    given = {key for key in options if key != "type"}
    missing = required - given
    invalid = given - required - optional
    problems = []

    if missing:
        problems.append(
            "{} account requires the parameters: {}".format(
                account_type, ", ".join(sorted(missing))
            )
        )

    if invalid:
        problems.append(
            "{} account doesn't take the parameters: {}".format(
                account_type, ", ".join(sorted(invalid))
            )
        )

    if not isinstance(options.get("default", False), bool):
        problems.append("default must be true or false")

    if problems:
        raise exceptions.ConfigParseError(
            "Invalid account {!r}. See the example config in the "
            "repository: {}".format(name, PROJECT_HOME),
            problems=problems,
        )


class _ConfigReader:
    def __init__(self, f):
        self._file = f
        self._parser = c = RawConfigParser()
        c.read_file(f)
        self._accounts = {}

    def _parse_section(self, section_type, name, options):
        validate_section_name(name, section_type)
        if name in self._accounts:
            raise ValueError(f'Name "{name}" already used.')

        if section_type == "account":
            _validate_account_options(name, options)
            self._accounts[name] = options
        else:
            raise ValueError("Unknown section type.")

    def parse(self):
        for section in self._parser.sections():
            if " " in section:
                section_type, name = section.split(" ", 1)
            else:
                section_type = name = section

            try:
                self._parse_section(
                    section_type,
                    name,
                    dict(_parse_options(self._parser.items(section), section=section)),
                )
            except ValueError as e:
                if isinstance(e, exceptions.UserError):
                    raise
                raise exceptions.ConfigParseError(f'Section "{section}": {str(e)}')

        return self._accounts


def _parse_options(items, section=None):
    for key, value in items:
        try:
            yield key, json.loads(value)
        except ValueError as e:
            raise ValueError(f'Section "{section}", option "{key}": {e}')


def config_paths(environ=None):
    """Yield the locations searched for the config file, in order."""
    if environ is None:
        environ = os.environ
    xdg_config_dir = environ.get("XDG_CONFIG_HOME")
    if xdg_config_dir:
        yield os.path.join(xdg_config_dir, "cardamom", "config")
    yield expand_path("~/.config/cardamom/config")
    yield expand_path("~/.cardamomrc")


class Config:
    def __init__(self, accounts):
        self.accounts = accounts

    @classmethod
    def from_fileobject(cls, f):
        reader = _ConfigReader(f)
        return cls(reader.parse())

    @classmethod
    def from_filename_or_environment(cls, fname=None):
        if fname is None:
            fname = os.environ.get("CARDAMOM_CONFIG", None)
        if fname is None:
            searched = list(config_paths())
            fname = next((p for p in searched if os.path.exists(p)), None)
            if fname is None:
                raise exceptions.ConfigNotFound(
                    "Cannot find a config file. Searched:",
                    problems=searched,
                    searched=searched,
                )
        fname = expand_path(fname)
        if not os.path.exists(fname):
            raise exceptions.ConfigNotFound(
                f"Config file {fname} does not exist.", searched=[fname]
            )

        logger.debug(f"Reading config from {fname}")
        try:
            with open(fname) as f:
                return cls.from_fileobject(f)
        except exceptions.ConfigParseError as e:
            raise exceptions.ConfigParseError(
                f"Error during reading config {fname}"
            ) from e
        except (OSError, ConfigParserError) as e:
            raise exceptions.ConfigParseError(
                f"Error during reading config {fname}: {e}"
            ) from e

    def _find_account(self, account_name):
        if account_name is not None:
            account_name = account_name.strip()

        if account_name is None or account_name in DEFAULT_ACCOUNT_NAMES:
            for name, options in self.accounts.items():
                if options.get("default", False):
                    return name, options
            raise exceptions.AccountNotFound(
                "cannot find default account", account_name="default"
            )

        try:
            return account_name, self.accounts[account_name]
        except KeyError:
            raise exceptions.AccountNotFound(
                f'cannot find account "{account_name}"',
                account_name=account_name,
            )

    def get_account(self, account_name=None):
        """
        Return the account called ``account_name``.

        ``None``, the empty string and ``"default"`` select the first account
        with ``default = true``.

        :raises exceptions.AccountNotFound: if no account matches.
        """
        name, options = self._find_account(account_name)
        logger.debug(f'Using account "{name}"')

        if options["type"] == "local":
            return LocalAccount(name, options["path"])
        elif options["type"] == "remote":
            return RemoteAccount(
                name, options["url"], options["login"], options["passwd-cmd"]
            )
        else:  # pragma: no cover
            raise AssertionError(options["type"])


#: Public API.
load_config = Config.from_filename_or_environment
