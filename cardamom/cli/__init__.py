import functools
import logging
import sys

import click
import click_log

from .. import __version__

cli_logger = logging.getLogger(__name__)
click_log.basic_config("cardamom")


class AppContext:
    def __init__(self):
        self.config = None
        self.account_name = None
        self._repository = None

    @property
    def repository(self):
        """The repository of the selected account, created on first use."""
        if self._repository is None:
            from .utils import repository_from_account

            account = self.config.get_account(self.account_name)
            self._repository = repository_from_account(account)
        return self._repository


pass_context = click.make_pass_decorator(AppContext, ensure=True)


def catch_errors(f):
    @functools.wraps(f)
    def inner(*a, **kw):
        try:
            f(*a, **kw)
        except BaseException:
            from .utils import handle_cli_error

            handle_cli_error()
            sys.exit(1)

    return inner


class AliasedGroup(click.Group):
    """A group whose commands can also be called by their aliases."""

    aliases = {
        "c": "create",
        "r": "read",
        "u": "update",
        "up": "update",
        "d": "delete",
        "del": "delete",
    }

    def get_command(self, ctx, cmd_name):
        return super().get_command(ctx, self.aliases.get(cmd_name, cmd_name))


def _read_card_file(f):
    # Binary mode, so that the line endings of the vCard are kept.
    return f.read().decode("utf-8")


card_file_arg = click.argument("card_file", type=click.File("rb"), default="-")


@click.group(cls=AliasedGroup)
@click_log.simple_verbosity_option("cardamom")
@click.version_option(version=__version__)
@click.option("--config", "-c", metavar="FILE", help="Config file to use.")
@click.option(
    "--account",
    "-a",
    metavar="NAME",
    help="Account to use. Defaults to the account with `default = true`.",
)
@pass_context
@catch_errors
def app(ctx, config, account):
    """
    Manage contacts stored locally or on a CardDAV server
    """

    if not ctx.config:
        from .config import load_config

        ctx.config = load_config(config)
    ctx.account_name = account


main = app


@app.command()
@card_file_arg
@pass_context
@catch_errors
def create(ctx, card_file):
    """
    Create a card from a vCard file, or from stdin if no file is given.

    Prints the id and the etag of the new card.
    """
    from .tasks import create_card

    create_card(ctx.repository, _read_card_file(card_file))


@app.command()
@click.argument("id")
@pass_context
@catch_errors
def read(ctx, id):
    """
    Print the vCard of a card.
    """
    from .tasks import read_card

    read_card(ctx.repository, id)


@app.command()
@click.argument("id")
@card_file_arg
@pass_context
@catch_errors
def update(ctx, id, card_file):
    """
    Replace a card with a vCard file, or with stdin if no file is given.

    The update is refused if the card was changed by somebody else in the
    meantime. Prints the new etag.
    """
    from .tasks import update_card

    update_card(ctx.repository, id, _read_card_file(card_file))


@app.command()
@click.argument("id")
@pass_context
@catch_errors
def delete(ctx, id):
    """
    Delete a card.
    """
    from .tasks import delete_card

    delete_card(ctx.repository, id)


@app.command(name="list")
@pass_context
@catch_errors
def list_(ctx):
    """
    List all cards: id, last modification and name.
    """
    from .tasks import list_cards

    list_cards(ctx.repository)
