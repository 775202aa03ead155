import sys
import traceback

import click

from .. import BUGTRACKER_HOME
from .. import exceptions
from . import cli_logger
from .config import LocalAccount
from .config import RemoteAccount


def repository_from_account(account):
    """
    Create the repository holding the cards of ``account``.

    For a remote account this runs the password command and discovers the
    addressbook, so it may fail with any of the errors of
    :py:class:`cardamom.storage.dav.CardDAVRepository`.
    """
    if isinstance(account, LocalAccount):
        from ..storage.filesystem import FilesystemRepository

        return FilesystemRepository(account.path)
    elif isinstance(account, RemoteAccount):
        from ..storage.dav import CardDAVRepository

        return CardDAVRepository(
            account.url, username=account.login, password=account.passwd()
        )
    else:
        raise TypeError(f"Unknown account: {account!r}")


def _has_cause(e, cls):
    while e is not None:
        if isinstance(e, cls):
            return True
        e = e.__cause__
    return False


def handle_cli_error(e=None):
    """
    Print a useful error message for the current exception.

    This is supposed to catch all exceptions, and should never raise any
    exceptions itself.
    """

    try:
        if e is not None:
            raise e
        else:
            raise
    except exceptions.UserError as e:
        cli_logger.critical(exceptions.format_error_chain(e))
    except (click.Abort, KeyboardInterrupt):
        pass
    except exceptions.Error as e:
        msg = exceptions.format_error_chain(e)
        if _has_cause(e, exceptions.InvalidResponse):
            msg += (
                "\nThe server returned something cardamom doesn't understand. "
                "While this is most likely a serverside problem, the cardamom "
                "devs are generally interested in such bugs. Please report it "
                "in the issue tracker at {}".format(BUGTRACKER_HOME)
            )
        cli_logger.error(msg)
        cli_logger.debug("".join(traceback.format_tb(sys.exc_info()[2])))
    except Exception as e:
        tb = traceback.format_tb(sys.exc_info()[2])
        cli_logger.error(
            f"Unknown error occurred: {e}\nUse `-vdebug` to see the full traceback."
        )
        cli_logger.debug("".join(tb))
