"""
Contains exception classes used by cardamom. Operations wrap lower-level
errors with a description of what they were trying to do, using ``raise ...
from``; :py:func:`format_error_chain` renders the whole chain.
"""


class Error(Exception):
    """Baseclass for all errors."""

    def __init__(self, *args, **kwargs):
        for key, value in kwargs.items():
            if getattr(self, key, object()) is not None:  # pragma: no cover
                raise TypeError(f"Invalid argument: {key}")
            setattr(self, key, value)

        super().__init__(*args)


class UserError(Error, ValueError):
    """Wrapper exception to be used to signify the traceback should not be
    shown to the user."""

    problems = None

    def __str__(self):
        msg = Error.__str__(self)
        for problem in self.problems or ():
            msg += f"\n  - {problem}"

        return msg


class ConfigNotFound(UserError):
    """No configuration file exists at any of the searched locations."""

    searched = None


class ConfigParseError(UserError):
    """The configuration file is not valid."""


class AccountNotFound(UserError):
    """No account matches the requested name."""

    account_name = None


class CredentialCommandFailed(UserError):
    """The command retrieving a credential could not be run or failed."""


class TransportError(Error):
    """The request could not be sent or its response could not be read."""


class HttpStatusError(Error):
    """
    The server answered with a non-2xx status.

    :param status: The HTTP status code.
    :param reason: The response body, or the status line if it was empty.
    """

    status = None
    reason = None


class PreconditionFailed(Error):
    """
    The card was changed by somebody else since it was read: the etag given
    does not match anymore, or a card with that id already exists.
    """


class NotFoundError(PreconditionFailed):
    """Card not found"""


class HttpPreconditionFailed(HttpStatusError, PreconditionFailed):
    """The server answered ``412 Precondition Failed``."""


class HttpNotFound(HttpStatusError, NotFoundError):
    """The server answered ``404 Not Found`` or ``410 Gone``."""


class InvalidResponse(Error, ValueError):
    """The backend returned an invalid result."""


class XmlDecodeError(InvalidResponse):
    """A multistatus payload could not be decoded."""


class MissingRequiredHeader(InvalidResponse):
    """A response lacks a header the operation depends on."""

    header = None


class DateParseError(InvalidResponse):
    """A last-modification date is not a valid RFC 2822 date."""


class DiscoveryError(Error):
    """The addressbook collection could not be discovered."""


class InvalidCardId(Error, ValueError):
    """A card id that can't name a file in the card directory."""


class OperationError(Error):
    """A repository operation failed. The cause is chained."""


def format_error_chain(e):
    """Join the messages of ``e`` and its causes, outermost first."""
    messages = []
    while e is not None:
        msg = str(e)
        if msg and msg not in messages:
            messages.append(msg)
        e = e.__cause__
    return ": ".join(messages)
