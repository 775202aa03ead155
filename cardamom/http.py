import logging

import requests
import requests.auth

from . import __version__
from . import exceptions

logger = logging.getLogger(__name__)
USERAGENT = f"cardamom/{__version__}"


def prepare_auth(username, password):
    if username:
        return requests.auth.HTTPBasicAuth(username, password or "")
    elif password:
        raise exceptions.UserError(
            "You need to specify a username for basic authentication."
        )

    return None


def _status_error(response):
    # The body usually explains the failure better than the status line.
    reason = response.text.strip() or f"{response.status_code} {response.reason}"
    if response.status_code == 412:
        cls = exceptions.HttpPreconditionFailed
    elif response.status_code in (404, 410):
        cls = exceptions.HttpNotFound
    else:
        cls = exceptions.HttpStatusError
    return cls(reason, status=response.status_code, reason=reason)


def request(
    method,
    url,
    session=None,
    latin1_fallback=True,
    raise_for_status=True,
    **kwargs,
):
    """
    Wrapper method for requests, to ease logging and mocking. Parameters should
    be the same as for ``requests.request``, except:

    :param session: A requests session object to use.
    :param latin1_fallback: RFC-2616 specifies the default Content-Type of
        text/* to be latin1, which is not always correct, but exactly what
        requests is doing. Setting this parameter to False will use charset
        autodetection (usually ending up with utf8) instead of plainly falling
        back to this silly default. See
        https://github.com/kennethreitz/requests/issues/2042
    :param raise_for_status: Raise :py:class:`exceptions.HttpStatusError` (or
        one of its subclasses) for non-2xx responses.
    :raises exceptions.TransportError: if no response could be obtained.
    """

    if session is None:
        session = requests.Session()

    session.hooks = {"response": _fix_redirects}

    logger.debug("=" * 20)
    logger.debug(f"{method} {url}")
    logger.debug(kwargs.get("headers", {}))
    logger.debug(kwargs.get("data", None))
    logger.debug("Sending request...")

    assert isinstance(kwargs.get("data", b""), bytes)

    try:
        r = session.request(method, url, **kwargs)
    except requests.RequestException as e:
        raise exceptions.TransportError(f"cannot send {method} request to {url}") from e

    # See https://github.com/kennethreitz/requests/issues/2042
    content_type = r.headers.get("Content-Type", "")
    if (
        not latin1_fallback
        and "charset" not in content_type
        and content_type.startswith("text/")
    ):
        logger.debug("Removing latin1 fallback")
        r.encoding = None

    logger.debug(r.status_code)
    logger.debug(r.headers)
    logger.debug(r.content)

    if raise_for_status and not 200 <= r.status_code < 300:
        raise _status_error(r)

    return r


def _fix_redirects(r, *args, **kwargs):
    """
    Requests discards of the body content when it is following a redirect that
    is not a 307 or 308. We never want that to happen.

    See:
    https://github.com/kennethreitz/requests/issues/3915
    """
    if r.is_redirect:
        logger.debug("Rewriting status code from %s to 307", r.status_code)
        r.status_code = 307
