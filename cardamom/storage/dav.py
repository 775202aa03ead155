import email.utils
import logging
import urllib.parse as urlparse
import xml.etree.ElementTree as etree
from datetime import timezone
from typing import Callable
from typing import Generic
from typing import List
from typing import Optional
from typing import TypeVar
from xml.sax.saxutils import escape as xml_escape

import requests

from .. import exceptions
from .. import http
from ..card import Card
from ..http import USERAGENT
from ..http import prepare_auth
from .base import CardRepository
from .base import id_from_href

dav_logger = logging.getLogger(__name__)

CARDDAV_NAMESPACE = "urn:ietf:params:xml:ns:carddav"
VCARD_MIMETYPE = "text/vcard; charset=utf-8"

#: Username sent when the caller doesn't give one.
DEFAULT_USERNAME = "user"

P = TypeVar("P")


class Propstat(Generic[P]):
    """The properties of one ``<propstat>`` block, decoded into ``P``.

    ``prop`` is ``None`` if the block lacks the expected property."""

    def __init__(self, prop: Optional[P], status: Optional[str]):
        self.prop = prop
        self.status = status

    @property
    def ok(self):
        return self.status is not None and self.status.endswith("200 OK")


class Response(Generic[P]):
    def __init__(self, href: str, propstat: Propstat[P]):
        self.href = href
        self.propstat = propstat


class Multistatus(Generic[P]):
    def __init__(self, responses: List[Response[P]]):
        self.responses = responses

    def __iter__(self):
        return iter(self.responses)

    def __len__(self):
        return len(self.responses)


_BAD_XML_CHARS = (
    b"\x00\x01\x02\x03\x04\x05\x06\x07\x08\x0b\x0c\x0e\x0f"
    b"\x10\x11\x12\x13\x14\x15\x16\x17\x18\x19\x1a\x1b\x1c\x1d\x1e\x1f"
)


def _clean_body(content, bad_chars=_BAD_XML_CHARS):
    new_content = content.translate(None, bad_chars)
    if new_content != content:
        dav_logger.warning(
            "Your server incorrectly returned ASCII control characters in its "
            "XML. Cardamom ignores those, but this is a bug in your server."
        )
    return new_content


def _parse_xml(content):
    try:
        return etree.XML(_clean_body(content))
    except etree.ParseError as e:
        raise exceptions.XmlDecodeError(
            "Invalid XML encountered: {}\n"
            "Double-check the URL in your config.".format(e)
        )


def decode_multistatus(
    content: bytes, parse_prop: Callable[[etree.Element], Optional[P]]
) -> Multistatus[P]:
    """Decode a ``DAV:multistatus`` document.

    :param content: The raw response body.
    :param parse_prop: Called with each ``<prop>`` element, returns the
        decoded property set or ``None`` if the expected property is missing.
        Of several ``<propstat>`` blocks in one response, the first one with a
        decoded property set is kept, otherwise the first one.
    :raises exceptions.XmlDecodeError: if the body isn't a multistatus.
    """
    root = _parse_xml(content)
    if root.tag != "{DAV:}multistatus":
        raise exceptions.XmlDecodeError(f"Expected a multistatus, got {root.tag}.")

    responses = []
    for response in root.findall("{DAV:}response"):
        href = response.find("{DAV:}href")
        if href is None or not (href.text or "").strip():
            raise exceptions.XmlDecodeError("Missing href tag in response.")
        href = href.text.strip()

        propstats = []
        for propstat in response.findall("{DAV:}propstat"):
            prop = propstat.find("{DAV:}prop")
            status = getattr(propstat.find("{DAV:}status"), "text", None)
            propstats.append(
                Propstat(
                    parse_prop(prop) if prop is not None else None,
                    status.strip() if status else None,
                )
            )

        if not propstats:
            dav_logger.debug(f"Skipping {href!r}, properties are missing.")
            continue

        chosen = next((p for p in propstats if p.prop is not None), propstats[0])
        responses.append(Response(href, chosen))

    return Multistatus(responses)


def _href_prop(path):
    def parse(prop):
        return getattr(prop.find(path), "text", None) or None

    return parse


_current_user_principal = _href_prop("{DAV:}current-user-principal/{DAV:}href")
_addressbook_home_set = _href_prop(
    f"{{{CARDDAV_NAMESPACE}}}addressbook-home-set/{{DAV:}}href"
)


def _addressbook_resourcetype(prop):
    """``True`` if the resource is an addressbook, ``None`` without
    resourcetype."""
    resourcetype = prop.find("{DAV:}resourcetype")
    if resourcetype is None:
        return None
    return resourcetype.find(f"{{{CARDDAV_NAMESPACE}}}addressbook") is not None


class ListingProp:
    def __init__(self, is_collection, contenttype, etag):
        self.is_collection = is_collection
        self.contenttype = contenttype
        self.etag = etag


def _listing_prop(prop):
    return ListingProp(
        is_collection=prop.find("{DAV:}resourcetype/{DAV:}collection") is not None,
        contenttype=getattr(prop.find("{DAV:}getcontenttype"), "text", None),
        etag=getattr(prop.find("{DAV:}getetag"), "text", None),
    )


class AddressDataProp:
    def __init__(self, address_data, etag, last_modified):
        self.address_data = address_data
        self.etag = etag
        self.last_modified = last_modified


def _address_data_prop(prop):
    address_data = prop.find(f"{{{CARDDAV_NAMESPACE}}}address-data")
    if address_data is None:
        return None
    return AddressDataProp(
        address_data=address_data.text or "",
        etag=getattr(prop.find("{DAV:}getetag"), "text", None),
        last_modified=getattr(prop.find("{DAV:}getlastmodified"), "text", None),
    )


def _fuzzy_matches_mimetype(strict, weak):
    # different servers give different getcontenttypes:
    # "text/vcard", "text/x-vcard", "text/x-vcard; charset=utf-8",
    # "text/directory;profile=vCard", "text/directory",
    # "text/vcard; charset=utf-8"
    if strict is None or weak is None:
        return True

    mediatype, subtype = strict.split("/")
    if subtype in weak:
        return True
    return False


def _normalize_href(base, href):
    """Normalize the href to be a path only relative to hostname and schema."""
    orig_href = href
    if not href:
        raise ValueError(href)

    x = urlparse.urljoin(base, href)
    x = urlparse.urlsplit(x).path

    # We unquote and quote again, but want to make sure we
    # keep around the "@" character.
    x = urlparse.unquote(x)
    x = urlparse.quote(x, "/@")

    if orig_href == x:
        dav_logger.debug(f"Already normalized: {x!r}")
    else:
        dav_logger.debug(f"Normalized URL from {orig_href!r} to {x!r}")

    return x


def parse_date(value, id):
    """Parse an RFC 2822 date into an aware datetime in local time."""
    try:
        rv = email.utils.parsedate_to_datetime(value)
    except (TypeError, ValueError) as e:
        raise exceptions.DateParseError(
            f'cannot parse last modified date of card "{id}"'
        ) from e
    if rv.tzinfo is None:
        # "-0000" means UTC without further knowledge of the local zone.
        rv = rv.replace(tzinfo=timezone.utc)
    return rv.astimezone()


def _assert_multistatus_success(r):
    # Xandikos returns a multistatus on PUT.
    if not r.content:
        return
    try:
        root = _parse_xml(r.content)
    except exceptions.XmlDecodeError:
        return
    for status in root.findall(".//{DAV:}status"):
        parts = (status.text or "").strip().split()
        try:
            st = int(parts[1])
        except (ValueError, IndexError):
            continue
        if st < 200 or st >= 400:
            raise exceptions.HttpStatusError(
                f"Server error: {st}", status=st, reason=status.text.strip()
            )


class DAVSession:
    """A helper class to connect to DAV servers."""

    def __init__(
        self, url, username=DEFAULT_USERNAME, password="", useragent=USERAGENT
    ):
        self._settings = {}
        auth = prepare_auth(username, password)
        if auth:
            self._settings["auth"] = auth

        self.useragent = useragent
        self.url = url.rstrip("/")
        self._session = requests.Session()

    def request(self, method, url, **kwargs):
        more = dict(self._settings)
        more.update(kwargs)
        return http.request(method, url, session=self._session, **more)

    def get_default_headers(self):
        return {"User-Agent": self.useragent}


class CardDiscover:
    """
    Resolve the addressbook collection of a CardDAV server.

    Three PROPFIND requests are chained, each one starting at the URL found by
    the previous one:

    1. the principal URL (``current-user-principal``) of ``{host}/``,
    2. the addressbook home (``addressbook-home-set``) of the principal,
    3. the first member of the home that answers ``200 OK`` and is an
       addressbook.

    Servers that don't know a property, or don't send it, don't make
    discovery fail: the step keeps the URL of the previous one. Only
    transport failures and undecodable bodies are errors.
    """

    _principal_xml = b"""
    <D:propfind xmlns:D="DAV:">
        <D:prop>
            <D:current-user-principal />
        </D:prop>
    </D:propfind>
    """

    _homeset_xml = b"""
    <D:propfind xmlns:D="DAV:" xmlns:C="urn:ietf:params:xml:ns:carddav">
        <D:prop>
            <C:addressbook-home-set />
        </D:prop>
    </D:propfind>
    """

    def __init__(self, session: DAVSession):
        self.session = session

    def _propfind(self, url, what, parse_prop, data=None):
        headers = self.session.get_default_headers()
        kwargs = {}
        if data is not None:
            headers["Content-Type"] = "application/xml; charset=UTF-8"
            kwargs["data"] = data

        try:
            response = self.session.request(
                "PROPFIND", url, headers=headers, raise_for_status=False, **kwargs
            )
        except exceptions.TransportError as e:
            raise exceptions.TransportError(f"cannot send {what} request") from e

        try:
            rv = decode_multistatus(response.content, parse_prop)
        except exceptions.XmlDecodeError as e:
            if not 200 <= response.status_code < 300:
                # Error pages of e.g. a wrong password are no multistatus.
                status = f"{response.status_code} {response.reason}"
                raise exceptions.HttpStatusError(
                    f"cannot parse {what} response, the server answered {status}",
                    status=response.status_code,
                    reason=status,
                ) from None
            raise exceptions.XmlDecodeError(f"cannot parse {what} response") from e
        return rv, str(response.url or url)

    def find_principal(self, url):
        multistatus, base = self._propfind(
            url, "current user principal", _current_user_principal, self._principal_xml
        )
        for response in multistatus:
            if response.propstat.prop is not None:
                return urlparse.urljoin(base, response.propstat.prop)

        # This is for servers that don't support current-user-principal
        dav_logger.debug(f"No current-user-principal returned, re-using URL {url}")
        return url

    def find_home(self, url):
        multistatus, base = self._propfind(
            url, "addressbook home set", _addressbook_home_set, self._homeset_xml
        )
        for response in multistatus:
            if response.propstat.prop is not None:
                return urlparse.urljoin(base, response.propstat.prop)

        dav_logger.debug(f"No addressbook-home-set returned, re-using URL {url}")
        return url

    def find_addressbook(self, url):
        # No body: servers answer with all properties, resourcetype included.
        multistatus, base = self._propfind(
            url, "addressbook", _addressbook_resourcetype
        )
        for response in multistatus:
            if response.propstat.ok and response.propstat.prop:
                return urlparse.urljoin(base, response.href)

            dav_logger.debug(f"Skipping {response.href!r}, not an addressbook.")

        dav_logger.debug(f"No addressbook found, re-using URL {url}")
        return url

    def resolve(self):
        """Return the absolute URL of the addressbook collection."""
        url = self.session.url + "/"
        url = self.find_principal(url)
        url = self.find_home(url)
        return self.find_addressbook(url)


class CardDAVRepository(CardRepository):

    """
    Cards stored in the addressbook of a CardDAV server.

    The addressbook is discovered once, when the repository is created, see
    :py:class:`CardDiscover`. Every operation afterwards is a single request
    against ``{addressbook}{id}.vcf``.

    :param url: Base URL of the server, e.g. ``https://dav.example.com``.
    :param username: Username for basic authentication.
    :param password: Password for basic authentication.
    :raises exceptions.DiscoveryError: if the addressbook can't be discovered.
    """

    _repr_attributes = ["username", "url"]

    _list_xml = b"""<?xml version="1.0" encoding="utf-8" ?>
        <propfind xmlns="DAV:">
            <prop>
                <resourcetype/>
                <getcontenttype/>
                <getetag/>
            </prop>
        </propfind>
        """

    _multiget_template = """<?xml version="1.0" encoding="utf-8" ?>
        <C:addressbook-multiget xmlns="DAV:"
                xmlns:C="urn:ietf:params:xml:ns:carddav">
            <prop>
                <getetag/>
                <getlastmodified/>
                <C:address-data/>
            </prop>
            {hrefs}
        </C:addressbook-multiget>"""

    def __init__(
        self, url, username=DEFAULT_USERNAME, password="", useragent=USERAGENT
    ):
        self.username = username
        self.session = DAVSession(url, username, password, useragent)

        try:
            collection_url = CardDiscover(self.session).resolve()
        except exceptions.Error as e:
            raise exceptions.DiscoveryError(
                f"cannot find addressbook at {self.session.url}"
            ) from e

        if not collection_url.endswith("/"):
            collection_url += "/"
        dav_logger.debug(f"Using addressbook {collection_url}")
        self.url = collection_url

    def _get_url(self, id):
        return self.url + urlparse.quote(self._get_href(id), "@")

    def _put(self, card, etag):
        headers = self.session.get_default_headers()
        headers["Content-Type"] = VCARD_MIMETYPE
        if etag:
            headers["If-Match"] = etag

        response = self.session.request(
            "PUT",
            self._get_url(card.id),
            data=card.raw.encode("utf-8"),
            headers=headers,
        )
        _assert_multistatus_success(response)

        # The server may not return an etag, e.g. if it transformed the card
        # while saving. The previous etag is kept in that case.
        etag = response.headers.get("ETag")
        if etag:
            card.etag = etag

    def create(self, card):
        try:
            self._put(card, None)
        except exceptions.Error as e:
            raise exceptions.OperationError(f'cannot create card "{card.id}"') from e

    def read(self, id):
        try:
            return self._read_impl(id)
        except exceptions.Error as e:
            raise exceptions.OperationError(f'cannot read card "{id}"') from e

    def _read_impl(self, id):
        headers = self.session.get_default_headers()
        headers["Depth"] = "1"
        response = self.session.request(
            "GET", self._get_url(id), headers=headers, latin1_fallback=False
        )

        date = response.headers.get("Last-Modified")
        if date is None:
            raise exceptions.MissingRequiredHeader(
                f'cannot get last modified date of card "{id}"',
                header="Last-Modified",
            )

        return Card(
            id,
            response.text,
            etag=response.headers.get("ETag"),
            date=parse_date(date, id),
        )

    def update(self, card):
        try:
            self._put(card, card.etag)
        except exceptions.Error as e:
            raise exceptions.OperationError(f'cannot update card "{card.id}"') from e

    def delete(self, card):
        headers = self.session.get_default_headers()
        if card.etag:
            headers["If-Match"] = card.etag
        else:
            dav_logger.warning(f'Deleting card "{card.id}" with no etag.')

        try:
            response = self.session.request(
                "DELETE", self._get_url(card.id), headers=headers
            )
            _assert_multistatus_success(response)
        except exceptions.Error as e:
            raise exceptions.OperationError(f'cannot delete card "{card.id}"') from e

    def read_all(self):
        try:
            cards = self._read_all_impl()
        except exceptions.Error as e:
            raise exceptions.OperationError("cannot list cards") from e
        return sorted(cards, key=lambda card: card.id)

    def _list_hrefs(self):
        headers = self.session.get_default_headers()
        headers["Content-Type"] = "application/xml; charset=UTF-8"
        headers["Depth"] = "1"

        # We use a PROPFIND request instead of addressbook-query due to issues
        # with Zimbra.
        response = self.session.request(
            "PROPFIND", self.url, data=self._list_xml, headers=headers
        )
        multistatus = decode_multistatus(response.content, _listing_prop)

        seen = set()
        for response in multistatus:
            href = _normalize_href(self.url, response.href)
            prop = response.propstat.prop
            if href in seen:
                dav_logger.warning(f"Skipping identical href: {href!r}")
                continue
            if prop is None or prop.is_collection:
                dav_logger.debug(f"Skipping {href!r}, is collection.")
                continue
            if not _fuzzy_matches_mimetype("text/vcard", prop.contenttype):
                dav_logger.debug(f"Skipping {href!r}, {prop.contenttype!r} != vCard.")
                continue
            if id_from_href(urlparse.unquote(href), self.fileext) is None:
                dav_logger.debug(f"Skipping {href!r}, not a {self.fileext} file.")
                continue

            seen.add(href)
            yield href

    def _read_all_impl(self):
        hrefs = list(self._list_hrefs())
        if not hrefs:
            return []

        data = self._multiget_template.format(
            hrefs="\n".join(f"<href>{xml_escape(href)}</href>" for href in hrefs)
        ).encode("utf-8")
        headers = self.session.get_default_headers()
        headers["Content-Type"] = "application/xml; charset=UTF-8"
        headers["Depth"] = "1"
        response = self.session.request("REPORT", self.url, data=data, headers=headers)
        multistatus = decode_multistatus(response.content, _address_data_prop)

        cards = []
        hrefs_left = set(hrefs)
        for response in multistatus:
            href = _normalize_href(self.url, response.href)
            prop = response.propstat.prop
            if prop is None:
                dav_logger.warning(f"Skipping {href}, the item content is missing.")
                continue
            try:
                hrefs_left.remove(href)
            except KeyError:
                dav_logger.warning(f"Server sent unsolicited or duplicate item: {href}")
                continue

            id = id_from_href(urlparse.unquote(href), self.fileext)
            if not prop.last_modified:
                raise exceptions.InvalidResponse(
                    f'cannot get last modified date of card "{id}"'
                )
            cards.append(
                Card(
                    id,
                    prop.address_data,
                    etag=prop.etag,
                    date=parse_date(prop.last_modified, id),
                )
            )

        for href in hrefs_left:
            raise exceptions.NotFoundError(f"Server did not return {href}.")

        return cards
