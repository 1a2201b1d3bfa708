"""Parsing of the DIDL-Lite metadata Sonos embeds in its responses.

Sonos describes queue entries and the current track with DIDL-Lite
documents, which arrive as XML escaped strings inside SOAP response fields
(``Result`` for a ``Browse``, ``TrackMetaData`` for ``GetPositionInfo``)::

    <DIDL-Lite xmlns:dc="http://purl.org/dc/elements/1.1/"
        xmlns:upnp="urn:schemas-upnp-org:metadata-1-0/upnp/"
        xmlns:r="urn:schemas-rinconnetworks-com:metadata-1-0/"
        xmlns="urn:schemas-upnp-org:metadata-1-0/DIDL-Lite/">
      <item id="Q:0/1" parentID="Q:0" restricted="true">
        <res protocolInfo="x-file-cifs:*:audio/mpeg:*" duration="0:04:15">
          x-file-cifs://server/music/track.mp3</res>
        <upnp:albumArtURI>/getaa?u=...</upnp:albumArtURI>
        <dc:title>Track Title</dc:title>
        <upnp:class>object.item.audioItem.musicTrack</upnp:class>
        <dc:creator>Artist</dc:creator>
        <upnp:album>Album</upnp:album>
      </item>
    </DIDL-Lite>

Everything here turns such a document into a list of `TrackMetadata`
records of a fixed shape. Missing elements become empty fields. A broken
item becomes a partial record rather than an error, so that queue positions
stay aligned with the speaker's own numbering.
"""

import logging
import re
from collections import namedtuple
from xml.sax.saxutils import unescape

from lxml import etree as LXML

from .exceptions import MetadataUnparseable
from .utils import parse_device_time
from .xml import XML, fromstring_filtered, ns_tag

_LOG = logging.getLogger(__name__)

# Values Sonos puts in metadata fields when there is nothing to describe
EMPTY_METADATA = ("", "NOT_IMPLEMENTED")

# Queue item ids look like Q:0/12, where 12 is the 1-based queue position
QUEUE_ID_RE = re.compile(r"^Q:\d+/(\d+)$")
ROOT_TAG_RE = re.compile(r"<DIDL-Lite\b[^>]*>")
ITEM_START_RE = re.compile(r"(?=<(?:item|container)\b)")
ID_ATTRIB_RE = re.compile(r"""\bid\s*=\s*["']([^"']*)["']""")

# Tags in the TYPE=SNG form of radio stream content
RADIO_TAGS = (("TITLE", "title"), ("ARTIST", "creator"), ("ALBUM", "album"))

# Used to rebuild a root element around a single item when the document as
# a whole does not parse
DEFAULT_ROOT_TAG = (
    '<DIDL-Lite xmlns:dc="http://purl.org/dc/elements/1.1/" '
    'xmlns:upnp="urn:schemas-upnp-org:metadata-1-0/upnp/" '
    'xmlns:r="urn:schemas-rinconnetworks-com:metadata-1-0/" '
    'xmlns="urn:schemas-upnp-org:metadata-1-0/DIDL-Lite/">'
)


class TrackMetadata(
    namedtuple(
        "TrackMetadataBase",
        "title, creator, album, uri, position, album_art_uri, duration, "
        "item_id, error",
    )
):
    """A track, as described by a DIDL-Lite item.

    Attributes:
        title (str): The title, or "" if the item has none.
        creator (str): The artist, or `None`.
        album (str): The album, or `None`.
        uri (str): The playable URI from the ``<res>`` element, or "".
        position (int): The 1-based queue position, or `None` outside of
            the queue.
        album_art_uri (str): The album art URI, possibly relative to the
            speaker, or `None`.
        duration (datetime.timedelta): The duration declared on the
            ``<res>`` element, or `None`.
        item_id (str): The DIDL-Lite id, eg ``"Q:0/3"``, or `None`.
        error (MetadataUnparseable): Set when the item could not be parsed.
            Only ``uri`` and ``position`` are filled in then.
    """

    __slots__ = ()

    def __new__(
        cls,
        title="",
        creator=None,
        album=None,
        uri="",
        position=None,
        album_art_uri=None,
        duration=None,
        item_id=None,
        error=None,
    ):
        return super().__new__(
            cls,
            title,
            creator,
            album,
            uri,
            position,
            album_art_uri,
            duration,
            item_id,
            error,
        )

    @property
    def is_partial(self):
        """bool: True if the item could not be parsed."""
        return self.error is not None

    def to_dict(self):
        """Return the track as a dict of plain values, eg for JSON output."""
        content = self._asdict()
        content["duration"] = (
            None if self.duration is None else int(self.duration.total_seconds())
        )
        content["error"] = None if self.error is None else str(self.error)
        return content


def unescape_didl(fragment):
    """Undo the XML escaping of a DIDL-Lite fragment, if it is still escaped.

    When the SOAP response has been parsed, ElementTree has already undone
    one level of escaping. Some code paths (events, stored favourites) hand
    over the raw field value, which is still escaped.
    """
    fragment = fragment.strip()
    if fragment.startswith("&lt;"):
        return unescape(fragment, {"&quot;": '"', "&apos;": "'"})
    return fragment


def _text_or_none(element, ns_id, tag):
    """Return the stripped text of a child element, or None if it is
    missing or empty."""
    text = element.findtext(ns_tag(ns_id, tag))
    if text is None:
        return None
    return text.strip() or None


def _position(item_id, default):
    """Work out the queue position from an item id like ``Q:0/3``."""
    match = QUEUE_ID_RE.match(item_id or "")
    if match:
        return int(match.group(1))
    return default


def track_from_element(element, position=None):
    """Create a `TrackMetadata` from a DIDL-Lite ``<item>`` element.

    Args:
        element (~xml.etree.ElementTree.Element): An ``<item>`` or
            ``<container>`` element, properly namespaced.
        position (int, optional): The position to use if the item id does
            not carry one.

    Returns:
        TrackMetadata: the track. Missing elements give empty fields.

    Raises:
        ValueError: if the duration attribute is not a timestamp.
    """
    item_id = element.get("id")
    res = element.find(ns_tag("", "res"))
    uri = ""
    duration = None
    if res is not None:
        uri = (res.text or "").strip()
        if res.get("duration"):
            duration = parse_device_time(res.get("duration"))

    return TrackMetadata(
        title=_text_or_none(element, "dc", "title") or "",
        creator=_text_or_none(element, "dc", "creator"),
        album=_text_or_none(element, "upnp", "album"),
        uri=uri,
        position=_position(item_id, position),
        album_art_uri=_text_or_none(element, "upnp", "albumArtURI"),
        duration=duration,
        item_id=item_id,
    )


def _partial_track(fragment, position, cause):
    """Build the stand-in record for an item which could not be parsed.

    The URI is recovered with lxml's recovering parser, which copes with
    unclosed tags and undeclared prefixes.
    """
    error = MetadataUnparseable(fragment, cause)
    _LOG.warning("%s", error)

    uri = ""
    parser = LXML.XMLParser(recover=True)  # pylint:disable=I1101
    tree = LXML.fromstring(  # pylint:disable=I1101
        fragment.encode("utf-8"), parser
    )
    if tree is not None:
        found = tree.xpath("//*[local-name()='res']/text()")
        if found:
            uri = found[0].strip()

    match = ID_ATTRIB_RE.search(fragment)
    item_id = match.group(1) if match else None
    return TrackMetadata(
        uri=uri,
        position=_position(item_id, position),
        item_id=item_id,
        error=error,
    )


def _parse_item(fragment, position):
    """Parse a single item fragment, already wrapped in a DIDL-Lite root."""
    try:
        root = fromstring_filtered(fragment)
        return track_from_element(root[0], position)
    except (XML.ParseError, IndexError, ValueError) as error:
        return _partial_track(fragment, position, error)


def _split_items(text):
    """Split a DIDL-Lite document which does not parse into single items.

    Each item is wrapped in its own copy of the root element, so that the
    namespace declarations still apply.
    """
    root_match = ROOT_TAG_RE.search(text)
    if root_match:
        root_tag = root_match.group(0)
        body = text[root_match.end() :]
    else:
        root_tag = DEFAULT_ROOT_TAG
        body = text
    body = body.replace("</DIDL-Lite>", "")
    segments = [
        segment.strip()
        for segment in ITEM_START_RE.split(body)
        if segment.strip().startswith(("<item", "<container"))
    ]
    return ["{}{}</DIDL-Lite>".format(root_tag, segment) for segment in segments]


def from_didl_string(fragment, start=0):
    """Convert a DIDL-Lite string to a list of `TrackMetadata`.

    Args:
        fragment (str): A unicode string containing an XML representation
            of one or more DIDL-Lite items, escaped or not.
        start (int): The 0-based index of the first item, used to number
            items whose id does not carry a queue position. Defaults to 0.

    Returns:
        list: One `TrackMetadata` per item, in document order. Items which
        cannot be parsed are kept as partial records.
    """
    if fragment is None or fragment.strip() in EMPTY_METADATA:
        return []
    text = unescape_didl(fragment)

    try:
        root = fromstring_filtered(text)
    except XML.ParseError:
        _LOG.debug("DIDL-Lite document does not parse, trying item by item")
        return [
            _parse_item(item, start + index + 1)
            for index, item in enumerate(_split_items(text))
        ]

    tracks = []
    for element in root:
        if not element.tag.endswith(("item", "container")):
            # <desc> elements are allowed as an immediate child of
            # <DIDL-Lite>, they do not describe a track
            continue
        position = start + len(tracks) + 1
        try:
            tracks.append(track_from_element(element, position))
        except ValueError as error:
            tracks.append(
                _partial_track(XML.tostring(element, "unicode"), position, error)
            )
    return tracks


def parse_stream_content(stream_content):
    """Try to parse track info from radio stream content.

    Examples of the content from services::

        "Artist - Title"
        Apple Music radio:
            "TYPE=SNG|TITLE Couleurs|ARTIST M83|ALBUM Saturdays = Youth"
        SiriusXM:
            "BR P|TYPE=SNG|TITLE 7.15.17 LA|ARTIST Eagles|ALBUM "

    Args:
        stream_content (str): The text of ``<r:streamContent>``.

    Returns:
        dict: with any of the keys ``title``, ``creator``, ``album``.
    """
    radio_track = {}
    index = stream_content.find(" - ")
    if index > -1:
        radio_track["creator"] = stream_content[:index]
        radio_track["title"] = stream_content[index + 3 :]
    elif "TYPE=SNG|" in stream_content:
        tags = dict(
            p.split(" ", 1) for p in stream_content.split("|") if " " in p
        )
        for tag, key in RADIO_TAGS:
            if tags.get(tag, "").strip():
                radio_track[key] = tags[tag].strip()
    elif stream_content:
        radio_track["title"] = stream_content
    return radio_track


def radio_track_from_metadata(fragment, uri=""):
    """Build a `TrackMetadata` for a radio stream.

    Radio metadata carries the current song in ``<r:streamContent>`` rather
    than in ``<dc:title>``/``<dc:creator>``. The station title is used when
    there is no stream content.

    Args:
        fragment (str): The DIDL-Lite metadata.
        uri (str): The stream URI.

    Returns:
        TrackMetadata: the track, or a partial record if the metadata does
        not parse.
    """
    text = unescape_didl(fragment)
    try:
        root = fromstring_filtered(text)
    except XML.ParseError as error:
        return _partial_track(text, None, error)._replace(uri=uri)

    content = parse_stream_content(
        (root.findtext(".//" + ns_tag("r", "streamContent")) or "").strip()
    )
    if not content.get("title"):
        station = root.findtext(".//" + ns_tag("dc", "title")) or ""
        content["title"] = station.strip()
    return TrackMetadata(uri=uri, **content)
