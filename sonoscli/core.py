# pylint: disable=invalid-name

"""The main module for sonoscli: the `Speaker` class and ways to find one.

>>> import sonoscli
>>> speaker = sonoscli.connect("Kitchen")
>>> speaker.set_volume(25)
>>> speaker.get_state().transport_state
<TransportState.PLAYING: 'PLAYING'>
"""

import datetime
import difflib
import ipaddress
import logging
import re
from enum import Enum

from . import config
from .device import resolve
from .didl import from_didl_string
from .discovery import descriptor_url, discover
from .exceptions import (
    InvalidQueueTarget,
    InvalidSeekTarget,
    InvalidVolumeRange,
    MalformedDescriptor,
    RoomNotFound,
    Unreachable,
)
from .playback import current_state
from .services import AVTransport, ContentDirectory, RenderingControl, ZoneGroupTopology
from .topology import zone_groups
from .utils import camel_to_underscore, format_timestamp, parse_timestamp

_LOG = logging.getLogger(__name__)

# A URI has a scheme, eg x-file-cifs:, x-rincon-mp3radio:, http:
URI_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*:")


class InputKind(Enum):
    """The inputs a speaker can be switched to with `Speaker.set_input`."""

    LINE_IN = "line-in"
    TV = "tv"


class Queue(list):
    """A page of the queue: a list of `TrackMetadata`, with the paging
    information the device returns alongside.

    Attributes:
        number_returned (int): The number of tracks in this page.
        total_matches (int): The number of tracks in the whole queue.
        update_id (int): Changes whenever the queue changes.
    """

    def __init__(self, tracks, number_returned=0, total_matches=0, update_id=0):
        super().__init__(tracks)
        self.number_returned = number_returned
        self.total_matches = total_matches
        self.update_id = update_id

    def __repr__(self):
        return "Queue(items={}, number_returned={}, total_matches={})".format(
            super().__repr__(), self.number_returned, self.total_matches
        )


class Speaker:
    """A Sonos speaker, ready to be controlled.

    A `Speaker` is built from a resolved `Device`, and holds one object per
    UPnP service. Every method sends its actions exactly once, and either
    returns a result or raises one of the `sonoscli.exceptions`.

    ..  rubric:: Playback
    ..  autosummary::

        get_state
        play
        pause
        stop
        seek
        next
        previous

    ..  rubric:: Volume
    ..  autosummary::

        get_volume
        set_volume
        get_mute
        set_mute

    ..  rubric:: Queue and inputs
    ..  autosummary::

        queue_list
        queue_play
        set_input

    ..  rubric:: Household
    ..  autosummary::

        info
        zone_groups
    """

    def __init__(self, device):
        """
        Args:
            device (Device): The resolved device.
        """
        #: `Device`: The device description this speaker was built from
        self.device = device

        self.avTransport = AVTransport(device)
        self.contentDirectory = ContentDirectory(device)
        self.renderingControl = RenderingControl(device)
        self.zoneGroupTopology = ZoneGroupTopology(device)

        _LOG.debug("Created Speaker for %s", device)

    def __str__(self):
        return "<{} '{}' at {}>".format(
            self.__class__.__name__, self.room_name, self.ip_address
        )

    def __repr__(self):
        return '{}("{}")'.format(self.__class__.__name__, self.ip_address)

    @property
    def room_name(self):
        """str: The room name of the speaker."""
        return self.device.room_name

    @property
    def uid(self):
        """str: A unique identifier, eg ``RINCON_000XXX1400``."""
        return self.device.uid

    @property
    def ip_address(self):
        """str: The speaker's ip address."""
        return self.device.ip_address

    def get_state(self):
        """Get the playback state: transport state, position and track.

        Returns:
            PlaybackState: the current state.

        Raises:
            UnknownTransportState: if the device reports a state which is
                not one of `TransportState`.
        """
        return current_state(self.avTransport)

    def play(self):
        """Play the currently selected track."""
        self.avTransport.Play([("InstanceID", 0), ("Speed", 1)])

    def pause(self):
        """Pause the currently playing track."""
        self.avTransport.Pause([("InstanceID", 0), ("Speed", 1)])

    def stop(self):
        """Stop the currently playing track."""
        self.avTransport.Stop([("InstanceID", 0), ("Speed", 1)])

    def seek(self, target):
        """Seek to a position in the current track.

        Args:
            target (str or datetime.timedelta): The position, as
                ``H:MM:SS``, ``HH:MM:SS``, ``M:SS`` or ``MM:SS``. It is
                always sent as ``H:MM:SS``.

        Returns:
            datetime.timedelta: The position sought to.

        Raises:
            InvalidSeekTarget: if ``target`` is not a timestamp. Nothing is
                sent to the speaker then.
            DeviceRejectedAction: UPnP Error 711 if the speaker refuses the
                target.
        """
        if isinstance(target, datetime.timedelta):
            position = target
        elif isinstance(target, str):
            try:
                position = parse_timestamp(target)
            except ValueError:
                raise InvalidSeekTarget(target) from None
        else:
            raise InvalidSeekTarget(target)
        if position < datetime.timedelta(0):
            raise InvalidSeekTarget(target)

        self.avTransport.Seek(
            [
                ("InstanceID", 0),
                ("Unit", "REL_TIME"),
                ("Target", format_timestamp(position)),
            ]
        )
        return position

    def next(self):
        """Go to the next track.

        Keep in mind that next() can return errors
        for a variety of reasons. For example, if the Sonos is streaming
        Pandora and you call next() several times in quick succession an error
        code will likely be returned (since Pandora has limits on how many
        songs can be skipped).
        """
        self.avTransport.Next([("InstanceID", 0), ("Speed", 1)])

    def previous(self):
        """Go back to the previously played track.

        The speaker returns UPnP Error 701 when there is no previous track,
        eg when streaming radio.
        """
        self.avTransport.Previous([("InstanceID", 0), ("Speed", 1)])

    def get_volume(self):
        """Get the speaker's volume.

        Returns:
            int: An integer between 0 and 100.
        """
        response = self.renderingControl.GetVolume(
            [
                ("InstanceID", 0),
                ("Channel", "Master"),
            ]
        )
        return int(response["CurrentVolume"])

    def set_volume(self, level):
        """Set the speaker's volume.

        Args:
            level (int): The volume, from 0 to 100. A string of digits is
                accepted too.

        Raises:
            InvalidVolumeRange: if ``level`` is not an integer from 0 to 100.
                Nothing is sent to the speaker then.
        """
        volume = _validate_volume(level)
        self.renderingControl.SetVolume(
            [("InstanceID", 0), ("Channel", "Master"), ("DesiredVolume", volume)]
        )

    def get_mute(self):
        """Get the speaker's mute state.

        Returns:
            bool: True if muted, False otherwise.
        """
        response = self.renderingControl.GetMute(
            [("InstanceID", 0), ("Channel", "Master")]
        )
        return bool(int(response["CurrentMute"]))

    def set_mute(self, mute):
        """Mute (or unmute) the speaker."""
        mute_value = "1" if mute else "0"
        self.renderingControl.SetMute(
            [("InstanceID", 0), ("Channel", "Master"), ("DesiredMute", mute_value)]
        )

    def queue_list(self, start=0, max_items=100):
        """Get a page of the queue.

        Items which cannot be parsed are kept as partial records, so the
        position of each track still matches the speaker's numbering.

        Args:
            start (int): The 0-based index of the first track to return.
            max_items (int): The maximum number of tracks to return.

        Returns:
            Queue: a list of `TrackMetadata`.

        Raises:
            MalformedDescriptor: if the speaker has no ContentDirectory
                service.
        """
        response = self.contentDirectory.Browse(
            [
                ("ObjectID", "Q:0"),
                ("BrowseFlag", "BrowseDirectChildren"),
                ("Filter", "*"),
                ("StartingIndex", start),
                ("RequestedCount", max_items),
                ("SortCriteria", ""),
            ]
        )

        metadata = {}
        for tag in ["NumberReturned", "TotalMatches", "UpdateID"]:
            metadata[camel_to_underscore(tag)] = int(response.get(tag) or 0)

        # pylint: disable=star-args
        return Queue(from_didl_string(response.get("Result"), start=start), **metadata)

    def queue_play(self, target, start=True):
        """Play a track from the queue, or a URI through the queue.

        Args:
            target (int or str): A 1-based queue position (an int or a string
                of digits), or a URI, eg ``x-file-cifs://server/song.mp3``,
                which is added to the queue first.
            start (bool): If the track should start playing.

        Returns:
            int: The queue position of the track.

        Raises:
            InvalidQueueTarget: if ``target`` is neither a position nor a URI.
                Nothing is sent to the speaker then.
            DeviceRejectedAction: UPnP Error 701 if there is no such
                position in the queue.
        """
        if isinstance(target, bool):
            raise InvalidQueueTarget(target)
        if isinstance(target, str):
            target = target.strip()
            if target.isdecimal():
                target = int(target)
            elif not URI_RE.match(target):
                raise InvalidQueueTarget(target)
        elif not isinstance(target, int):
            raise InvalidQueueTarget(target)

        if isinstance(target, int):
            if target < 1:
                raise InvalidQueueTarget(target)
            position = target
        else:
            position = self._add_uri_to_queue(target)

        # first, set the queue itself as the source URI
        uri = "x-rincon-queue:{}#0".format(self.uid)
        self.avTransport.SetAVTransportURI(
            [("InstanceID", 0), ("CurrentURI", uri), ("CurrentURIMetaData", "")]
        )

        # second, set the track number with a seek command
        self.avTransport.Seek(
            [("InstanceID", 0), ("Unit", "TRACK_NR"), ("Target", position)]
        )

        # finally, just play what's set if needed
        if start:
            self.play()
        return position

    def _add_uri_to_queue(self, uri):
        """Add a URI to the queue, after the current track.

        Returns:
            int: The queue position of the new track.
        """
        response = self.avTransport.AddURIToQueue(
            [
                ("InstanceID", 0),
                ("EnqueuedURI", uri),
                ("EnqueuedURIMetaData", ""),
                ("DesiredFirstTrackNumberEnqueued", 0),
                ("EnqueueAsNext", 1),
            ]
        )
        qnumber = response["FirstTrackNumberEnqueued"]
        return int(qnumber)

    def set_input(self, kind):
        """Switch the speaker to one of its own inputs.

        Args:
            kind (InputKind or str): ``"line-in"`` or ``"tv"``.

        Raises:
            ValueError: if ``kind`` is not an `InputKind`.
            DeviceRejectedAction: if the speaker has no such input.
        """
        kind = InputKind(kind)
        if kind is InputKind.LINE_IN:
            uri = "x-rincon-stream:{}".format(self.uid)
        else:
            uri = "x-sonos-htastream:{}:spdif".format(self.uid)

        self.avTransport.SetAVTransportURI(
            [
                ("InstanceID", 0),
                ("CurrentURI", uri),
                ("CurrentURIMetaData", ""),
            ]
        )

    def info(self):
        """Describe the speaker.

        No action is sent, everything comes from the device description.

        Returns:
            dict: the room name, model and version information, and the
            control URL of each service.
        """
        return self.device.to_dict()

    def zone_groups(self):
        """Get the zone groups of the household this speaker belongs to.

        Returns:
            list: a list of `ZoneGroup`.
        """
        return zone_groups(self.zoneGroupTopology)


def _validate_volume(level):
    """Return ``level`` as an int from 0 to 100, or raise
    `InvalidVolumeRange`."""
    if isinstance(level, bool) or not isinstance(level, (int, str)):
        raise InvalidVolumeRange(level)
    try:
        volume = int(level)
    except ValueError:
        raise InvalidVolumeRange(level) from None
    if not 0 <= volume <= 100:
        raise InvalidVolumeRange(level)
    return volume


def _resolve_or_skip(discovered, timeout=None):
    """Resolve a discovered device, or return None if it cannot be used."""
    try:
        return resolve(discovered.location, timeout=timeout)
    except (MalformedDescriptor, Unreachable) as error:
        _LOG.warning("Skipping %s: %s", discovered.location, error)
        return None


def speakers(timeout=None, interface_addr=None):
    """Discover and resolve all speakers on the local network.

    Devices which cannot be resolved are skipped with a warning, the others
    are still returned.

    Args:
        timeout (float, optional): The discovery window. Defaults to
            `config.DISCOVERY_TIMEOUT`.
        interface_addr (str, optional): The interface to discover on.

    Returns:
        list: a list of `Speaker`, in the order the devices replied.

    Raises:
        NoDevicesFound: if no device replied.
    """
    found = []
    for discovered in discover(timeout=timeout, interface_addr=interface_addr):
        device = _resolve_or_skip(discovered)
        if device is not None:
            found.append(Speaker(device))
    return found


def rooms(timeout=None, interface_addr=None):
    """Return the room names of all speakers on the local network.

    Args:
        timeout (float, optional): The discovery window. Defaults to
            `config.DISCOVERY_TIMEOUT`.
        interface_addr (str, optional): The interface to discover on.

    Returns:
        list: room names, in the order the devices replied.

    Raises:
        NoDevicesFound: if no device replied.
    """
    return [speaker.room_name for speaker in speakers(timeout, interface_addr)]


def by_ip(ip_address, timeout=None):
    """Get the speaker at a known IP address, without discovery.

    Args:
        ip_address (str): The IPv4 address of the speaker.
        timeout (float, optional): The http timeout.

    Returns:
        Speaker: the speaker.

    Raises:
        ValueError: if ``ip_address`` is not an IPv4 address.
        Unreachable: if the speaker cannot be contacted.
        MalformedDescriptor: if the device cannot be controlled.
    """
    return Speaker(resolve(descriptor_url(ip_address), timeout=timeout))


def by_room(room_name, timeout=None, interface_addr=None):
    """Find the speaker for a room.

    Discovery stops as soon as a device with exactly this room name (case
    sensitive) has been resolved. Each device is resolved as it replies,
    with an http timeout of `config.DISCOVERY_RESOLVE_TIMEOUT`, so a slow
    device extends the discovery window by that much at most.

    Args:
        room_name (str): The room name.
        timeout (float, optional): The discovery window. Defaults to
            `config.DISCOVERY_TIMEOUT`.
        interface_addr (str, optional): The interface to discover on.

    Returns:
        Speaker: the speaker.

    Raises:
        NoDevicesFound: if no device replied.
        RoomNotFound: if no device has this room name. It carries the close
            matches among the names which were found.
    """
    names = []
    matches = []

    def stop_on(discovered):
        device = _resolve_or_skip(
            discovered, timeout=config.DISCOVERY_RESOLVE_TIMEOUT
        )
        if device is None:
            return False
        names.append(device.room_name)
        if device.room_name == room_name:
            matches.append(device)
            return True
        return False

    discover(timeout=timeout, interface_addr=interface_addr, stop_on=stop_on)
    if not matches:
        raise RoomNotFound(room_name, difflib.get_close_matches(room_name, names))
    return Speaker(matches[0])


def connect(controller, timeout=None):
    """Get a speaker by IP address or by room name.

    Args:
        controller (str): An IPv4 address, which skips discovery, or a room
            name.
        timeout (float, optional): The discovery window, or for an IP
            address the http timeout.

    Returns:
        Speaker: the speaker.
    """
    try:
        ipaddress.IPv4Address(controller)
    except ValueError:
        return by_room(controller, timeout=timeout)
    return by_ip(controller, timeout=timeout)
