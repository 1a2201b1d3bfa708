"""The playback state of a speaker: what is playing, and how far along."""

import logging
from collections import namedtuple
from enum import Enum

from .didl import (
    EMPTY_METADATA,
    TrackMetadata,
    from_didl_string,
    radio_track_from_metadata,
)
from .exceptions import UnknownTransportState, Unreachable
from .utils import format_timestamp, parse_device_time

_LOG = logging.getLogger(__name__)


class TransportState(Enum):
    """The transport states a Sonos device reports.

    The values are the strings used by ``GetTransportInfo``.
    """

    PLAYING = "PLAYING"
    PAUSED = "PAUSED_PLAYBACK"
    STOPPED = "STOPPED"
    TRANSITIONING = "TRANSITIONING"


def parse_transport_state(value):
    """Map a ``CurrentTransportState`` string to a `TransportState`.

    Raises:
        UnknownTransportState: if the string is not one we know. The state is
            never guessed.
    """
    try:
        return TransportState(value)
    except ValueError:
        raise UnknownTransportState(value) from None


class PlaybackState(
    namedtuple(
        "PlaybackStateBase",
        "transport_state, elapsed, duration, track, playlist_position",
    )
):
    """A snapshot of a speaker's playback.

    Attributes:
        transport_state (TransportState): Playing, paused etc.
        elapsed (datetime.timedelta): The position in the current track.
        duration (datetime.timedelta): The length of the current track. Zero
            for streams.
        track (TrackMetadata): The current track, or `None` if nothing is
            loaded.
        playlist_position (int): The 1-based position in the queue, 0 if
            the queue is not the source.
    """

    @property
    def is_playing(self):
        """bool: True if the speaker is playing."""
        return self.transport_state is TransportState.PLAYING

    @property
    def progress(self):
        """float: The fraction of the track that has been played, between 0
        and 1, or `None` if the duration is unknown (eg for radio)."""
        if not self.duration:
            return None
        return min(1.0, self.elapsed / self.duration)

    def to_dict(self):
        """Return the state as a dict of plain values, eg for JSON output."""
        return {
            "transport_state": self.transport_state.name,
            "elapsed": format_timestamp(self.elapsed),
            "duration": format_timestamp(self.duration),
            "track": None if self.track is None else self.track.to_dict(),
            "playlist_position": self.playlist_position,
        }


def track_from_position_info(position_info):
    """Build the current track from a ``GetPositionInfo`` response.

    Args:
        position_info (dict): The output arguments of ``GetPositionInfo``.

    Returns:
        TrackMetadata: the track, or `None` if nothing is loaded.
    """
    metadata = position_info.get("TrackMetaData") or ""
    uri = position_info.get("TrackURI") or ""
    duration = parse_device_time(position_info.get("TrackDuration"))

    if metadata.strip() in EMPTY_METADATA:
        if not uri:
            return None
        # Line-in and some services report a URI and nothing else
        return TrackMetadata(uri=uri, duration=duration)

    # Duration seems to be '0:00:00' when listening to radio
    if not duration and "streamContent" in metadata:
        return radio_track_from_metadata(metadata, uri)

    tracks = from_didl_string(metadata)
    if not tracks:
        return TrackMetadata(uri=uri, duration=duration)
    track = tracks[0]
    return track._replace(
        uri=track.uri or uri,
        duration=track.duration if track.duration is not None else duration,
    )


def current_state(av_transport):
    """Read the playback state of a speaker.

    Two actions are needed, ``GetTransportInfo`` and ``GetPositionInfo``,
    as no single action returns both.

    Args:
        av_transport (AVTransport): The AVTransport service of the speaker.

    Returns:
        PlaybackState: the state.

    Raises:
        UnknownTransportState: if the device reports a state we do not know.
        DeviceRejectedAction: if either action fails.
        Unreachable: if the device cannot be contacted, or reports a
            time which is not a timestamp.
    """
    transport_info = av_transport.GetTransportInfo([("InstanceID", 0)])
    transport_state = parse_transport_state(
        transport_info.get("CurrentTransportState")
    )

    position_info = av_transport.GetPositionInfo(
        [("InstanceID", 0), ("Channel", "Master")]
    )
    try:
        playlist_position = int(position_info.get("Track") or 0)
    except ValueError:
        playlist_position = 0

    try:
        state = PlaybackState(
            transport_state=transport_state,
            elapsed=parse_device_time(position_info.get("RelTime")),
            duration=parse_device_time(position_info.get("TrackDuration")),
            track=track_from_position_info(position_info),
            playlist_position=playlist_position,
        )
    except ValueError as error:
        _LOG.warning("Unexpected GetPositionInfo response: %s", error)
        raise Unreachable(av_transport.control_url, "malformed response") from error
    _LOG.debug("Playback state: %s", state)
    return state
