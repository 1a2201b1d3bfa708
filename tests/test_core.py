"""Tests for the core module."""

import datetime
from types import MappingProxyType

from unittest import mock
import pytest
import requests
import requests_mock

from sonoscli import config, core
from sonoscli.core import InputKind, Speaker, by_ip, by_room, connect, rooms
from sonoscli.device import Device
from sonoscli.discovery import DiscoveredDevice
from sonoscli.exceptions import (
    DeviceRejectedAction,
    InvalidQueueTarget,
    InvalidSeekTarget,
    InvalidVolumeRange,
    MalformedDescriptor,
    NoDevicesFound,
    RoomNotFound,
    Unreachable,
)
from sonoscli.playback import TransportState

from test_soap import DUMMY_ERROR

IP_ADDR = "192.168.1.101"
LOCATION = "http://192.168.1.101:1400/xml/device_description.xml"
AV_TRANSPORT_URL = "http://192.168.1.101:1400/MediaRenderer/AVTransport/Control"

DEVICE = Device(
    location=LOCATION,
    room_name="Kitchen",
    base_url=LOCATION,
    services=MappingProxyType({}),
    uid="RINCON_000XXX1400",
    ip_address=IP_ADDR,
    model_name="Sonos One",
    model_number="S18",
    serial_number="00-0E-58-XX-XX-XX:4",
    software_version="56.0-76060",
    hardware_version="1.20.1.6-1.1",
)


def discovered(ip_address):
    return DiscoveredDevice(
        "http://{}:1400/xml/device_description.xml".format(ip_address),
        ip_address,
        None,
        None,
    )


def empty_response(action):
    """A successful response without output arguments."""
    return "".join(
        [
            '<?xml version="1.0"?>',
            '<s:Envelope xmlns:s="http://schemas.xmlsoap.org/soap/envelope/"',
            ' s:encodingStyle="http://schemas.xmlsoap.org/soap/encoding/">',
            "<s:Body>",
            '<u:{}Response '.format(action),
            'xmlns:u="urn:schemas-upnp-org:service:AVTransport:1"/>',
            "</s:Body>",
            "</s:Envelope>",
        ]
    )


@pytest.fixture()
def moco():
    """A mock speaker with fake services.

    Allows calls to services to be tracked. Should not cause any network
    access
    """
    services = (
        "AVTransport",
        "RenderingControl",
        "ContentDirectory",
        "ZoneGroupTopology",
    )
    patchers = [mock.patch("sonoscli.core.{}".format(service)) for service in services]
    for patch in patchers:
        patch.start()
    yield Speaker(DEVICE)
    for patch in reversed(patchers):
        patch.stop()


class TestSpeaker:
    def test_init(self, moco):
        assert moco.device is DEVICE
        assert moco.room_name == "Kitchen"
        assert moco.uid == "RINCON_000XXX1400"
        assert moco.ip_address == IP_ADDR
        assert str(moco) == "<Speaker 'Kitchen' at 192.168.1.101>"
        assert repr(moco) == 'Speaker("192.168.1.101")'

    @pytest.mark.parametrize(
        "method, action",
        [
            ("play", "Play"),
            ("pause", "Pause"),
            ("stop", "Stop"),
            ("next", "Next"),
            ("previous", "Previous"),
        ],
    )
    def test_transport_actions(self, moco, method, action):
        getattr(moco, method)()
        getattr(moco.avTransport, action).assert_called_once_with(
            [("InstanceID", 0), ("Speed", 1)]
        )

    def test_get_state(self, moco):
        moco.avTransport.GetTransportInfo.return_value = {
            "CurrentTransportState": "PAUSED_PLAYBACK"
        }
        moco.avTransport.GetPositionInfo.return_value = {
            "Track": "2",
            "TrackDuration": "0:04:00",
            "TrackMetaData": "",
            "TrackURI": "x-file-cifs://nas/music/02.mp3",
            "RelTime": "0:02:00",
        }
        state = moco.get_state()
        assert state.transport_state is TransportState.PAUSED
        assert state.playlist_position == 2
        assert state.progress == 0.5
        assert state.track.uri == "x-file-cifs://nas/music/02.mp3"

    @pytest.mark.parametrize(
        "target, sent",
        [
            ("1:02:03", "1:02:03"),
            ("01:02:03", "1:02:03"),
            ("2:03", "0:02:03"),
            ("02:03", "0:02:03"),
            (datetime.timedelta(seconds=75), "0:01:15"),
        ],
    )
    def test_seek(self, moco, target, sent):
        moco.seek(target)
        moco.avTransport.Seek.assert_called_once_with(
            [("InstanceID", 0), ("Unit", "REL_TIME"), ("Target", sent)]
        )

    @pytest.mark.parametrize(
        "target",
        ["abc", "1:99:00", "", "1:00:00:00", None, 90, datetime.timedelta(seconds=-1)],
    )
    def test_seek_invalid(self, moco, target):
        with pytest.raises(InvalidSeekTarget):
            moco.seek(target)
        moco.avTransport.Seek.assert_not_called()

    def test_get_volume(self, moco):
        moco.renderingControl.GetVolume.return_value = {"CurrentVolume": "25"}
        assert moco.get_volume() == 25
        moco.renderingControl.GetVolume.assert_called_once_with(
            [("InstanceID", 0), ("Channel", "Master")]
        )

    @pytest.mark.parametrize("level, sent", [(0, 0), (50, 50), (100, 100), ("30", 30)])
    def test_set_volume(self, moco, level, sent):
        moco.set_volume(level)
        moco.renderingControl.SetVolume.assert_called_once_with(
            [("InstanceID", 0), ("Channel", "Master"), ("DesiredVolume", sent)]
        )

    @pytest.mark.parametrize("level", [-1, 101, 1000, 50.5, "loud", "", True, None])
    def test_set_volume_invalid(self, moco, level):
        with pytest.raises(InvalidVolumeRange) as excinfo:
            moco.set_volume(level)
        assert excinfo.value.volume == level
        moco.renderingControl.SetVolume.assert_not_called()

    @pytest.mark.parametrize("level", range(0, 101))
    def test_volume_round_trip(self, moco, level):
        """A device which echoes the volume gives back what was set."""
        volumes = []

        def set_volume(args):
            volumes.append(dict(args)["DesiredVolume"])
            return {}

        def get_volume(args):
            return {"CurrentVolume": str(volumes[-1])}

        moco.renderingControl.SetVolume.side_effect = set_volume
        moco.renderingControl.GetVolume.side_effect = get_volume
        moco.set_volume(level)
        assert moco.get_volume() == level

    def test_mute(self, moco):
        moco.renderingControl.GetMute.return_value = {"CurrentMute": "1"}
        assert moco.get_mute() is True
        moco.renderingControl.GetMute.assert_called_once_with(
            [("InstanceID", 0), ("Channel", "Master")]
        )
        moco.set_mute(False)
        moco.renderingControl.SetMute.assert_called_once_with(
            [("InstanceID", 0), ("Channel", "Master"), ("DesiredMute", "0")]
        )

    def test_queue_list(self, moco, didl_data):
        moco.contentDirectory.Browse.return_value = {
            "Result": didl_data.load_xml("queue_one_malformed.xml"),
            "NumberReturned": "5",
            "TotalMatches": "5",
            "UpdateID": "3",
        }
        queue = moco.queue_list()
        moco.contentDirectory.Browse.assert_called_once_with(
            [
                ("ObjectID", "Q:0"),
                ("BrowseFlag", "BrowseDirectChildren"),
                ("Filter", "*"),
                ("StartingIndex", 0),
                ("RequestedCount", 100),
                ("SortCriteria", ""),
            ]
        )
        assert len(queue) == 5
        assert queue.number_returned == 5
        assert queue.total_matches == 5
        assert queue.update_id == 3
        assert [track.position for track in queue] == [1, 2, 3, 4, 5]
        assert queue[2].is_partial
        assert queue[2].uri == "x-file-cifs://nas/music/03.mp3"
        assert queue[3].title == "The Village"

    def test_queue_list_empty(self, moco):
        moco.contentDirectory.Browse.return_value = {
            "Result": "",
            "NumberReturned": "0",
            "TotalMatches": "0",
            "UpdateID": "1",
        }
        queue = moco.queue_list(start=10, max_items=5)
        assert queue == []
        assert queue.total_matches == 0

    @pytest.mark.parametrize("target", [3, "3", " 3 "])
    def test_queue_play(self, moco, target):
        assert moco.queue_play(target) == 3
        moco.avTransport.SetAVTransportURI.assert_called_once_with(
            [
                ("InstanceID", 0),
                ("CurrentURI", "x-rincon-queue:RINCON_000XXX1400#0"),
                ("CurrentURIMetaData", ""),
            ]
        )
        moco.avTransport.Seek.assert_called_once_with(
            [("InstanceID", 0), ("Unit", "TRACK_NR"), ("Target", 3)]
        )
        moco.avTransport.Play.assert_called_once_with([("InstanceID", 0), ("Speed", 1)])

    def test_queue_play_no_start(self, moco):
        moco.queue_play(2, start=False)
        moco.avTransport.Play.assert_not_called()

    def test_queue_play_uri(self, moco):
        moco.avTransport.AddURIToQueue.return_value = {
            "FirstTrackNumberEnqueued": "6",
            "NumTracksAdded": "1",
            "NewQueueLength": "6",
        }
        assert moco.queue_play("x-file-cifs://nas/music/06.mp3") == 6
        moco.avTransport.AddURIToQueue.assert_called_once_with(
            [
                ("InstanceID", 0),
                ("EnqueuedURI", "x-file-cifs://nas/music/06.mp3"),
                ("EnqueuedURIMetaData", ""),
                ("DesiredFirstTrackNumberEnqueued", 0),
                ("EnqueueAsNext", 1),
            ]
        )
        moco.avTransport.Seek.assert_called_once_with(
            [("InstanceID", 0), ("Unit", "TRACK_NR"), ("Target", 6)]
        )

    @pytest.mark.parametrize(
        "target",
        ["abc", "play the third one", "", "-1", "\u00b2", 0, -1, 2.5, True, None],
    )
    def test_queue_play_invalid(self, moco, target):
        with pytest.raises(InvalidQueueTarget):
            moco.queue_play(target)
        assert moco.avTransport.method_calls == []

    @pytest.mark.parametrize(
        "kind, uri",
        [
            ("line-in", "x-rincon-stream:RINCON_000XXX1400"),
            (InputKind.LINE_IN, "x-rincon-stream:RINCON_000XXX1400"),
            ("tv", "x-sonos-htastream:RINCON_000XXX1400:spdif"),
        ],
    )
    def test_set_input(self, moco, kind, uri):
        moco.set_input(kind)
        moco.avTransport.SetAVTransportURI.assert_called_once_with(
            [("InstanceID", 0), ("CurrentURI", uri), ("CurrentURIMetaData", "")]
        )

    def test_set_input_invalid(self, moco):
        with pytest.raises(ValueError):
            moco.set_input("hdmi")
        moco.avTransport.SetAVTransportURI.assert_not_called()

    def test_info(self, moco):
        info = moco.info()
        assert info["room_name"] == "Kitchen"
        assert info["model_name"] == "Sonos One"
        assert info["services"] == {}

    def test_zone_groups(self, moco, topology_data):
        moco.zoneGroupTopology.GetZoneGroupState.return_value = {
            "ZoneGroupState": topology_data.load_xml("zone_group_state.xml")
        }
        groups = moco.zone_groups()
        assert [group.label for group in groups] == ["Kitchen, Living Room", ""]


def test_queue_play_fault(device_data):
    """The speaker refuses a position beyond the end of the queue."""
    with requests_mock.Mocker() as mocker:
        mocker.get(LOCATION, text=device_data.load_xml("device_description.xml"))
        mocker.post(
            AV_TRANSPORT_URL,
            [
                {"text": empty_response("SetAVTransportURI")},
                {"text": DUMMY_ERROR, "status_code": 500},
            ],
        )
        speaker = by_ip(IP_ADDR)
        with pytest.raises(DeviceRejectedAction) as excinfo:
            speaker.queue_play(99)
        soap_actions = [
            request.headers["SOAPACTION"]
            for request in mocker.request_history
            if request.method == "POST"
        ]
    assert excinfo.value.error_code == "701"
    assert excinfo.value.action == "Seek"
    # Play was not sent after the failed Seek, and nothing was retried
    assert soap_actions == [
        '"urn:schemas-upnp-org:service:AVTransport:1#SetAVTransportURI"',
        '"urn:schemas-upnp-org:service:AVTransport:1#Seek"',
    ]


def test_rooms(monkeypatch, device_data):
    """A device which cannot be controlled is skipped, not fatal."""
    monkeypatch.setattr(
        core,
        "discover",
        mock.Mock(
            return_value=[
                discovered("192.168.1.101"),
                discovered("192.168.1.100"),
                discovered("192.168.1.104"),
                discovered("192.168.1.102"),
            ]
        ),
    )
    description = device_data.load_xml("device_description.xml")
    with requests_mock.Mocker() as mocker:
        mocker.get(LOCATION, text=description)
        mocker.get(
            "http://192.168.1.100:1400/xml/device_description.xml",
            text=device_data.load_xml("no_avtransport.xml"),
        )
        mocker.get(
            "http://192.168.1.104:1400/xml/device_description.xml",
            exc=requests.exceptions.ConnectTimeout,
        )
        mocker.get(
            "http://192.168.1.102:1400/xml/device_description.xml",
            text=description.replace("Kitchen", "Living Room"),
        )
        assert rooms(timeout=1) == ["Kitchen", "Living Room"]
    core.discover.assert_called_once_with(timeout=1, interface_addr=None)


def test_rooms_no_devices(monkeypatch):
    monkeypatch.setattr(core, "discover", mock.Mock(side_effect=NoDevicesFound(0)))
    with pytest.raises(NoDevicesFound):
        rooms(timeout=0)


@pytest.fixture()
def household(monkeypatch):
    """Three devices, replying in order. The second cannot be resolved."""
    replies = [
        discovered("192.168.1.102"),
        discovered("192.168.1.100"),
        discovered("192.168.1.101"),
    ]
    devices = {
        replies[0].location: DEVICE._replace(room_name="Living Room"),
        replies[2].location: DEVICE,
    }

    def fake_discover(timeout=None, interface_addr=None, stop_on=None):
        found = []
        for reply in replies:
            found.append(reply)
            if stop_on is not None and stop_on(reply):
                break
        return found

    def fake_resolve(location, timeout=None):
        if location not in devices:
            raise Unreachable(location, "timed out")
        return devices[location]

    monkeypatch.setattr(core, "discover", fake_discover)
    monkeypatch.setattr(core, "resolve", mock.Mock(side_effect=fake_resolve))
    return replies


def test_by_room(household):
    speaker = by_room("Kitchen")
    assert speaker.device is DEVICE
    assert core.resolve.call_count == 3


def test_by_room_stops_early(household):
    speaker = by_room("Living Room")
    assert speaker.room_name == "Living Room"
    core.resolve.assert_called_once_with(
        household[0].location, timeout=config.DISCOVERY_RESOLVE_TIMEOUT
    )


def test_by_room_not_found(household):
    # Room names are case sensitive
    with pytest.raises(RoomNotFound) as excinfo:
        by_room("kitchen")
    assert excinfo.value.room_name == "kitchen"
    assert excinfo.value.suggestions == ["Kitchen"]
    assert "did you mean 'Kitchen'?" in str(excinfo.value)


def test_by_ip(monkeypatch):
    monkeypatch.setattr(core, "resolve", mock.Mock(return_value=DEVICE))
    speaker = by_ip(IP_ADDR, timeout=5)
    assert speaker.device is DEVICE
    core.resolve.assert_called_once_with(LOCATION, timeout=5)


def test_by_ip_invalid():
    with pytest.raises(ValueError):
        by_ip("192.168.1")


def test_connect(monkeypatch):
    monkeypatch.setattr(core, "by_ip", mock.Mock())
    monkeypatch.setattr(core, "by_room", mock.Mock())
    connect(IP_ADDR)
    core.by_ip.assert_called_once_with(IP_ADDR, timeout=None)
    connect("Kitchen", timeout=3)
    core.by_room.assert_called_once_with("Kitchen", timeout=3)
