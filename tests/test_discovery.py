import socket
import select

import pytest

from unittest.mock import MagicMock as Mock

from sonoscli import config
from sonoscli.discovery import (
    DiscoveredDevice,
    _find_ipv4_addresses,
    descriptor_url,
    discover,
    parse_search_reply,
)
from sonoscli.exceptions import NoDevicesFound

IP_ADDR = "192.168.1.101"
LOCATION = "http://192.168.1.101:1400/xml/device_description.xml"


def search_reply(ip_address=IP_ADDR, server="Linux UPnP/1.0 Sonos/26.1-76230 (ZPS3)"):
    """Return an SSDP reply, as sent by a Sonos device."""
    return "\r\n".join(
        [
            "HTTP/1.1 200 OK",
            "CACHE-CONTROL: max-age = 1800",
            "EXT:",
            "LOCATION: http://{}:1400/xml/device_description.xml".format(ip_address),
            "SERVER: {}".format(server),
            "ST: urn:schemas-upnp-org:device:ZonePlayer:1",
            "USN: uuid:RINCON_000XXX1400::urn:schemas-upnp-org:device:ZonePlayer:1",
            "X-RINCON-BOOTSEQ: 3",
            "",
            "",
        ]
    ).encode("utf-8")


@pytest.fixture()
def sock(monkeypatch):
    """A fake socket, whose data is always a reply from IP_ADDR.

    Two private addresses are found, so three sockets are created, all of
    them this same mock.
    """
    monkeypatch.setattr("socket.socket", Mock())
    fake_sock = socket.socket.return_value
    fake_sock.recvfrom.return_value = (search_reply(), (IP_ADDR, 1900))
    monkeypatch.setattr(
        "sonoscli.discovery._find_ipv4_addresses",
        Mock(return_value={"192.168.0.15", "192.168.1.16"}),
    )
    monkeypatch.setattr("select.select", Mock(return_value=([fake_sock], [], [])))
    return fake_sock


class TestDiscover:
    def test_discover(self, sock):
        devices = discover(timeout=0)
        assert devices == [
            DiscoveredDevice(
                LOCATION,
                IP_ADDR,
                "uuid:RINCON_000XXX1400::urn:schemas-upnp-org:device:ZonePlayer:1",
                "Linux UPnP/1.0 Sonos/26.1-76230 (ZPS3)",
            )
        ]
        # 9 packets in total should be sent, 3 on each of the 3 sockets
        assert sock.sendto.call_count == 9
        data, address = sock.sendto.call_args[0]
        assert address == ("239.255.255.250", 1900)
        assert data.startswith(b"M-SEARCH * HTTP/1.1\r\n")
        assert b"ST: urn:schemas-upnp-org:device:ZonePlayer:1\r\n" in data
        assert data.endswith(b"\r\n\r\n")
        # A zero timeout polls once, without waiting
        select.select.assert_called_once_with([sock, sock, sock], [], [], 0)
        assert sock.close.call_count == 3

    def test_duplicate_replies_are_merged(self, sock):
        select.select.return_value = ([sock, sock, sock], [], [])
        devices = discover(timeout=0)
        assert len(devices) == 1
        assert devices[0].location == LOCATION

    def test_replies_keep_arrival_order(self, sock):
        sock.recvfrom.side_effect = [
            (search_reply("192.168.1.103"), ("192.168.1.103", 1900)),
            (search_reply("192.168.1.102"), ("192.168.1.102", 1900)),
            (search_reply("192.168.1.103"), ("192.168.1.103", 1900)),
        ]
        select.select.return_value = ([sock, sock, sock], [], [])
        devices = discover(timeout=0)
        assert [d.ip_address for d in devices] == ["192.168.1.103", "192.168.1.102"]

    def test_no_reply(self, sock):
        select.select.return_value = ([], [], [])
        with pytest.raises(NoDevicesFound) as excinfo:
            discover(timeout=0)
        assert excinfo.value.timeout == 0
        sock.recvfrom.assert_not_called()

    def test_non_sonos_replies_are_ignored(self, sock):
        sock.recvfrom.return_value = (
            search_reply(server="Linux/3.14 UPnP/1.0 IpBridge/1.26.0"),
            (IP_ADDR, 1900),
        )
        with pytest.raises(NoDevicesFound):
            discover(timeout=0)

    def test_reply_without_location_is_ignored(self, sock):
        sock.recvfrom.return_value = (
            b"HTTP/1.1 200 OK\r\nSERVER: Linux UPnP/1.0 Sonos/26.1\r\n\r\n",
            (IP_ADDR, 1900),
        )
        with pytest.raises(NoDevicesFound):
            discover(timeout=0)

    def test_stop_on(self, sock):
        sock.recvfrom.side_effect = [
            (search_reply("192.168.1.102"), ("192.168.1.102", 1900)),
            (search_reply("192.168.1.103"), ("192.168.1.103", 1900)),
        ]
        select.select.return_value = ([sock, sock], [], [])
        stop_on = Mock(return_value=True)
        # The timeout is never reached, discovery stops on the first device
        devices = discover(timeout=60, stop_on=stop_on)
        assert [d.ip_address for d in devices] == ["192.168.1.102"]
        stop_on.assert_called_once_with(devices[0])
        assert sock.recvfrom.call_count == 1

    def test_interface_addr(self, sock):
        discover(timeout=0, interface_addr="192.168.0.15")
        # Only one socket, bound to the interface
        assert sock.sendto.call_count == 3
        sock.setsockopt.assert_any_call(
            socket.IPPROTO_IP, socket.IP_MULTICAST_IF, socket.inet_aton("192.168.0.15")
        )

    def test_interface_addr_from_config(self, sock, monkeypatch):
        monkeypatch.setattr(config, "INTERFACE_ADDR", "192.168.0.15")
        discover(timeout=0)
        assert sock.sendto.call_count == 3

    def test_invalid_interface_addr(self, sock):
        with pytest.raises(ValueError):
            discover(timeout=0, interface_addr="not an address")
        sock.sendto.assert_not_called()


def test_find_ipv4_addresses(monkeypatch):
    adapter = Mock(
        ips=[
            Mock(ip="192.168.1.16"),
            Mock(ip="127.0.0.1"),
            Mock(ip=("fe80::1", 0, 2)),
            Mock(ip="8.8.8.8"),
        ]
    )
    monkeypatch.setattr("ifaddr.get_adapters", Mock(return_value=[adapter]))
    assert _find_ipv4_addresses() == {"192.168.1.16"}


def test_parse_search_reply():
    headers = parse_search_reply(search_reply())
    assert headers["LOCATION"] == LOCATION
    assert headers["EXT"] == ""
    assert headers["X-RINCON-BOOTSEQ"] == "3"
    assert "HTTP/1.1 200 OK" not in headers


def test_descriptor_url():
    assert descriptor_url("192.168.1.35") == (
        "http://192.168.1.35:1400/xml/device_description.xml"
    )
    with pytest.raises(ValueError):
        descriptor_url("Kitchen")
