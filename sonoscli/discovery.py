"""This module contains methods for discovering Sonos devices on the
network."""

import ipaddress
import logging
import select
import socket
import struct
import time
from collections import namedtuple

import ifaddr

from . import config
from .exceptions import NoDevicesFound

_LOG = logging.getLogger(__name__)


class DiscoveredDevice(
    namedtuple("DiscoveredDeviceBase", "location, ip_address, usn, server")
):
    """A device which answered an M-SEARCH, not yet resolved.

    Only the ``location`` (the URL of its device description) is needed to
    go further. The other fields come straight from the SSDP reply.
    """

    def __str__(self):
        return "<DiscoveredDevice at {}>".format(self.location)


def _search_request():
    """Return the M-SEARCH datagram for the configured search target."""
    # MX is the number of seconds a device may wait before answering. Keep
    # it at 1 so that short discovery windows still get replies.
    lines = [
        "M-SEARCH * HTTP/1.1",
        "HOST: {}:{}".format(config.MULTICAST_GROUP, config.MULTICAST_PORT),
        'MAN: "ssdp:discover"',
        "MX: 1",
        "ST: {}".format(config.SEARCH_TARGET),
        "",
        "",
    ]
    return "\r\n".join(lines).encode("utf-8")


def _create_socket(interface_addr=None):
    """A helper function for creating a socket for discover purposes.

    Create and return a socket with appropriate options set for multicast.
    """

    _sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
    _sock.setsockopt(
        socket.IPPROTO_IP,
        socket.IP_MULTICAST_TTL,
        struct.pack("B", config.MULTICAST_TTL),
    )
    if interface_addr is not None:
        _sock.setsockopt(
            socket.IPPROTO_IP,
            socket.IP_MULTICAST_IF,
            socket.inet_aton(interface_addr),
        )
    return _sock


def _find_ipv4_addresses():
    """Find the private, non-loopback IPv4 addresses of this host.

    Returns:
        set: A set of IPv4 addresses (dotted quad strings).
    """
    addresses = set()
    for adapter in ifaddr.get_adapters():
        for ifaddr_network in adapter.ips:
            # IPv6 addresses are reported as tuples
            if not isinstance(ifaddr_network.ip, str):
                continue
            try:
                address = ipaddress.IPv4Address(ifaddr_network.ip)
            except ValueError:
                continue
            if address.is_private and not address.is_loopback:
                addresses.add(ifaddr_network.ip)
    return addresses


def _create_sockets(interface_addr):
    """Create the sockets M-SEARCH datagrams will be sent on."""
    if interface_addr is not None:
        try:
            socket.inet_aton(interface_addr)
        except OSError as error:
            raise ValueError(
                "{} is not a valid IP address string".format(interface_addr)
            ) from error
        _LOG.info("Sending discovery packets on %s", interface_addr)
        return [_create_socket(interface_addr)]

    sockets = []
    for address in _find_ipv4_addresses():
        try:
            sockets.append(_create_socket(address))
        except OSError as error:
            _LOG.warning(
                "Can't make a discovery socket for %s: %s: %s",
                address,
                error.__class__.__name__,
                error,
            )
    # Add a socket using the system default address
    sockets.append(_create_socket())
    _LOG.info("Sending discovery packets on %d sockets", len(sockets))
    return sockets


def parse_search_reply(data):
    """Parse the headers of an SSDP reply.

    Here is a sample response from a real Sonos device (actual numbers
    have been redacted)::

        HTTP/1.1 200 OK
        CACHE-CONTROL: max-age = 1800
        EXT:
        LOCATION: http://***.***.***.***:1400/xml/device_description.xml
        SERVER: Linux UPnP/1.0 Sonos/26.1-76230 (ZPS3)
        ST: urn:schemas-upnp-org:device:ZonePlayer:1
        USN: uuid:RINCON_B8*************00::urn:schemas-upnp-org:device:
                                                            ZonePlayer:1
        X-RINCON-BOOTSEQ: 3
        X-RINCON-HOUSEHOLD: Sonos_7O********************R7eU

    Args:
        data (bytes): The datagram.

    Returns:
        dict: header names (upper cased) to values. The status line is not
        included.
    """
    headers = {}
    for line in data.decode("utf-8", "replace").splitlines()[1:]:
        name, separator, value = line.partition(":")
        if separator:
            headers[name.strip().upper()] = value.strip()
    return headers


def discover(timeout=None, interface_addr=None, stop_on=None):
    """Discover Sonos devices on the local network.

    Sends an SSDP M-SEARCH and collects the replies until ``timeout``
    seconds have passed, or until ``stop_on`` returns `True`. Replies are
    deduplicated by their LOCATION header, and returned in the order they
    arrived.

    Args:
        timeout (float, optional): collect replies for this many seconds,
            at most. Defaults to `config.DISCOVERY_TIMEOUT`. A timeout of 0
            polls the sockets once without waiting.
        interface_addr (str or None): the address of the network interface
            to send the datagrams from (a value for `socket.IP_MULTICAST_IF
            <socket>`). Defaults to `config.INTERFACE_ADDR`, and if that is
            `None` too, the datagrams are sent on the default interface and
            on each private IPv4 address of this host.
        stop_on (callable, optional): called with each newly discovered
            `DiscoveredDevice`. If it returns `True`, discovery stops early.

    Returns:
        list: a list of `DiscoveredDevice` instances, never empty.

    Raises:
        NoDevicesFound: if no device replied within ``timeout``.
    """
    if timeout is None:
        timeout = config.DISCOVERY_TIMEOUT
    if interface_addr is None:
        interface_addr = config.INTERFACE_ADDR

    found = []
    seen = set()
    sockets = _create_sockets(interface_addr)
    try:
        request = _search_request()
        for _ in range(config.SEARCH_REPEATS):
            # Send a few times to each socket. UDP is unreliable
            for _sock in sockets:
                _sock.sendto(request, (config.MULTICAST_GROUP, config.MULTICAST_PORT))

        t0 = time.monotonic()
        while True:
            remaining = timeout - (time.monotonic() - t0)
            # The timeout of the select call is set to be no greater than
            # 100ms, so as not to exceed (too much) the required timeout
            response, _, _ = select.select(sockets, [], [], max(0, min(remaining, 0.1)))
            stop = False
            for _sock in response or []:
                data, addr = _sock.recvfrom(1024)
                _LOG.debug('Received discovery response from %s: "%s"', addr, data)
                # Only Zone Players should respond, given the value of ST.
                # To prevent misbehaved devices disrupting the discovery
                # process, we check that the response contains "Sonos"
                if b"Sonos" not in data:
                    continue
                headers = parse_search_reply(data)
                location = headers.get("LOCATION")
                if not location or location in seen:
                    continue
                seen.add(location)
                device = DiscoveredDevice(
                    location, addr[0], headers.get("USN"), headers.get("SERVER")
                )
                _LOG.info("Discovered %s", device)
                found.append(device)
                if stop_on is not None and stop_on(device):
                    stop = True
                    break
            if stop or time.monotonic() - t0 >= timeout:
                break
    finally:
        for _sock in sockets:
            _sock.close()

    if not found:
        _LOG.info("No Sonos devices discovered")
        raise NoDevicesFound(timeout)
    return found


def descriptor_url(ip_address):
    """Build the device description URL for a device at ``ip_address``.

    Used when the user names a device by IP, in which case discovery is
    skipped entirely.

    Args:
        ip_address (str): The IPv4 address, e.g., "192.168.1.35".

    Returns:
        str: The URL of the device description.

    Raises:
        ValueError: if ``ip_address`` is not an IPv4 address.
    """
    try:
        ipaddress.IPv4Address(ip_address)
    except ValueError as error:
        raise ValueError("Not a valid IP address string") from error
    return "http://{}:{}{}".format(
        ip_address, config.SONOS_PORT, config.DESCRIPTOR_PATH
    )
