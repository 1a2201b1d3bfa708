"""This module contains configuration variables.

They may be set by your code as follows::

    from sonoscli import config
    ...
    config.VARIABLE = value
"""

REQUEST_TIMEOUT = 20.0
"""The timeout (in seconds) to be used when sending requests to a Sonos device.

It applies to device description fetches and to SOAP control actions. It can
be a float, an int, or None. If set to `None`, calls can potentially wait
indefinitely. It can also be overridden for specific calls by using the
'timeout' kwarg in the relevant calling functions.
"""

DISCOVERY_TIMEOUT = 2.0
"""The default number of seconds to collect SSDP replies during discovery."""

DISCOVERY_RESOLVE_TIMEOUT = 2.0
"""The http timeout (in seconds) for fetching a device description while
discovery is still running.

Lookups by room name resolve each device as it replies, so a device which is
slow to answer delays the end of discovery by at most this long.
"""

SONOS_PORT = 1400
"""The port on which Sonos devices serve their description and control URLs."""

DESCRIPTOR_PATH = "/xml/device_description.xml"
"""The well-known path of the UPnP device description on a Sonos device.

Used to build a description URL directly from an IP address, skipping
discovery.
"""

MULTICAST_GROUP = "239.255.255.250"
"""The SSDP multicast group address."""

MULTICAST_PORT = 1900
"""The SSDP multicast port."""

MULTICAST_TTL = 4
"""The TTL for M-SEARCH datagrams. UPnP v1.0 requires a TTL of 4."""

SEARCH_TARGET = "urn:schemas-upnp-org:device:ZonePlayer:1"
"""The SSDP search target. Only Sonos zone players answer to it."""

SEARCH_REPEATS = 3
"""How many times the M-SEARCH datagram is sent on each socket.

UDP is unreliable, so a few copies are sent. Replies are deduplicated by
their LOCATION header.
"""

INTERFACE_ADDR = None
"""The IP address of the interface used as the source of M-SEARCH datagrams.

The default of None means that the datagram is sent on the system default
interface and on every private IPv4 address of this host.
"""
