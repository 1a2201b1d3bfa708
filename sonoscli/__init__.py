"""sonoscli is a small library to discover and control Sonos speakers."""

import logging

from .core import Speaker, by_ip, by_room, connect, rooms
from .device import Device, resolve
from .discovery import discover
from .exceptions import SonosCliException

# Will be parsed by setup.cfg to determine package metadata
__author__ = "The sonoscli authors"
__version__ = "0.3.0"
__website__ = "https://github.com/sonoscli/sonoscli"
__license__ = "MIT License"

__all__ = [
    "by_ip",
    "by_room",
    "connect",
    "Device",
    "discover",
    "resolve",
    "rooms",
    "SonosCliException",
    "Speaker",
]

# http://docs.python.org/2/howto/logging.html#library-config
# Avoids spurious error messages if no logger is configured by the user

logging.getLogger(__name__).addHandler(logging.NullHandler())
