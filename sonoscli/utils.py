# pylint: disable=import-outside-toplevel

"""This module contains utility functions used internally by sonoscli."""

import datetime
import re

FIRST_CAP_RE = re.compile("(.)([A-Z][a-z]+)")
ALL_CAP_RE = re.compile("([a-z0-9])([A-Z])")

# H:MM:SS (any number of hour digits) or MM:SS
TIMESTAMP_RE = re.compile(r"^(?:(\d+):)?([0-5]?\d):([0-5]\d)$")


def camel_to_underscore(string):
    """Convert camelcase to lowercase and underscore.

    Recipe from http://stackoverflow.com/a/1176023

    Args:
        string (str): The string to convert.

    Returns:
        str: The converted string.
    """
    string = FIRST_CAP_RE.sub(r"\1_\2", string)
    return ALL_CAP_RE.sub(r"\1_\2", string).lower()


def prettify(unicode_text):
    """Return a pretty-printed version of a unicode XML string.

    Useful for debugging.

    Args:
        unicode_text (str): A text representation of XML (unicode,
            *not* utf-8).

    Returns:
        str: A pretty-printed version of the input.

    """
    import xml.dom.minidom

    reparsed = xml.dom.minidom.parseString(unicode_text.encode("utf-8"))
    return reparsed.toprettyxml(indent="  ", newl="\n")


def parse_timestamp(timestamp):
    """Convert a ``H:MM:SS`` or ``MM:SS`` string into a timedelta.

    Args:
        timestamp (str): The timestamp, eg ``"0:03:25"`` or ``"3:25"``.

    Returns:
        datetime.timedelta: The duration.

    Raises:
        ValueError: if the string is not a timestamp. Minutes and seconds
            must be below 60.
    """
    match = TIMESTAMP_RE.match(timestamp.strip()) if timestamp else None
    if match is None:
        raise ValueError("invalid timestamp {!r}".format(timestamp))
    hours, minutes, seconds = match.groups()
    return datetime.timedelta(
        hours=int(hours or 0), minutes=int(minutes), seconds=int(seconds)
    )


def format_timestamp(duration):
    """Format a timedelta as ``H:MM:SS``, the form Sonos uses.

    >>> format_timestamp(datetime.timedelta(minutes=3, seconds=25))
    '0:03:25'
    """
    total = int(duration.total_seconds())
    hours, rest = divmod(total, 3600)
    minutes, seconds = divmod(rest, 60)
    return "{}:{:02d}:{:02d}".format(hours, minutes, seconds)


def parse_device_time(value):
    """Convert a time reported by the device into a timedelta.

    The device reports ``NOT_IMPLEMENTED`` or an empty string when there is
    no meaningful time (line-in, nothing loaded). Those become a zero
    duration. Some firmwares append fractions of a second, which are
    dropped.
    """
    if not value or value == "NOT_IMPLEMENTED":
        return datetime.timedelta(0)
    return parse_timestamp(value.split(".")[0])
