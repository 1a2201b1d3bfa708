"""Exceptions that are used by sonoscli.

Every error a command can end with is one of the classes below, so callers
can tell the kinds apart without looking at messages.
"""


class SonosCliException(Exception):

    """Base class for all sonoscli exceptions."""


class NoDevicesFound(SonosCliException):

    """Raised when discovery ends without a single Sonos reply."""

    def __init__(self, timeout):
        super().__init__()
        self.timeout = timeout

    def __str__(self):
        return "No Sonos devices answered within {} seconds".format(self.timeout)


class RoomNotFound(SonosCliException):

    """Raised when no discovered device has the requested room name.

    Attributes:
        room_name (str): The room name that was asked for.
        suggestions (list): Discovered room names that are close to it.
    """

    def __init__(self, room_name, suggestions=None):
        super().__init__()
        self.room_name = room_name
        self.suggestions = list(suggestions or [])

    def __str__(self):
        message = "Couldn't find a speaker named '{}'".format(self.room_name)
        if self.suggestions:
            message += ", did you mean '{}'?".format(self.suggestions[0])
        return message


class MalformedDescriptor(SonosCliException):

    """Raised if a device description lacks what is needed to control it."""

    def __init__(self, location, reason):
        super().__init__()
        self.location = location
        self.reason = reason

    def __str__(self):
        return "Malformed device description at {}: {}".format(
            self.location, self.reason
        )


class Unreachable(SonosCliException):

    """Raised when a device cannot be reached at the transport level.

    The original `requests` exception, if any, is available as
    ``__cause__``.
    """

    def __init__(self, url, reason):
        super().__init__()
        self.url = url
        self.reason = reason

    def __str__(self):
        return "Could not reach {}: {}".format(self.url, self.reason)


class DeviceRejectedAction(SonosCliException):

    """A UPnP Fault Code, raised in response to actions sent over the
    network.

    """

    def __init__(self, action, error_code, error_description="", error_xml=""):
        """
        Args:
            action (str): The name of the action that was refused.
            error_code (str): The UPnP Error Code, verbatim, as a string.
            error_description (str): A description of the error. Default is ""
            error_xml (str): The xml containing the error. Default is ""
        """
        super().__init__()
        self.action = action
        self.error_code = error_code
        self.error_description = error_description
        self.error_xml = error_xml

    def __str__(self):
        message = "{} rejected with UPnP Error {}".format(self.action, self.error_code)
        if self.error_description:
            message += ": {}".format(self.error_description)
        return message


class UnknownTransportState(SonosCliException):

    """Raised if the device reports a transport state we do not know."""

    def __init__(self, state):
        super().__init__()
        self.state = state

    def __str__(self):
        return "Unknown transport state '{}'".format(self.state)


class MetadataUnparseable(SonosCliException):

    """A DIDL-Lite item that could not be parsed.

    This is never raised out of a queue listing. It is attached to the
    partial `TrackMetadata` that stands in for the broken item.

    Attributes:
        fragment (str): The raw XML of the item.
        __cause__ (Exception): The original parse error
    """

    def __init__(self, fragment, cause=None):
        super().__init__()
        self.fragment = fragment
        self.__cause__ = cause

    def __str__(self):
        return "Unparseable DIDL-Lite item: {:.60}".format(self.fragment)


class InvalidSeekTarget(SonosCliException, ValueError):

    """Raised if a seek target is not a valid H:MM:SS timestamp."""

    def __init__(self, target):
        super().__init__()
        self.target = target

    def __str__(self):
        return "Invalid seek target '{}', use H:MM:SS or MM:SS".format(self.target)


class InvalidVolumeRange(SonosCliException, ValueError):

    """Raised if a volume outside of 0-100 is requested."""

    def __init__(self, volume):
        super().__init__()
        self.volume = volume

    def __str__(self):
        return "Invalid volume {!r}, must be an integer from 0 to 100".format(
            self.volume
        )


class InvalidQueueTarget(SonosCliException, ValueError):

    """Raised if a queue target is neither a queue position nor a URI."""

    def __init__(self, target):
        super().__init__()
        self.target = target

    def __str__(self):
        return "Invalid queue target {!r}, use a position from 1 or a URI".format(
            self.target
        )
