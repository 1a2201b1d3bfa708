# pylint: disable=invalid-name

"""Classes representing the Sonos UPnP services sonoscli talks to.

>>> from sonoscli import by_ip
>>> speaker = by_ip('192.168.1.102')
>>> print(RenderingControl(speaker.device).GetMute([('InstanceID', 0),
...     ('Channel', 'Master')]))
{'CurrentMute': '0'}
>>> r = ContentDirectory(speaker.device).Browse([
...    ('ObjectID', 'Q:0'),
...    ('BrowseFlag', 'BrowseDirectChildren'),
...    ('Filter', '*'),
...    ('StartingIndex', '0'),
...    ('RequestedCount', '100'),
...    ('SortCriteria', '')
...    ])
>>> print(r['Result'])
<DIDL-Lite xmlns="urn:schemas-upnp-org:metadata ...
"""

# UPnP Spec at http://upnp.org/specs/arch/UPnP-arch-DeviceArchitecture-v1.0.pdf

import logging
from enum import Enum

from .exceptions import DeviceRejectedAction, MalformedDescriptor
from .soap import SoapMessage

log = logging.getLogger(__name__)  # pylint: disable=C0103


class ServiceKind(Enum):
    """The UPnP services sonoscli knows how to address."""

    AV_TRANSPORT = "AVTransport"
    RENDERING_CONTROL = "RenderingControl"
    ZONE_GROUP_TOPOLOGY = "ZoneGroupTopology"
    CONTENT_DIRECTORY = "ContentDirectory"

    @property
    def service_type(self):
        """str: The service type URN, eg
        ``urn:schemas-upnp-org:service:AVTransport:1``."""
        return "urn:schemas-upnp-org:service:{}:1".format(self.value)

    @classmethod
    def from_service_type(cls, service_type):
        """Return the kind for a service type URN, or `None`.

        Any version of the service is accepted, and URNs outside the UPnP
        domain (the Sonos specific services) are ignored.
        """
        parts = (service_type or "").strip().split(":")
        if len(parts) != 5 or parts[:3] != ["urn", "schemas-upnp-org", "service"]:
            return None
        for kind in cls:
            if kind.value == parts[3]:
                return kind
        return None


class Service:
    """A class representing a UPnP service on a resolved `Device`.

    This is the base class for all service classes. This class has a
    dynamic method dispatcher. Calls to methods which are not explicitly
    defined here are dispatched automatically to the service action with the
    same name, eg ``AVTransport(device).Play([('InstanceID', 0), ('Speed', 1)])``.
    """

    #: `ServiceKind`: The kind of service, set by subclasses.
    kind = None

    def __init__(self, device):
        """
        Args:
            device (Device): The `Device` to which the UPnP Actions will be
                sent
        """

        #: `Device`: The device to which UPnP Actions are sent
        self.device = device

        # From table 3.3 in
        # http://upnp.org/specs/arch/UPnP-arch-DeviceArchitecture-v1.1.pdf
        # Error codes between 700-799 are defined for particular
        # services, and may be overriden in subclasses. Error codes >800
        # are generally SONOS specific.
        self.UPNP_ERRORS = {
            400: "Bad Request",
            401: "Invalid Action",
            402: "Invalid Args",
            404: "Invalid Var",
            412: "Precondition Failed",
            501: "Action Failed",
            600: "Argument Value Invalid",
            601: "Argument Value Out of Range",
            602: "Optional Action Not Implemented",
            603: "Out Of Memory",
            604: "Human Intervention Required",
            605: "String Argument Too Long",
            606: "Action Not Authorized",
            607: "Signature Failure",
            608: "Signature Missing",
            609: "Not Encrypted",
            610: "Invalid Sequence",
            611: "Invalid Control URL",
            612: "No Such Session",
        }

    def __repr__(self):
        return "<{} for {}>".format(self.__class__.__name__, self.device.room_name)

    def __getattr__(self, action):
        """Called when a method on the instance cannot be found.

        Causes an action to be sent to the UPnP service. See also
        `object.__getattr__`.

        Args:
            action (str): The name of the unknown method.
        Returns:
            callable: The callable to be invoked.
        """
        # Private and special names are never UPnP actions
        if action.startswith("_"):
            raise AttributeError(action)

        def _dispatcher(self, *args, **kwargs):
            """Dispatch to send_command."""
            return self.send_command(action, *args, **kwargs)

        # rename the function so it appears to be the called method.
        _dispatcher.__name__ = action
        method = _dispatcher.__get__(self, self.__class__)
        # cache the bound method on this instance, so that next time we
        # don't have to go through this again
        setattr(self, action, method)
        log.debug("Dispatching method %s", action)
        return method

    @property
    def service_type(self):
        """str: The UPnP service type URN."""
        return self.kind.service_type

    @property
    def control_url(self):
        """str: The absolute control URL of this service on the device.

        Raises:
            MalformedDescriptor: if the device description did not list
                this service.
        """
        try:
            return self.device.services[self.kind]
        except KeyError:
            raise MalformedDescriptor(
                self.device.location,
                "no {} service".format(self.kind.value),
            ) from None

    def build_command(self, action, args=None, timeout=None):
        """Build a SOAP request.

        Args:
            action (str): the name of an action (a string as specified in the
                service description XML file) to be sent.
            args (list, optional): Relevant arguments as a list of (name,
                value) tuples, in the order the action defines them.
            timeout (float, optional): The http timeout. Defaults to
                `config.REQUEST_TIMEOUT`.

        Returns:
            SoapMessage: the message, ready to be called.
        """
        request_args = {} if timeout is None else {"timeout": timeout}
        return SoapMessage(
            self.control_url,
            action,
            parameters=args,
            namespace=self.service_type,
            **request_args
        )

    def invoke(self, action, args=None, timeout=None):
        """Send an action to the device, and return the raw result.

        Args:
            action (str): the name of the action.
            args (list, optional): Relevant arguments as a list of (name,
                value) tuples.
            timeout (float, optional): The http timeout.

        Returns:
            `SoapSuccess` or `SoapFault`: the outcome.

        Raises:
            `Unreachable`: if the device cannot be contacted.
            `MalformedDescriptor`: if the device lacks this service.
        """
        message = self.build_command(action, args, timeout=timeout)
        log.debug("Sending %s %s to %s", action, args, self.device.ip_address)
        return message.call()

    def send_command(self, action, args=None, timeout=None):
        """Send a command to a Sonos device.

        Args:
            action (str): the name of an action (a string as specified in the
                service description XML file) to be sent.
            args (list, optional): Relevant arguments as a list of (name,
                value) tuples.
            timeout (float, optional): The http timeout.

        Returns:
             dict: a dict of ``{argument_name, value}`` items.

        Raises:
            `DeviceRejectedAction`: if the device returns a fault.
            `Unreachable`: if the device cannot be contacted.
        """
        result = self.invoke(action, args, timeout=timeout)
        if result.ok:
            return result.fields
        description = self.describe_error(result.fault_code) or result.fault_string
        log.debug(
            "%s on %s failed with %s",
            action,
            self.device.ip_address,
            result.fault_code,
        )
        raise DeviceRejectedAction(
            action,
            result.fault_code,
            error_description=description,
            error_xml=result.error_xml,
        )

    def describe_error(self, error_code):
        """Look up the description of a UPnP error code for this service.

        Args:
            error_code (str): The code, as reported by the device.

        Returns:
            str: The description, or "" for codes which are not known.
        """
        try:
            return self.UPNP_ERRORS.get(int(error_code), "")
        except (TypeError, ValueError):
            return ""


class ZoneGroupTopology(Service):
    """Sonos zone group topology service, for functions relating to network
    topology, diagnostics and updates."""

    kind = ServiceKind.ZONE_GROUP_TOPOLOGY


class ContentDirectory(Service):
    """UPnP standard Content Directory service, for functions relating to
    browsing, searching and listing available music."""

    kind = ServiceKind.CONTENT_DIRECTORY

    def __init__(self, device):
        super().__init__(device)
        # For error codes, see table 2.7.16 in
        # http://upnp.org/specs/av/UPnP-av-ContentDirectory-v1-Service.pdf
        self.UPNP_ERRORS.update(
            {
                701: "No such object",
                702: "Invalid CurrentTagValue",
                703: "Invalid NewTagValue",
                704: "Required tag",
                705: "Read only tag",
                706: "Parameter Mismatch",
                708: "Unsupported or invalid search criteria",
                709: "Unsupported or invalid sort criteria",
                710: "No such container",
                711: "Restricted object",
                712: "Bad metadata",
                713: "Restricted parent object",
                714: "No such source resource",
                715: "Resource access denied",
                716: "Transfer busy",
                717: "No such file transfer",
                718: "No such destination resource",
                719: "Destination resource access denied",
                720: "Cannot process the request",
            }
        )


class RenderingControl(Service):
    """UPnP standard rendering control service, for functions relating to
    playback rendering, eg bass, treble, volume and EQ."""

    kind = ServiceKind.RENDERING_CONTROL


class AVTransport(Service):
    """UPnP standard AV Transport service, for functions relating to transport
    management, eg play, stop, seek, playlists etc."""

    kind = ServiceKind.AV_TRANSPORT

    def __init__(self, device):
        super().__init__(device)
        # For error codes, see
        # http://upnp.org/specs/av/UPnP-av-AVTransport-v1-Service.pdf
        self.UPNP_ERRORS.update(
            {
                701: "Transition not available",
                702: "No contents",
                703: "Read error",
                704: "Format not supported for playback",
                705: "Transport is locked",
                706: "Write error",
                707: "Media is protected or not writeable",
                708: "Format not supported for recording",
                709: "Media is full",
                710: "Seek mode not supported",
                711: "Illegal seek target",
                712: "Play mode not supported",
                713: "Record quality not supported",
                714: "Illegal MIME-Type",
                715: 'Content "BUSY"',
                716: "Resource Not found",
                717: "Play speed not supported",
                718: "Invalid InstanceID",
                737: "No DNS Server",
                738: "Bad Domain Name",
                739: "Server Error",
            }
        )

