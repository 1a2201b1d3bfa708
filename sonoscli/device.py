"""Resolution of UPnP device descriptions into `Device` values.

A Sonos device serves its description at
``http://<ip>:1400/xml/device_description.xml``. The services we need are
spread over the root device and its embedded devices::

    <root xmlns="urn:schemas-upnp-org:device-1-0">
      <device>
        <friendlyName>192.168.1.101 - Sonos One</friendlyName>
        <roomName>Kitchen</roomName>
        <UDN>uuid:RINCON_000XXX1400</UDN>
        <serviceList>
          <service>
            <serviceType>
              urn:schemas-upnp-org:service:ZoneGroupTopology:1
            </serviceType>
            <controlURL>/ZoneGroupTopology/Control</controlURL>
          </service>
        </serviceList>
        <deviceList>
          <device>  <!-- MediaServer: ContentDirectory -->
          <device>  <!-- MediaRenderer: AVTransport, RenderingControl -->
        </deviceList>
      </device>
    </root>
"""

import logging
from collections import namedtuple
from types import MappingProxyType
from urllib.parse import urljoin, urlparse

import requests

from . import config
from .exceptions import MalformedDescriptor, Unreachable
from .services import ServiceKind
from .xml import XML, ns_tag

_LOG = logging.getLogger(__name__)

# Services a device must offer before it can be controlled at all
REQUIRED_SERVICES = (ServiceKind.AV_TRANSPORT,)


class Device(
    namedtuple(
        "DeviceBase",
        "location, room_name, base_url, services, uid, ip_address, model_name, "
        "model_number, serial_number, software_version, hardware_version",
    )
):
    """A resolved Sonos device.

    Immutable. ``services`` maps each `ServiceKind` the device offers to the
    absolute URL of its control endpoint.
    """

    def __str__(self):
        return "<Device '{}' at {}>".format(self.room_name, self.ip_address)

    def to_dict(self):
        """Return the device as a dict of plain values, eg for JSON output."""
        content = self._asdict()
        content["services"] = {kind.value: url for kind, url in self.services.items()}
        return content


def _device_text(device, tag):
    """Return the text of a direct child of a <device> element, or None."""
    text = device.findtext(ns_tag("device", tag))
    return text.strip() if text is not None else None


def parse_descriptor(location, xml_text):
    """Parse a device description document.

    Args:
        location (str): The URL the document was fetched from. Relative
            control URLs are resolved against it, unless the document
            declares a ``URLBase``.
        xml_text (bytes or str): The document.

    Returns:
        Device: the device.

    Raises:
        MalformedDescriptor: if the document is not XML, has no device, no
            room name, or lacks a required service.
    """
    if isinstance(xml_text, str):
        xml_text = xml_text.encode("utf-8")
    try:
        root = XML.fromstring(xml_text)
    except XML.ParseError as error:
        raise MalformedDescriptor(location, "not an XML document") from error

    device = root.find(ns_tag("device", "device"))
    if device is None:
        raise MalformedDescriptor(location, "no <device> element")

    base_url = root.findtext(ns_tag("device", "URLBase")) or location
    base_url = base_url.strip()

    # Sonos puts the room in <roomName>. Other UPnP devices only have a
    # <friendlyName>.
    room_name = _device_text(device, "roomName") or _device_text(
        device, "friendlyName"
    )
    if not room_name:
        raise MalformedDescriptor(location, "no room name")

    services = {}
    # iter() walks the embedded devices too
    for service in root.iter(ns_tag("device", "service")):
        kind = ServiceKind.from_service_type(
            service.findtext(ns_tag("device", "serviceType"))
        )
        control_url = service.findtext(ns_tag("device", "controlURL"))
        if kind is None or not control_url or kind in services:
            continue
        services[kind] = urljoin(base_url, control_url.strip())

    for kind in REQUIRED_SERVICES:
        if kind not in services:
            raise MalformedDescriptor(location, "no {} service".format(kind.value))

    uid = _device_text(device, "UDN") or ""
    if uid.startswith("uuid:"):
        uid = uid[len("uuid:") :]

    return Device(
        location=location,
        room_name=room_name,
        base_url=base_url,
        services=MappingProxyType(services),
        uid=uid,
        ip_address=urlparse(location).hostname,
        model_name=_device_text(device, "modelName"),
        model_number=_device_text(device, "modelNumber"),
        serial_number=_device_text(device, "serialNum"),
        software_version=_device_text(device, "softwareVersion"),
        hardware_version=_device_text(device, "hardwareVersion"),
    )


def resolve(location, timeout=None):
    """Fetch and parse the description of the device at ``location``.

    Args:
        location (str): The URL of the device description, as found in the
            LOCATION header of an SSDP reply, or built by
            `discovery.descriptor_url`.
        timeout (float, optional): The http timeout. Defaults to
            `config.REQUEST_TIMEOUT`.

    Returns:
        Device: the resolved device.

    Raises:
        Unreachable: if the description cannot be fetched.
        MalformedDescriptor: if the description cannot be used.
    """
    if timeout is None:
        timeout = config.REQUEST_TIMEOUT
    try:
        response = requests.get(location, timeout=timeout)
    except requests.exceptions.RequestException as error:
        raise Unreachable(location, str(error)) from error
    if response.status_code != 200:
        raise Unreachable(location, "HTTP status {}".format(response.status_code))

    device = parse_descriptor(location, response.content)
    _LOG.info("Resolved %s", device)
    return device
