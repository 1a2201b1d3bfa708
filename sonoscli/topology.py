"""Reading the zone group topology, which speakers play together.

Any speaker can describe the whole household with the ZoneGroupTopology
``GetZoneGroupState`` action.
"""

import logging
from collections import namedtuple
from urllib.parse import urlparse

from xml.parsers.expat import ExpatError

import xmltodict

from .exceptions import MetadataUnparseable

_LOG = logging.getLogger(__name__)


class ZoneMember(
    namedtuple("ZoneMemberBase", "uid, room_name, location, ip_address, invisible")
):
    """A speaker in a zone group.

    ``invisible`` is set for bridges, and for satellites and subwoofers
    bonded to another speaker, which are not rooms in their own right.
    """


class ZoneGroup(namedtuple("ZoneGroupBase", "group_id, coordinator, members")):
    """A group of speakers playing in sync.

    Attributes:
        group_id (str): The id of the group, eg ``"RINCON_000XXX1400:46"``.
        coordinator (ZoneMember): The member the others follow, or `None` if
            it is not listed among the members.
        members (tuple): All members, the coordinator included, in document
            order.
    """

    @property
    def room_names(self):
        """list: The names of the visible members, coordinator first."""
        names = [m.room_name for m in self.members if not m.invisible]
        if self.coordinator is not None and self.coordinator.room_name in names:
            names.remove(self.coordinator.room_name)
            names.insert(0, self.coordinator.room_name)
        return names

    @property
    def label(self):
        """str: A description of the group.

        >>> group.label
        'Kitchen, Living Room'
        """
        return ", ".join(self.room_names)


def _member(attributes, invisible=False):
    location = attributes.get("@Location", "")
    return ZoneMember(
        uid=attributes.get("@UUID"),
        room_name=attributes.get("@ZoneName"),
        location=location,
        ip_address=urlparse(location).hostname,
        invisible=invisible or attributes.get("@Invisible") == "1",
    )


def parse_zone_group_state(zone_group_state):
    """Parse the ``ZoneGroupState`` returned by ``GetZoneGroupState``.

    The state looks like this (most attributes omitted)::

        <ZoneGroupState>
          <ZoneGroups>
            <ZoneGroup Coordinator="RINCON_000XXX1400"
                ID="RINCON_000XXX1400:46">
              <ZoneGroupMember
                  Location="http://192.168.1.101:1400/xml/device_description.xml"
                  UUID="RINCON_000XXX1400"
                  ZoneName="Living Room">
                <Satellite UUID="RINCON_000ZZZ1400" ZoneName="Living Room"
                    Location="http://192.168.1.103:1400/xml/..." Invisible="1"/>
              </ZoneGroupMember>
              <ZoneGroupMember UUID="RINCON_000YYY1400" ZoneName="Kitchen"
                  Location="http://192.168.1.102:1400/xml/..."/>
            </ZoneGroup>
          </ZoneGroups>
          <VanishedDevices/>
        </ZoneGroupState>

    Firmwares before 10.1 return the ``<ZoneGroups>`` element as the root.

    Args:
        zone_group_state (str): The XML document.

    Returns:
        list: a list of `ZoneGroup`, in document order.

    Raises:
        MetadataUnparseable: if the document is not XML.
    """
    try:
        document = xmltodict.parse(
            zone_group_state,
            force_list=("ZoneGroup", "ZoneGroupMember", "Satellite"),
        )
    except ExpatError as error:
        raise MetadataUnparseable(zone_group_state, error) from error

    if "ZoneGroupState" in document:
        document = document["ZoneGroupState"] or {}
    zone_groups_element = document.get("ZoneGroups") or {}

    groups = []
    for group in zone_groups_element.get("ZoneGroup", []):
        coordinator_uid = group.get("@Coordinator")
        coordinator = None
        members = []
        for member_attributes in group.get("ZoneGroupMember", []):
            member = _member(member_attributes)
            if member.uid == coordinator_uid:
                coordinator = member
            members.append(member)
            # Satellites are bonded to this member, and never coordinate
            for satellite in member_attributes.get("Satellite", []):
                members.append(_member(satellite, invisible=True))
        groups.append(ZoneGroup(group.get("@ID"), coordinator, tuple(members)))
    return groups


def zone_groups(zone_group_topology):
    """Read the zone groups of the household.

    Args:
        zone_group_topology (ZoneGroupTopology): The ZoneGroupTopology
            service of any speaker in the household.

    Returns:
        list: a list of `ZoneGroup`.
    """
    response = zone_group_topology.GetZoneGroupState()
    groups = parse_zone_group_state(response.get("ZoneGroupState", ""))
    _LOG.debug("Found %d zone groups", len(groups))
    return groups
