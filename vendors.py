"""Static vendor → OID registry.

The MAC forwarding table (dot1dTpFdbPort) is the same on every vendor; the
interface-name and VLAN/port-mode tables differ.  Hosts whose vendor is
``Unknown`` are rejected by the orchestrator before any SNMP traffic, so
``get_oids()`` never falls back to a default.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Mapping

from errors import UnknownVendorError

MAC_TABLE_OID = "1.3.6.1.2.1.17.4.3.1.2"   # dot1dTpFdbPort

# vmVlanType / dot1qPvid value meaning "access port"
ACCESS_MODE = 1


class Vendor(str, Enum):
    CISCO = "Cisco"
    ARUBA = "Aruba"
    PROCURVE = "ProCurve"
    UNKNOWN = "Unknown"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, name: str) -> "Vendor":
        """Case-insensitive lookup by display name.

        Raises:
            UnknownVendorError: name is not one of the supported vendors.
        """
        wanted = name.strip().lower()
        for vendor in cls:
            if vendor is not cls.UNKNOWN and vendor.value.lower() == wanted:
                return vendor
        raise UnknownVendorError(name)


@dataclass(frozen=True)
class VendorOids:
    interface_name: str
    vlan_mode: str


_REGISTRY: dict[Vendor, VendorOids] = {
    Vendor.CISCO: VendorOids(
        interface_name="1.3.6.1.2.1.2.2.1.2",            # ifDescr
        vlan_mode="1.3.6.1.4.1.9.9.68.1.2.2.1.2",        # CISCO-VLAN-MEMBERSHIP-MIB
    ),
    Vendor.ARUBA: VendorOids(
        interface_name="1.3.6.1.2.1.2.2.1.2",            # ifDescr
        vlan_mode="1.3.6.1.2.1.17.7.1.4.5.1.1",          # dot1qPvid
    ),
    Vendor.PROCURVE: VendorOids(
        interface_name="1.3.6.1.2.1.31.1.1.1.1",         # ifName
        vlan_mode="1.3.6.1.2.1.17.7.1.4.5.1.1",          # dot1qPvid
    ),
}


def get_oids(vendor: Vendor) -> VendorOids:
    """Return the interface-name and VLAN-mode OIDs for *vendor*.

    Raises:
        UnknownVendorError: vendor is ``Unknown`` or has no registry row.
    """
    try:
        return _REGISTRY[vendor]
    except KeyError:
        raise UnknownVendorError(vendor) from None


def vendor_from_templates(
    template_ids: Iterable[str],
    mapping: Mapping[str, Vendor],
) -> Vendor:
    """Classify a host by its linked templates.

    The first template (in directory order) present in *mapping* decides the
    vendor; later templates are ignored even if they map to another vendor.
    """
    for template_id in template_ids:
        vendor = mapping.get(str(template_id))
        if vendor is not None:
            return vendor
    return Vendor.UNKNOWN
