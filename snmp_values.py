"""Typed SNMP values and the per-table normalizers used by FdbCollector.

snmpbulkwalk with ``-One`` prints one varbind per line, numeric OID and
numeric enums::

    .1.3.6.1.2.1.17.4.3.1.2.0.20.41.48.55.2 = INTEGER: 5
    .1.3.6.1.2.1.2.2.1.2.5 = STRING: "GigabitEthernet0/5"
    .1.3.6.1.2.1.31.1.1.1.1.7 = Hex-STRING: 47 69 30 2F 37

Every value becomes one of ``Text``, ``Bytes`` or ``Integer``.
"""

from dataclasses import dataclass
from typing import Union

from errors import MalformedSnmpEntry


@dataclass(frozen=True)
class Text:
    value: str


@dataclass(frozen=True)
class Bytes:
    value: bytes


@dataclass(frozen=True)
class Integer:
    value: int


SnmpValue = Union[Text, Bytes, Integer]

_INTEGER_TYPES = {"INTEGER", "Gauge32", "Counter32", "Counter64", "Unsigned32", "Timeticks"}
_TEXT_TYPES = {"STRING", "OID", "IpAddress", "Network Address"}


def _decode(type_name: str, raw: str) -> SnmpValue | None:
    raw = raw.strip()
    if type_name in _INTEGER_TYPES:
        # Timeticks: (12345) 0:02:03.45
        if raw.startswith("("):
            raw, sep, _ = raw[1:].partition(")")
            if not sep:
                return None
        try:
            return Integer(int(raw))
        except ValueError:
            return None
    if type_name == "Hex-STRING":
        try:
            return Bytes(bytes.fromhex(raw))
        except ValueError:
            return None
    if type_name in _TEXT_TYPES:
        return Text(raw)
    return None


def parse_walk_output(output: str) -> list[tuple[str, SnmpValue]]:
    """Parse snmpbulkwalk stdout into ``[(oid, value), ...]`` in walk order.

    OIDs are returned without the leading dot.  Lines that do not start a
    varbind are continuations of a wrapped Hex-STRING / STRING value.
    Varbinds of unsupported types (``No Such Object``, ``""`` etc.) are
    dropped.
    """
    raw_varbinds: list[list[str]] = []
    for line in output.splitlines():
        if not line.strip():
            continue
        if line.startswith(".") and " = " in line:
            oid, rest = line.split(" = ", 1)
            raw_varbinds.append([oid.strip(), rest])
        elif raw_varbinds:
            raw_varbinds[-1][1] += " " + line.strip()

    result: list[tuple[str, SnmpValue]] = []
    for oid, rest in raw_varbinds:
        type_name, sep, raw = rest.partition(": ")
        if not sep:
            continue
        value = _decode(type_name.strip(), raw)
        if value is not None:
            result.append((oid.lstrip("."), value))
    return result


# ------------------------------------------------------------------
# Per-table normalizers
# ------------------------------------------------------------------

def port_name(value: SnmpValue) -> str:
    """Interface-name table value → display name, surrounding quotes trimmed."""
    if isinstance(value, Integer):
        return str(value.value)
    if isinstance(value, Bytes):
        text = value.value.decode("utf-8", errors="replace")
    else:
        text = value.value
    return text.strip().strip('"')


def vlan_mode(value: SnmpValue) -> int | None:
    """VLAN/port-mode table value → integer mode code, or None if not numeric."""
    if isinstance(value, Integer):
        return value.value
    if isinstance(value, Text):
        try:
            return int(value.value.strip().strip('"'))
        except ValueError:
            return None
    return None


def if_index(value: SnmpValue) -> str:
    """MAC-table value → owning interface index in string form."""
    if isinstance(value, Integer):
        return str(value.value)
    if isinstance(value, Bytes):
        return value.value.decode("ascii", errors="replace").strip()
    return value.value.strip().strip('"')


def last_component(oid: str) -> str:
    return oid.rsplit(".", 1)[-1]


def mac_from_oid(oid: str, base: str) -> str:
    """Turn the six decimal octets trailing *base* into ``AA:BB:CC:DD:EE:FF``.

    Example: ``<base>.0.20.41.48.55.2`` → ``00:14:29:30:37:02``.

    Raises:
        MalformedSnmpEntry: fewer than six trailing components, or an octet
                            that is not an integer in 0–255.
    """
    oid = oid.lstrip(".")
    base = base.lstrip(".")
    suffix = oid[len(base) + 1:] if oid.startswith(base + ".") else oid
    parts = suffix.split(".") if suffix else []
    if len(parts) < 6:
        raise MalformedSnmpEntry(oid, f"expected 6 MAC components, got {len(parts)}")

    octets = []
    for part in parts[-6:]:
        try:
            octet = int(part)
        except ValueError:
            raise MalformedSnmpEntry(oid, f"non-numeric component '{part}'") from None
        if not 0 <= octet <= 255:
            raise MalformedSnmpEntry(oid, f"component {octet} out of octet range")
        octets.append(f"{octet:02X}")
    return ":".join(octets)
