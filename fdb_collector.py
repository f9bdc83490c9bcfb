"""FDB (MAC address table) collector for access switches via SNMP.

Walks three tables with snmpbulkwalk and joins them on ifIndex:

  * dot1dTpFdbPort (vendor-independent): OID suffix = MAC as 6 decimal
    octets, value = owning interface index
  * interface-name table (per vendor): ifIndex → port name
  * VLAN/port-mode table (per vendor): ifIndex → mode, 1 = access

Only MAC addresses learned on ACCESS ports are returned; trunk and
unclassified ports are dropped.

Run standalone (prints entries, no DB)::

    python fdb_collector.py 10.0.0.1 Cisco
    python fdb_collector.py 10.0.0.1 ProCurve --community private
"""

import asyncio
import os
import subprocess

from db import UNKNOWN_PORT, MacPortEntry
from errors import MalformedSnmpEntry, SnmpUnreachable
from snmp_values import (
    SnmpValue,
    if_index,
    last_component,
    mac_from_oid,
    parse_walk_output,
    port_name,
    vlan_mode,
)
from vendors import ACCESS_MODE, MAC_TABLE_OID, Vendor, get_oids

# net-snmp prints these on stderr when the agent never answers
_UNREACHABLE_MARKERS = ("Timeout", "No Response", "Unknown host")


class FdbCollector:
    """Collect access-port MAC/port pairs from one switch.

    Usage::

        collector = FdbCollector("10.0.0.1", "public", Vendor.CISCO)
        entries = collector.collect()               # synchronous
        entries = await collector.collect_async()   # async (runs in thread)
    """

    SNMP_PORT = 161

    def __init__(self, ip: str, community: str, vendor: Vendor, timeout: int = 5):
        """
        Args:
            ip:        Switch management IP address.
            community: SNMP v2c community string.
            vendor:    Switch vendor; selects the interface and VLAN-mode OIDs.
            timeout:   Per-request SNMP timeout in seconds (no retries).

        Raises:
            UnknownVendorError: vendor has no OID mapping.
        """
        self.ip = ip
        self.community = community
        self.vendor = vendor
        self.timeout = timeout
        self.oids = get_oids(vendor)

    # ------------------------------------------------------------------
    # SNMP transport
    # ------------------------------------------------------------------

    def _snmpbulkwalk(self, oid: str) -> list[tuple[str, SnmpValue]]:
        """Run snmpbulkwalk on *oid* and return parsed varbinds.

        An agent that answers with an error for this subtree yields an empty
        list; only a switch that does not answer at all is an error.

        Raises:
            SnmpUnreachable: timeout, unknown host, or snmpbulkwalk missing.
        """
        cmd = [
            "snmpbulkwalk", "-v2c", "-c", self.community,
            "-t", str(self.timeout), "-r", "0", "-One",
            f"{self.ip}:{self.SNMP_PORT}", oid,
        ]
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                encoding="utf-8",
                errors="replace",
                # whole walk, not one PDU: allow a few round trips past the timeout
                timeout=self.timeout * 6,
            )
        except FileNotFoundError as exc:
            raise SnmpUnreachable(self.ip, "snmpbulkwalk binary not found") from exc
        except OSError as exc:
            raise SnmpUnreachable(self.ip, f"cannot run snmpbulkwalk: {exc}") from exc
        except subprocess.TimeoutExpired as exc:
            raise SnmpUnreachable(self.ip, f"walk of {oid} timed out") from exc

        if result.returncode != 0 and not result.stdout.strip():
            stderr = result.stderr.strip()
            if any(marker in stderr for marker in _UNREACHABLE_MARKERS):
                raise SnmpUnreachable(self.ip, stderr.splitlines()[0])
            return []
        return parse_walk_output(result.stdout)

    def _walk_optional(self, oid: str) -> list[tuple[str, SnmpValue]]:
        """Walk a secondary table; an unreachable agent degrades to no rows."""
        try:
            return self._snmpbulkwalk(oid)
        except SnmpUnreachable as exc:
            print(f"[{self.ip}] walk {oid} failed, continuing without it: {exc.detail}")
            return []

    # ------------------------------------------------------------------
    # Table builders
    # ------------------------------------------------------------------

    def _build_port_names(self, varbinds: list[tuple[str, SnmpValue]]) -> dict[str, str]:
        """ifIndex → port name."""
        return {last_component(oid): port_name(value) for oid, value in varbinds}

    def _build_access_ports(self, varbinds: list[tuple[str, SnmpValue]]) -> set[str]:
        """ifIndexes whose VLAN-mode value is the access code (1)."""
        return {
            last_component(oid)
            for oid, value in varbinds
            if vlan_mode(value) == ACCESS_MODE
        }

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def collect(self) -> list[MacPortEntry]:
        """Poll the switch and return access-port MAC/port pairs.

        Output order follows the MAC-table walk; the same MAC may appear
        on several ports.

        Raises:
            SnmpUnreachable: the switch did not answer the MAC-table walk.
        """
        mac_table = self._snmpbulkwalk(MAC_TABLE_OID)
        port_names = self._build_port_names(self._walk_optional(self.oids.interface_name))
        access_ports = self._build_access_ports(self._walk_optional(self.oids.vlan_mode))

        entries: list[MacPortEntry] = []
        for oid, value in mac_table:
            try:
                mac = mac_from_oid(oid, MAC_TABLE_OID)
            except MalformedSnmpEntry as exc:
                print(f"[{self.ip}] skipping {exc}")
                continue

            ifidx = if_index(value)
            if ifidx not in access_ports:
                continue
            entries.append(MacPortEntry(mac=mac, port=port_names.get(ifidx, UNKNOWN_PORT)))
        return entries

    async def collect_async(self) -> list[MacPortEntry]:
        """Async wrapper: runs collect() in a worker thread."""
        return await asyncio.to_thread(self.collect)


# ------------------------------------------------------------------
# CLI entry point
# ------------------------------------------------------------------

def _main():
    import argparse

    parser = argparse.ArgumentParser(
        description="Print access-port MAC/port pairs of one switch."
    )
    parser.add_argument("ip", help="Switch management IP")
    parser.add_argument("vendor", help="Cisco, Aruba or ProCurve")
    parser.add_argument(
        "--community", default=os.environ.get("SNMP_COMMUNITY", ""),
        help="SNMP v2c community (default: $SNMP_COMMUNITY)",
    )
    parser.add_argument("--timeout", type=int, default=5)
    args = parser.parse_args()

    collector = FdbCollector(args.ip, args.community, Vendor.parse(args.vendor), args.timeout)
    try:
        entries = collector.collect()
    except SnmpUnreachable as exc:
        raise SystemExit(f"[error] {exc}")
    for e in entries:
        print(f"{e.mac} || {e.port}")
    print(f"[{args.ip}] {len(entries)} MAC (access only)")


if __name__ == "__main__":
    _main()
