"""Unit tests for FdbCollector (fdb_collector.py).

No network access or snmpbulkwalk binary required; _snmpbulkwalk is mocked
with parsed varbinds, subprocess.run with realistic net-snmp output.

Run:
    python -m pytest tests/test_fdb_collector.py -v
"""

import os
import subprocess
import sys
from unittest.mock import patch

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from db import MacPortEntry
from errors import SnmpUnreachable, UnknownVendorError
from fdb_collector import FdbCollector
from snmp_values import Bytes, Integer, Text
from vendors import MAC_TABLE_OID, Vendor, get_oids


# ------------------------------------------------------------------
# Shared test data: one Cisco access switch
# ------------------------------------------------------------------

CISCO = get_oids(Vendor.CISCO)
IF_OID = CISCO.interface_name
VLAN_OID = CISCO.vlan_mode

# 00:14:29:30:37:02 on ifIndex 5, AA:BB:CC:DD:EE:FF on ifIndex 10 (trunk)
MAC_TABLE = [
    (f"{MAC_TABLE_OID}.0.20.41.48.55.2", Integer(5)),
    (f"{MAC_TABLE_OID}.170.187.204.221.238.255", Integer(10)),
]

IF_TABLE = [
    (f"{IF_OID}.5", Text('"Gi0/5"')),
    (f"{IF_OID}.6", Text("Gi0/6")),
    (f"{IF_OID}.10", Text("Gi0/10")),
]

VLAN_TABLE = [
    (f"{VLAN_OID}.5", Integer(1)),    # access
    (f"{VLAN_OID}.6", Integer(1)),    # access
    (f"{VLAN_OID}.10", Integer(2)),   # trunk
]


def _collector(ip="10.0.0.1", vendor=Vendor.CISCO):
    return FdbCollector(ip, "public", vendor)


def _completed(stdout="", stderr="", returncode=0):
    return subprocess.CompletedProcess(
        args=["snmpbulkwalk"], returncode=returncode, stdout=stdout, stderr=stderr
    )


# ------------------------------------------------------------------
# collect()
# ------------------------------------------------------------------

class TestCollect:
    """
    _snmpbulkwalk call order inside collect():
      1. MAC_TABLE_OID
      2. vendor interface-name OID
      3. vendor VLAN-mode OID
    """

    def setup_method(self):
        self.c = _collector()

    def test_end_to_end_single_access_mac(self):
        with patch.object(self.c, "_snmpbulkwalk", side_effect=[
            [(f"{MAC_TABLE_OID}.0.20.41.48.55.2", Integer(5))],
            [(f"{IF_OID}.5", Text("Gi0/5"))],
            [(f"{VLAN_OID}.5", Integer(1))],
        ]):
            entries = self.c.collect()

        assert entries == [MacPortEntry(mac="00:14:29:30:37:02", port="Gi0/5")]

    def test_walks_vendor_tables_in_order(self):
        with patch.object(self.c, "_snmpbulkwalk", side_effect=[[], [], []]) as m:
            self.c.collect()

        walked = [c.args[0] for c in m.call_args_list]
        assert walked == [MAC_TABLE_OID, IF_OID, VLAN_OID]

    def test_procurve_uses_ifname_table(self):
        c = _collector(vendor=Vendor.PROCURVE)
        with patch.object(c, "_snmpbulkwalk", side_effect=[[], [], []]) as m:
            c.collect()

        walked = [call.args[0] for call in m.call_args_list]
        assert walked[1] == "1.3.6.1.2.1.31.1.1.1.1"
        assert walked[2] == "1.3.6.1.2.1.17.7.1.4.5.1.1"

    def test_trunk_mac_filtered_out(self):
        with patch.object(self.c, "_snmpbulkwalk", side_effect=[MAC_TABLE, IF_TABLE, VLAN_TABLE]):
            entries = self.c.collect()

        macs = [e.mac for e in entries]
        assert "AA:BB:CC:DD:EE:FF" not in macs
        assert macs == ["00:14:29:30:37:02"]

    def test_port_name_quotes_trimmed(self):
        with patch.object(self.c, "_snmpbulkwalk", side_effect=[MAC_TABLE, IF_TABLE, VLAN_TABLE]):
            entries = self.c.collect()

        assert entries[0].port == "Gi0/5"

    def test_unclassified_port_dropped(self):
        """ifIndex absent from the VLAN-mode table is not an access port."""
        with patch.object(self.c, "_snmpbulkwalk", side_effect=[
            [(f"{MAC_TABLE_OID}.0.20.41.48.55.2", Integer(7))],
            [(f"{IF_OID}.7", Text("Gi0/7"))],
            VLAN_TABLE,
        ]):
            assert self.c.collect() == []

    def test_missing_port_name_uses_unknown_port(self):
        with patch.object(self.c, "_snmpbulkwalk", side_effect=[
            [(f"{MAC_TABLE_OID}.0.20.41.48.55.2", Integer(5))],
            [],  # empty interface table
            [(f"{VLAN_OID}.5", Integer(1))],
        ]):
            entries = self.c.collect()

        assert entries == [MacPortEntry(mac="00:14:29:30:37:02", port="Unknown Port")]

    def test_empty_vlan_table_drops_everything(self):
        with patch.object(self.c, "_snmpbulkwalk", side_effect=[MAC_TABLE, IF_TABLE, []]):
            assert self.c.collect() == []

    def test_malformed_mac_oid_skipped(self):
        with patch.object(self.c, "_snmpbulkwalk", side_effect=[
            [
                (f"{MAC_TABLE_OID}.20.41.48", Integer(5)),           # too short
                (f"{MAC_TABLE_OID}.0.20.41.48.55.2", Integer(5)),
            ],
            IF_TABLE,
            VLAN_TABLE,
        ]):
            entries = self.c.collect()

        assert [e.mac for e in entries] == ["00:14:29:30:37:02"]

    def test_if_index_as_text_value(self):
        """Owning ifIndex reported as a string still joins the tables."""
        with patch.object(self.c, "_snmpbulkwalk", side_effect=[
            [(f"{MAC_TABLE_OID}.0.20.41.48.55.2", Text("6"))],
            IF_TABLE,
            VLAN_TABLE,
        ]):
            entries = self.c.collect()

        assert entries == [MacPortEntry(mac="00:14:29:30:37:02", port="Gi0/6")]

    def test_port_name_as_bytes(self):
        with patch.object(self.c, "_snmpbulkwalk", side_effect=[
            [(f"{MAC_TABLE_OID}.0.20.41.48.55.2", Integer(5))],
            [(f"{IF_OID}.5", Bytes(b"Gi0/5"))],
            [(f"{VLAN_OID}.5", Integer(1))],
        ]):
            entries = self.c.collect()

        assert entries[0].port == "Gi0/5"

    def test_same_mac_on_two_access_ports_kept_in_walk_order(self):
        with patch.object(self.c, "_snmpbulkwalk", side_effect=[
            [
                (f"{MAC_TABLE_OID}.1.2.3.4.5.6", Integer(6)),
                (f"{MAC_TABLE_OID}.0.20.41.48.55.2", Integer(5)),
            ],
            IF_TABLE,
            VLAN_TABLE,
        ]):
            entries = self.c.collect()

        assert [e.port for e in entries] == ["Gi0/6", "Gi0/5"]
        assert entries[0].mac == "01:02:03:04:05:06"

    def test_unreachable_mac_walk_raises(self):
        with patch.object(
            self.c, "_snmpbulkwalk", side_effect=SnmpUnreachable("10.0.0.1", "Timeout")
        ) as m:
            with pytest.raises(SnmpUnreachable):
                self.c.collect()

        assert m.call_count == 1  # no further walks, no retry

    def test_secondary_walk_failure_degrades(self):
        """Interface table unreachable → entries still emitted as Unknown Port."""
        with patch.object(self.c, "_snmpbulkwalk", side_effect=[
            [(f"{MAC_TABLE_OID}.0.20.41.48.55.2", Integer(5))],
            SnmpUnreachable("10.0.0.1", "Timeout"),
            [(f"{VLAN_OID}.5", Integer(1))],
        ]):
            entries = self.c.collect()

        assert entries == [MacPortEntry(mac="00:14:29:30:37:02", port="Unknown Port")]

    def test_all_empty_snmp_responses(self):
        with patch.object(self.c, "_snmpbulkwalk", side_effect=[[], [], []]):
            assert self.c.collect() == []


# ------------------------------------------------------------------
# _snmpbulkwalk()
# ------------------------------------------------------------------

class TestSnmpBulkWalk:
    def setup_method(self):
        self.c = _collector()

    def test_command_line(self):
        with patch("fdb_collector.subprocess.run", return_value=_completed()) as run:
            self.c._snmpbulkwalk(MAC_TABLE_OID)

        cmd = run.call_args.args[0]
        assert cmd[0] == "snmpbulkwalk"
        assert cmd[cmd.index("-v2c") + 1:cmd.index("-v2c") + 3] == ["-c", "public"]
        assert cmd[cmd.index("-t") + 1] == "5"
        assert cmd[cmd.index("-r") + 1] == "0"
        assert cmd[-2:] == ["10.0.0.1:161", MAC_TABLE_OID]

    def test_parses_output(self):
        stdout = (
            ".1.3.6.1.2.1.17.4.3.1.2.0.20.41.48.55.2 = INTEGER: 5\n"
            ".1.3.6.1.2.1.17.4.3.1.2.0.20.41.48.55.3 = INTEGER: 6\n"
        )
        with patch("fdb_collector.subprocess.run", return_value=_completed(stdout)):
            result = self.c._snmpbulkwalk(MAC_TABLE_OID)

        assert result == [
            ("1.3.6.1.2.1.17.4.3.1.2.0.20.41.48.55.2", Integer(5)),
            ("1.3.6.1.2.1.17.4.3.1.2.0.20.41.48.55.3", Integer(6)),
        ]

    def test_timeout_raises_unreachable(self):
        proc = _completed(stderr="Timeout: No Response from 10.0.0.1:161.", returncode=1)
        with patch("fdb_collector.subprocess.run", return_value=proc):
            with pytest.raises(SnmpUnreachable) as exc_info:
                self.c._snmpbulkwalk(MAC_TABLE_OID)

        assert exc_info.value.ip == "10.0.0.1"

    def test_subprocess_timeout_raises_unreachable(self):
        with patch(
            "fdb_collector.subprocess.run",
            side_effect=subprocess.TimeoutExpired(cmd="snmpbulkwalk", timeout=30),
        ):
            with pytest.raises(SnmpUnreachable):
                self.c._snmpbulkwalk(MAC_TABLE_OID)

    def test_missing_binary_raises_unreachable(self):
        with patch("fdb_collector.subprocess.run", side_effect=FileNotFoundError):
            with pytest.raises(SnmpUnreachable):
                self.c._snmpbulkwalk(MAC_TABLE_OID)

    def test_binary_not_executable_raises_unreachable(self):
        with patch("fdb_collector.subprocess.run", side_effect=PermissionError(13, "denied")):
            with pytest.raises(SnmpUnreachable):
                self.c._snmpbulkwalk(MAC_TABLE_OID)

    def test_agent_error_is_empty_table(self):
        proc = _completed(stderr="Error in packet: noSuchName", returncode=2)
        with patch("fdb_collector.subprocess.run", return_value=proc):
            assert self.c._snmpbulkwalk(VLAN_OID) == []

    def test_no_such_object_is_empty_table(self):
        stdout = ".1.3.6.1.4.1.9.9.68.1.2.2.1.2 = No Such Object available on this agent at this OID\n"
        with patch("fdb_collector.subprocess.run", return_value=_completed(stdout)):
            assert self.c._snmpbulkwalk(VLAN_OID) == []


# ------------------------------------------------------------------
# collect_async()
# ------------------------------------------------------------------

class TestCollectAsync:
    @pytest.mark.asyncio
    async def test_async_returns_same_entries_as_sync(self):
        c = _collector()
        with patch.object(c, "_snmpbulkwalk", side_effect=[MAC_TABLE, IF_TABLE, VLAN_TABLE]):
            entries = await c.collect_async()

        assert entries == [MacPortEntry(mac="00:14:29:30:37:02", port="Gi0/5")]

    @pytest.mark.asyncio
    async def test_async_empty(self):
        c = _collector()
        with patch.object(c, "_snmpbulkwalk", side_effect=[[], [], []]):
            assert await c.collect_async() == []


# ------------------------------------------------------------------
# Constructor
# ------------------------------------------------------------------

class TestFdbCollectorInit:
    def test_default_timeout(self):
        assert FdbCollector("1.2.3.4", "x", Vendor.CISCO).timeout == 5

    def test_custom_timeout(self):
        assert FdbCollector("1.2.3.4", "x", Vendor.CISCO, timeout=2).timeout == 2

    def test_vendor_oids_resolved(self):
        c = FdbCollector("1.2.3.4", "x", Vendor.ARUBA)
        assert c.oids == get_oids(Vendor.ARUBA)

    def test_unknown_vendor_rejected(self):
        with pytest.raises(UnknownVendorError):
            FdbCollector("1.2.3.4", "x", Vendor.UNKNOWN)


# ------------------------------------------------------------------
# Real subprocess against a stand-in snmpbulkwalk
# ------------------------------------------------------------------

@pytest.mark.skipif(sys.platform == "win32", reason="needs /bin/sh")
class TestNonUtf8Output:
    def test_invalid_byte_replaced(self, fake_snmpbulkwalk):
        result = _collector()._snmpbulkwalk(IF_OID)
        assert result == [(f"{IF_OID}.5", Text('"Port caf\ufffd"'))]

    def test_collect_keeps_entry(self, fake_snmpbulkwalk):
        entries = _collector().collect()
        assert entries == [MacPortEntry(mac="00:14:29:30:37:02", port="Port caf\ufffd")]
