"""Exception hierarchy for the switch inventory collector.

Run-fatal: ConfigError, DirectoryUnavailable.
Per-host (reported, never abort the run): MacroNotFound, SnmpUnreachable,
StorageWriteFailed, UnknownVendorError.
Per-entry (skipped inside a walk): MalformedSnmpEntry.
"""


class InventoryError(Exception):
    """Base class for all collector errors."""


class ConfigError(InventoryError):
    """Settings missing or invalid."""


class DirectoryUnavailable(InventoryError):
    """Zabbix API unreachable or returned something we cannot use."""


class MacroNotFound(InventoryError):
    def __init__(self, host_id: str, macro: str):
        super().__init__(f"Macro not found: {macro} (hostid {host_id})")
        self.host_id = host_id
        self.macro = macro


class SnmpUnreachable(InventoryError):
    def __init__(self, ip: str, detail: str):
        super().__init__(f"SNMP unreachable {ip}: {detail}")
        self.ip = ip
        self.detail = detail


class MalformedSnmpEntry(InventoryError):
    def __init__(self, oid: str, detail: str):
        super().__init__(f"Malformed SNMP entry {oid}: {detail}")
        self.oid = oid
        self.detail = detail


class StorageWriteFailed(InventoryError):
    def __init__(self, hostname: str, detail: str):
        super().__init__(f"Storage write failed for {hostname}: {detail}")
        self.hostname = hostname
        self.detail = detail


class UnknownVendorError(InventoryError):
    def __init__(self, vendor):
        super().__init__(f"No OID mapping for vendor {vendor!s}")
        self.vendor = vendor
