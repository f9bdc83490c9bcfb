"""Where skipped and failed hosts are reported.

The orchestrator only calls ``report(hostname, reason, detail)``; what happens
to the line (file, memory, both) is up to the sink.
"""

from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Protocol


class Reason(str, Enum):
    EMPTY_COMMUNITY = "empty_community"
    UNKNOWN_VENDOR = "unknown_vendor"
    SNMP_UNREACHABLE = "snmp_unreachable"
    STORAGE_WRITE_FAILED = "storage_write_failed"


_MESSAGES = {
    Reason.EMPTY_COMMUNITY: (
        "community is empty, its either using not compliant snmp v1/v2 "
        "or there are another problems like invalid macros"
    ),
    Reason.UNKNOWN_VENDOR: (
        "vendor is unknown, cannot validate it, assign valid templates to the host"
    ),
    Reason.SNMP_UNREACHABLE: "SNMP poll failed",
    Reason.STORAGE_WRITE_FAILED: "could not store inventory",
}


def format_reason(hostname: str, reason: Reason, detail: str = "") -> str:
    line = f"Host: {hostname} {_MESSAGES[reason]}"
    if detail:
        line += f" ({detail})"
    return line


class FailureReporter(Protocol):
    def report(self, hostname: str, reason: Reason, detail: str = "") -> None:
        ...


class FailureLog:
    """Append-only text file, one timestamped line per report."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def report(self, hostname: str, reason: Reason, detail: str = "") -> None:
        stamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        with self.path.open("a", encoding="utf-8") as f:
            f.write(f"{stamp} [{reason.value}] {format_reason(hostname, reason, detail)}\n")


class MemoryReporter:
    """Keeps reports in a list; used by tests and single-host runs."""

    def __init__(self):
        self.reports: list[tuple[str, Reason, str]] = []

    def report(self, hostname: str, reason: Reason, detail: str = "") -> None:
        self.reports.append((hostname, reason, detail))

    def reasons_for(self, hostname: str) -> list[Reason]:
        return [r for h, r, _ in self.reports if h == hostname]
