"""Discovery run: Zabbix hosts → SNMP FDB poll → network_inventory.

Run::

    python discovery.py                        # all hosts of ZABBIX_GROUP_ID, store to DB
    python discovery.py --single --host sw1    # one host, print entries, no DB write

Every host goes through the same states::

    UNUSABLE_NO_COMMUNITY / UNUSABLE_UNKNOWN_VENDOR   skipped, no SNMP traffic
    POLLING → PERSISTED (normal run) | REPORTED (--single) | FAILED

A failing host is reported to the failure log and never stops the run; only
configuration and directory failures do.
"""

import argparse
import asyncio
import sys
import time
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

import asyncpg

from config import Config, load_config
from db import Database, MacPortEntry
from errors import ConfigError, DirectoryUnavailable, SnmpUnreachable, StorageWriteFailed
from failure_log import FailureLog, FailureReporter, Reason
from fdb_collector import FdbCollector
from vendors import Vendor
from zabbix import Host, ZabbixClient


class HostState(str, Enum):
    UNUSABLE_NO_COMMUNITY = "unusable_no_community"
    UNUSABLE_UNKNOWN_VENDOR = "unusable_unknown_vendor"
    POLLING = "polling"
    PERSISTED = "persisted"
    REPORTED = "reported"
    FAILED = "failed"


@dataclass
class RunSummary:
    states: Counter = field(default_factory=Counter)

    @property
    def hosts(self) -> int:
        return sum(self.states.values())


def classify(host: Host) -> HostState:
    """Pre-poll check: can this host be polled at all?"""
    if not host.has_community:
        return HostState.UNUSABLE_NO_COMMUNITY
    if host.vendor is Vendor.UNKNOWN:
        return HostState.UNUSABLE_UNKNOWN_VENDOR
    return HostState.POLLING


CollectorFactory = Callable[[str, str, Vendor, int], FdbCollector]


class Discovery:
    def __init__(
        self,
        config: Config,
        directory: ZabbixClient,
        db: Database | None,
        reporter: FailureReporter,
        collector_factory: CollectorFactory = FdbCollector,
        out: Callable[[str], None] = print,
    ):
        """
        Args:
            config:            Loaded settings (group id, SNMP timeout).
            directory:         Zabbix client used once to list hosts.
            db:                Inventory store; may be None for --single runs.
            reporter:          Sink for (hostname, reason, detail) failures.
            collector_factory: Builds the per-host SNMP collector.
            out:               Progress/diagnostic output (stdout by default).
        """
        self.config = config
        self.directory = directory
        self.db = db
        self.reporter = reporter
        self.collector_factory = collector_factory
        self.out = out

    async def run(self, single_host: str | None = None) -> RunSummary:
        """Process every host of the configured group (or just *single_host*).

        With *single_host* entries are printed instead of stored.

        Raises:
            DirectoryUnavailable: the host list could not be fetched.
        """
        hosts = await self.directory.list_hosts(self.config.group_id)
        if single_host is not None:
            hosts = [h for h in hosts if h.hostname == single_host]
            if not hosts:
                self.out(f"Host {single_host} not found in group {self.config.group_id}")

        summary = RunSummary()
        for host in hosts:
            state = await self.process_host(host, persist=single_host is None)
            summary.states[state] += 1
        return summary

    async def process_host(self, host: Host, persist: bool = True) -> HostState:
        state = classify(host)
        if state is HostState.UNUSABLE_NO_COMMUNITY:
            self.reporter.report(host.hostname, Reason.EMPTY_COMMUNITY)
            return state
        if state is HostState.UNUSABLE_UNKNOWN_VENDOR:
            self.reporter.report(host.hostname, Reason.UNKNOWN_VENDOR)
            return state

        self.out(f"[{host.hostname}] querying {host.ip} ({host.vendor})")
        started = time.monotonic()
        try:
            collector = self.collector_factory(
                host.ip, host.community, host.vendor, self.config.snmp_timeout
            )
            entries = await collector.collect_async()
        except SnmpUnreachable as exc:
            self.reporter.report(host.hostname, Reason.SNMP_UNREACHABLE, exc.detail)
            if persist:
                await self._log_collection(host, started, None, str(exc))
            return HostState.FAILED

        self.out(f"[{host.hostname}] {len(entries)} MAC entries collected")
        if not persist:
            self._print_entries(entries)
            return HostState.REPORTED

        try:
            await self.db.upsert_inventory(host.hostname, host.ip, host.vendor.value, entries)
        except StorageWriteFailed as exc:
            self.reporter.report(host.hostname, Reason.STORAGE_WRITE_FAILED, exc.detail)
            await self._log_collection(host, started, len(entries), str(exc))
            return HostState.FAILED

        await self._log_collection(host, started, len(entries), None)
        return HostState.PERSISTED

    def _print_entries(self, entries: list[MacPortEntry]) -> None:
        for e in entries:
            self.out(f"  {e.mac} | {e.port}")

    async def _log_collection(
        self, host: Host, started: float, total: int | None, error: str | None
    ) -> None:
        duration_ms = int((time.monotonic() - started) * 1000)
        try:
            await self.db.log_collection(
                switch_name=host.hostname,
                switch_ip=host.ip,
                duration_ms=duration_ms,
                macs_total=total,
                error=error,
            )
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as exc:
            self.out(f"[{host.hostname}] collection_log write failed: {exc}")


# ------------------------------------------------------------------
# CLI entry point
# ------------------------------------------------------------------

async def _run(config: Config, single_host: str | None) -> int:
    db = None
    if single_host is None:
        db = Database(config.dsn)
        try:
            await db.connect()
            await db.ensure_schema()
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, asyncio.TimeoutError) as exc:
            print(f"[error] database {config.db_host}:{config.db_port}: {exc}", file=sys.stderr)
            await db.close()
            return 1

    try:
        async with ZabbixClient(
            config.zabbix_url, config.zabbix_token, config.vendor_templates
        ) as directory:
            discovery = Discovery(config, directory, db, FailureLog(config.fail_log))
            summary = await discovery.run(single_host)
    except DirectoryUnavailable as exc:
        print(f"[error] {exc}", file=sys.stderr)
        return 1
    finally:
        if db:
            await db.close()

    counts = ", ".join(f"{state.value}={n}" for state, n in sorted(summary.states.items()))
    print(f"{summary.hosts} hosts processed ({counts or 'none'})")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Discover MAC addresses on access ports of Zabbix-monitored switches."
    )
    parser.add_argument(
        "--single", action="store_true",
        help="Process a single host (see --host) and print entries instead of storing them",
    )
    parser.add_argument("--host", default="", help="Hostname for --single")
    args = parser.parse_args(argv)

    if args.single and not args.host:
        parser.error("--single requires --host")

    try:
        config = load_config()
    except ConfigError as exc:
        print(f"[error] {exc}", file=sys.stderr)
        return 1

    return asyncio.run(_run(config, args.host if args.single else None))


def cli() -> None:
    sys.exit(main())


if __name__ == "__main__":
    cli()
