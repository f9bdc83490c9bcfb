"""Database layer for the switch inventory. PostgreSQL via asyncpg."""

from dataclasses import dataclass

import asyncpg

from errors import StorageWriteFailed

UNKNOWN_PORT = "Unknown Port"


@dataclass(frozen=True)
class MacPortEntry:
    mac: str
    port: str = UNKNOWN_PORT


SCHEMA = """
CREATE TABLE IF NOT EXISTS network_inventory (
    id          BIGSERIAL PRIMARY KEY,
    switch_name TEXT NOT NULL,
    switch_ip   TEXT NOT NULL,
    vendor      TEXT NOT NULL,
    mac_address TEXT NOT NULL,
    port_name   TEXT NOT NULL,
    created_at  TIMESTAMPTZ NOT NULL DEFAULT now(),
    updated_at  TIMESTAMPTZ NOT NULL DEFAULT now(),
    CONSTRAINT network_inventory_key UNIQUE (switch_name, mac_address, port_name)
);
CREATE INDEX IF NOT EXISTS network_inventory_mac_idx
    ON network_inventory (mac_address);

CREATE TABLE IF NOT EXISTS collection_log (
    id          BIGSERIAL PRIMARY KEY,
    polled_at   TIMESTAMPTZ NOT NULL DEFAULT now(),
    switch_name TEXT NOT NULL,
    switch_ip   TEXT NOT NULL,
    duration_ms INTEGER NOT NULL,
    macs_total  INTEGER,
    error       TEXT
);
"""

# switch_ip / vendor / created_at keep the values of the first observation.
UPSERT_SQL = """
INSERT INTO network_inventory
    (switch_name, switch_ip, vendor, mac_address, port_name)
VALUES ($1, $2, $3, $4, $5)
ON CONFLICT (switch_name, mac_address, port_name)
DO UPDATE SET updated_at = now()
"""


class Database:
    def __init__(self, dsn: str):
        self.dsn = dsn
        self._pool: asyncpg.Pool | None = None

    async def connect(self):
        self._pool = await asyncpg.create_pool(self.dsn, min_size=1, max_size=5)

    async def close(self):
        if self._pool:
            await self._pool.close()

    async def ensure_schema(self):
        """Create tables and indexes if absent. Safe to call on every run."""
        async with self._pool.acquire() as conn:
            await conn.execute(SCHEMA)

    # ------------------------------------------------------------------
    # Inventory
    # ------------------------------------------------------------------

    async def upsert_inventory(
        self,
        hostname: str,
        ip: str,
        vendor: str,
        entries: list[MacPortEntry],
    ) -> int:
        """Insert new (switch, mac, port) facts, refresh updated_at on known ones.

        All entries of one host are written in a single transaction: the
        first failing row rolls back the whole batch.

        Returns the number of entries written.

        Raises:
            StorageWriteFailed: any database error while writing this host.
        """
        if not entries:
            return 0
        rows = [(hostname, ip, str(vendor), e.mac, e.port) for e in entries]
        try:
            async with self._pool.acquire() as conn:
                async with conn.transaction():
                    await conn.executemany(UPSERT_SQL, rows)
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as exc:
            raise StorageWriteFailed(hostname, str(exc)) from exc
        return len(rows)

    async def search_by_mac(self, mac: str) -> list[asyncpg.Record]:
        """Exact match on the canonical ``AA:BB:CC:DD:EE:FF`` form."""
        async with self._pool.acquire() as conn:
            return await conn.fetch(
                "SELECT switch_name, switch_ip, vendor, mac_address, port_name, "
                "created_at, updated_at "
                "FROM network_inventory WHERE mac_address = $1 "
                "ORDER BY updated_at DESC",
                mac,
            )

    async def get_inventory_by_switch(self, switch_name: str) -> list[asyncpg.Record]:
        async with self._pool.acquire() as conn:
            return await conn.fetch(
                "SELECT switch_name, switch_ip, vendor, mac_address, port_name, "
                "created_at, updated_at "
                "FROM network_inventory WHERE switch_name = $1 "
                "ORDER BY port_name, mac_address",
                switch_name,
            )

    # ------------------------------------------------------------------
    # Collection log
    # ------------------------------------------------------------------

    async def log_collection(
        self,
        *,
        switch_name: str,
        switch_ip: str,
        duration_ms: int,
        macs_total: int | None = None,
        error: str | None = None,
    ) -> None:
        """Write one row to collection_log on its own connection, outside the
        inventory transaction."""
        async with self._pool.acquire() as conn:
            await conn.execute(
                """INSERT INTO collection_log
                   (switch_name, switch_ip, duration_ms, macs_total, error)
                   VALUES ($1, $2, $3, $4, $5)""",
                switch_name, switch_ip, duration_ms, macs_total, error,
            )
