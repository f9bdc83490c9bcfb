"""FastAPI web application: search the switch inventory by MAC address."""

from __future__ import annotations

import os
import re
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from config import load_dsn
from db import Database

# Aggregate (port-channel / LAG) interfaces are uplinks, not host ports
SKIP_PORT_PREFIXES = ("Po", "Port-Channel", "lag")

_NON_HEX = re.compile(r"[^0-9A-Fa-f]")


# ------------------------------------------------------------------
# Lifespan
# ------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    db = Database(load_dsn())
    await db.connect()
    await db.ensure_schema()
    app.state.db = db
    yield
    await db.close()


app = FastAPI(lifespan=lifespan)
templates = Jinja2Templates(directory=os.path.join(os.path.dirname(__file__), "templates"))


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

def normalize_mac(raw: str) -> str | None:
    """``00-14-29-30-37-02`` / ``0014.2930.3702`` → ``00:14:29:30:37:02``.

    Returns None unless exactly 12 hex digits remain after stripping
    separators.
    """
    digits = _NON_HEX.sub("", raw).upper()
    if len(digits) != 12:
        return None
    return ":".join(digits[i:i + 2] for i in range(0, 12, 2))


def _is_aggregate_port(port_name: str) -> bool:
    return port_name.startswith(SKIP_PORT_PREFIXES)


def _row_to_dict(row) -> dict:
    item = dict(row)
    for key in ("created_at", "updated_at"):
        if item.get(key) is not None:
            item[key] = item[key].isoformat(sep=" ", timespec="seconds")
    return item


# ------------------------------------------------------------------
# Routes
# ------------------------------------------------------------------

@app.get("/", response_class=HTMLResponse)
async def index(request: Request, mac: str = ""):
    return templates.TemplateResponse(request, "index.html", {"q_mac": mac.strip()})


@app.get("/search_mac")
async def search_mac(request: Request, mac: str = ""):
    if not mac.strip():
        return {"success": False, "message": "MAC address is required."}

    normalized = normalize_mac(mac)
    if normalized is None:
        return {"success": False, "message": f"'{mac.strip()}' is not a valid MAC address."}

    db: Database = request.app.state.db
    rows = await db.search_by_mac(normalized)
    result = [_row_to_dict(r) for r in rows if not _is_aggregate_port(r["port_name"])]
    if not result:
        return {"success": False, "message": "MAC address not found."}
    return {"success": True, "result": result}


@app.get("/switches/{switch_name}")
async def switch_inventory(request: Request, switch_name: str):
    db: Database = request.app.state.db
    rows = await db.get_inventory_by_switch(switch_name)
    return {
        "success": bool(rows),
        "switch_name": switch_name,
        "result": [_row_to_dict(r) for r in rows],
    }
