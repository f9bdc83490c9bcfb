"""Zabbix JSON-RPC client: monitored switches and their SNMP credentials.

Usage::

    async with ZabbixClient(url, token, vendor_templates) as zbx:
        hosts = await zbx.list_hosts(group_id)
"""

from __future__ import annotations

import itertools
import re
from dataclasses import dataclass
from typing import Any, Mapping

import httpx

from errors import DirectoryUnavailable, MacroNotFound
from vendors import Vendor, vendor_from_templates

_MACRO_RE = re.compile(r"^\{\$[^{}]+\}$")

# interface.type: 1 agent, 2 SNMP, 3 IPMI, 4 JMX
SNMP_INTERFACE_TYPE = "2"


def is_macro(value: str) -> bool:
    """True for user-macro placeholders such as ``{$SNMP_COMMUNITY}``."""
    return bool(_MACRO_RE.match(value or ""))


@dataclass
class Host:
    hostname: str
    host_id: str
    ip: str
    community: str
    vendor: Vendor = Vendor.UNKNOWN

    @property
    def has_community(self) -> bool:
        """False when empty or still an unresolved ``{$MACRO}``."""
        return bool(self.community) and not is_macro(self.community)


class ZabbixClient:
    """Thin async wrapper around the Zabbix API (``host.get``, ``usermacro.get``)."""

    def __init__(
        self,
        url: str,
        token: str,
        vendor_templates: Mapping[str, Vendor],
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Args:
            url:              Full JSON-RPC endpoint, e.g.
                              ``https://zabbix.local/api_jsonrpc.php``.
            token:            API token sent in the ``auth`` envelope field.
            vendor_templates: templateid → Vendor classification map.
            timeout:          HTTP timeout in seconds.
            transport:        Optional httpx transport (tests use MockTransport).
        """
        self.url = url
        self.token = token
        self.vendor_templates = vendor_templates
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._ids = itertools.count(1)

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> ZabbixClient:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def call(self, method: str, params: dict[str, Any]) -> Any:
        """POST one JSON-RPC request and return its ``result`` member.

        Raises:
            DirectoryUnavailable: network error, HTTP error status, body that is
                                  not JSON, or a JSON-RPC ``error`` object.
        """
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
            "auth": self.token,
            "id": next(self._ids),
        }
        client = await self._get_client()
        try:
            response = await client.post(self.url, json=payload)
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as e:
            raise DirectoryUnavailable(
                f"{method}: HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise DirectoryUnavailable(f"{method}: {e}") from e
        except ValueError as e:
            raise DirectoryUnavailable(f"{method}: response is not JSON") from e

        if not isinstance(body, dict):
            raise DirectoryUnavailable(f"{method}: unexpected response shape")
        if "error" in body:
            err = body["error"] or {}
            raise DirectoryUnavailable(
                f"{method}: {err.get('message', 'error')} {err.get('data', '')}".strip()
            )
        if "result" not in body:
            raise DirectoryUnavailable(f"{method}: response has no result")
        return body["result"]

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def list_hosts(self, group_id: int) -> list[Host]:
        """Return every host of *group_id* that has at least one SNMP interface.

        The first SNMP interface supplies address and community. Community
        macros are resolved here; a macro that cannot be resolved is left in
        place so the host is later classified as having no community.

        Raises:
            DirectoryUnavailable: host.get failed or returned garbage.
        """
        result = await self.call("host.get", {
            "groupids": group_id,
            "output": ["host", "hostid"],
            "selectInterfaces": ["ip", "type", "details"],
            "selectParentTemplates": ["templateid"],
        })
        if not isinstance(result, list):
            raise DirectoryUnavailable("host.get: result is not a list")

        hosts: list[Host] = []
        for item in result:
            if not isinstance(item, dict):
                raise DirectoryUnavailable("host.get: host entry is not an object")
            interfaces = _objects(item.get("interfaces"), "interfaces")
            snmp = [i for i in interfaces if str(i.get("type", "")) == SNMP_INTERFACE_TYPE]
            if not snmp:
                continue

            iface = snmp[0]
            details = iface.get("details") or {}
            # Zabbix returns [] instead of {} for interfaces without details
            community = details.get("community", "") if isinstance(details, dict) else ""
            host_id = str(item.get("hostid", ""))

            if is_macro(community):
                try:
                    community = await self.resolve_macro(host_id, community) or community
                except MacroNotFound:
                    pass  # placeholder kept, host has no usable community

            templates = [
                t.get("templateid")
                for t in _objects(item.get("parentTemplates"), "parentTemplates")
            ]
            hosts.append(Host(
                hostname=item.get("host", ""),
                host_id=host_id,
                ip=iface.get("ip", ""),
                community=community,
                vendor=vendor_from_templates(templates, self.vendor_templates),
            ))
        return hosts

    async def resolve_macro(self, host_id: str, macro: str) -> str:
        """Look *macro* up among host, template and global user macros.

        Raises:
            MacroNotFound:        no macro with exactly that name.
            DirectoryUnavailable: usermacro.get failed or returned garbage.
        """
        result = await self.call("usermacro.get", {
            "hostids": host_id,
            "output": ["macro", "value"],
            "globalmacro": True,
            "templatemacros": True,
        })
        if result is None:
            result = []
        if not isinstance(result, list):
            raise DirectoryUnavailable("usermacro.get: result is not a list")
        for entry in result:
            if not isinstance(entry, dict):
                raise DirectoryUnavailable("usermacro.get: macro entry is not an object")
            if entry.get("macro") == macro:
                return entry.get("value", "")
        raise MacroNotFound(host_id, macro)


def _objects(value: Any, field: str) -> list[dict]:
    """host.get sub-list; anything but a list of objects is a malformed response."""
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(v, dict) for v in value):
        raise DirectoryUnavailable(f"host.get: {field} is not a list of objects")
    return value
