"""Collector settings, read once from the environment (and ``.env``)."""

import os
from dataclasses import dataclass, field
from typing import Mapping

from dotenv import load_dotenv

from errors import ConfigError, UnknownVendorError
from vendors import Vendor


@dataclass(frozen=True)
class Config:
    zabbix_url: str
    zabbix_token: str
    group_id: int
    vendor_templates: Mapping[str, Vendor] = field(default_factory=dict)
    db_host: str = "localhost"
    db_port: int = 5432
    db_name: str = "switch_inventory"
    db_user: str = "switch_inventory_user"
    db_password: str = ""
    snmp_timeout: int = 5
    fail_log: str = "fail.log"

    @property
    def dsn(self) -> str:
        return (
            f"postgresql://{self.db_user}:{self.db_password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )


def parse_vendor_templates(raw: str) -> dict[str, Vendor]:
    """Parse ``"10250=ProCurve,10251=Cisco"`` into ``{"10250": Vendor.PROCURVE, ...}``.

    Raises:
        ConfigError: malformed pair or vendor name outside the registry.
    """
    mapping: dict[str, Vendor] = {}
    for pair in raw.split(","):
        pair = pair.strip()
        if not pair:
            continue
        template_id, sep, name = pair.partition("=")
        if not sep or not template_id.strip() or not name.strip():
            raise ConfigError(f"VENDOR_TEMPLATES: malformed entry '{pair}'")
        try:
            mapping[template_id.strip()] = Vendor.parse(name)
        except UnknownVendorError:
            raise ConfigError(
                f"VENDOR_TEMPLATES: unsupported vendor '{name.strip()}' "
                f"for template {template_id.strip()}"
            ) from None
    return mapping


def _require(env: Mapping[str, str], key: str) -> str:
    value = env.get(key, "").strip()
    if not value:
        raise ConfigError(f"{key} is not set")
    return value


def _int(env: Mapping[str, str], key: str, default: str | None = None) -> int:
    raw = env.get(key, default) if default is not None else _require(env, key)
    try:
        return int(str(raw).strip())
    except ValueError:
        raise ConfigError(f"{key} must be an integer, got '{raw}'") from None


def load_dsn(env: Mapping[str, str] | None = None) -> str:
    """PostgreSQL DSN only; the web UI needs no Zabbix settings."""
    if env is None:
        load_dotenv()
        env = os.environ
    host = env.get("DB_HOST", "localhost")
    port = _int(env, "DB_PORT", "5432")
    name = env.get("DB_NAME", "switch_inventory")
    user = env.get("DB_USER", "switch_inventory_user")
    password = env.get("DB_PASSWORD", "")
    return f"postgresql://{user}:{password}@{host}:{port}/{name}"


def load_config(env: Mapping[str, str] | None = None) -> Config:
    """Build a Config from *env* (defaults to ``os.environ`` after ``load_dotenv()``).

    Raises:
        ConfigError: required setting missing or invalid.
    """
    if env is None:
        load_dotenv()
        env = os.environ

    vendor_templates = parse_vendor_templates(_require(env, "VENDOR_TEMPLATES"))
    if not vendor_templates:
        raise ConfigError("VENDOR_TEMPLATES maps no templates")

    snmp_timeout = _int(env, "SNMP_TIMEOUT", "5")
    if snmp_timeout <= 0:
        raise ConfigError("SNMP_TIMEOUT must be positive")

    return Config(
        zabbix_url=_require(env, "ZABBIX_URL"),
        zabbix_token=_require(env, "ZABBIX_TOKEN"),
        group_id=_int(env, "ZABBIX_GROUP_ID"),
        vendor_templates=vendor_templates,
        db_host=env.get("DB_HOST", "localhost"),
        db_port=_int(env, "DB_PORT", "5432"),
        db_name=env.get("DB_NAME", "switch_inventory"),
        db_user=env.get("DB_USER", "switch_inventory_user"),
        db_password=env.get("DB_PASSWORD", ""),
        snmp_timeout=snmp_timeout,
        fail_log=env.get("FAIL_LOG", "fail.log"),
    )
