from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional, Tuple

DEFAULT_RESOURCE = "table-admin.xml"
DEFAULT_RELOAD_WAIT_MS = 60 * 1000
DEFAULT_EXEMPT_PREFIXES = ("temp_", "test_")
DEFAULT_SYSTEM_TABLES = ("hbase:meta", ".META.", "-ROOT-")


def _env_flag(name: str, default: bool) -> bool:
    """Unrecognized values keep the default rather than silently turning a flag off."""
    raw = (os.getenv(name) or "").strip().lower()
    if raw in ("1", "true", "yes", "on"):
        return True
    if raw in ("0", "false", "no", "off"):
        return False
    return default


def _env_bounded_int(name: str, default: int, *, lo: int, hi: Optional[int] = None) -> int:
    raw = (os.getenv(name) or "").strip()
    try:
        value = int(raw) if raw else default
    except ValueError:
        value = default
    value = max(lo, value)
    return value if hi is None else min(value, hi)


def _env_str(name: str) -> Optional[str]:
    return (os.getenv(name, "") or "").strip() or None


def _split_csv(raw: str) -> Tuple[str, ...]:
    return tuple(x.strip() for x in (raw or "").split(",") if x.strip())


@dataclass(frozen=True)
class GateConfig:
    # Policy resource location
    admin_file: Optional[str] = None  # explicit path or URL; wins over everything else
    site_file: Optional[str] = None  # host base config, consulted for `admin.file`
    default_resource: str = DEFAULT_RESOURCE
    search_path: Tuple[str, ...] = ("conf", ".")

    # Reload debounce (ms after the resource's mtime before it is trusted)
    reload_wait_ms: int = DEFAULT_RELOAD_WAIT_MS
    fetch_timeout_seconds: int = 10

    # Decision rules
    exempt_prefixes: Tuple[str, ...] = DEFAULT_EXEMPT_PREFIXES
    system_tables: Tuple[str, ...] = DEFAULT_SYSTEM_TABLES
    admin_contact: str = "the cluster administrator"

    # When False, check_modify only looks at the process identity (legacy behavior).
    unified_identity: bool = True


@lru_cache(maxsize=1)
def load_gate_config() -> GateConfig:
    """
    Load gate configuration from env (ConfigMap/Secret friendly).

    Recommended vars:
    - TABLEGATE_ADMIN_FILE=/etc/tables/table-admin.xml (or an http(s) URL)
    - TABLEGATE_SITE_FILE=/etc/tables/site.yaml
    - TABLEGATE_DEFAULT_RESOURCE=table-admin.xml
    - TABLEGATE_SEARCH_PATH=/etc/tables:conf
    - TABLEGATE_RELOAD_WAIT_MS=60000
    - TABLEGATE_EXEMPT_PREFIXES=temp_,test_
    - TABLEGATE_SYSTEM_TABLES=hbase:meta
    - TABLEGATE_ADMIN_CONTACT=dba-team@example.com
    - TABLEGATE_UNIFIED_IDENTITY=1
    """
    search_raw = _env_str("TABLEGATE_SEARCH_PATH")
    search_path = tuple(p for p in search_raw.split(os.pathsep) if p) if search_raw else GateConfig.search_path

    exempt = _split_csv(os.getenv("TABLEGATE_EXEMPT_PREFIXES", ""))
    system = _split_csv(os.getenv("TABLEGATE_SYSTEM_TABLES", ""))

    return GateConfig(
        admin_file=_env_str("TABLEGATE_ADMIN_FILE"),
        site_file=_env_str("TABLEGATE_SITE_FILE"),
        default_resource=_env_str("TABLEGATE_DEFAULT_RESOURCE") or DEFAULT_RESOURCE,
        search_path=search_path,
        reload_wait_ms=_env_bounded_int("TABLEGATE_RELOAD_WAIT_MS", DEFAULT_RELOAD_WAIT_MS, lo=0),
        fetch_timeout_seconds=_env_bounded_int("TABLEGATE_FETCH_TIMEOUT_SECONDS", 10, lo=1, hi=120),
        exempt_prefixes=exempt or DEFAULT_EXEMPT_PREFIXES,
        system_tables=system or DEFAULT_SYSTEM_TABLES,
        admin_contact=_env_str("TABLEGATE_ADMIN_CONTACT") or GateConfig.admin_contact,
        unified_identity=_env_flag("TABLEGATE_UNIFIED_IDENTITY", True),
    )
