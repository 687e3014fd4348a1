from __future__ import annotations

import logging
from typing import Any, Iterable, Optional, Protocol, Union, runtime_checkable

from tablegate.authz.config import GateConfig
from tablegate.authz.errors import NotAuthorized, ProtectedTable
from tablegate.authz.identity import ContextIdentitySource, IdentitySource, Principal, resolve_active_principal
from tablegate.authz.policy import PolicySnapshot, PolicyStore

logger = logging.getLogger(__name__)

TableName = Union[bytes, str]


def _table_str(table_name: TableName) -> str:
    if isinstance(table_name, bytes):
        return table_name.decode("utf-8", errors="replace")
    return table_name


def is_exempt(table_name: str, prefixes: Iterable[str]) -> bool:
    """Sandbox tables (e.g. `temp_*`, `test_*`) that anyone may manage."""
    return any(table_name.startswith(p) for p in prefixes if p)


@runtime_checkable
class TableGate(Protocol):
    """The three intercept points a host control plane calls before a table operation."""

    def check_create(self, table_name: TableName, regions: Optional[Any] = None) -> None: ...

    def check_delete(self, table_name: TableName) -> None: ...

    def check_modify(self, table_name: TableName, descriptor: Optional[Any] = None) -> None: ...


class AccessGate:
    """
    Admin-only gate for create/delete/modify of non-sandbox tables.

    Each check returns None when the operation may proceed and raises
    `NotAuthorized` / `ProtectedTable` otherwise.
    """

    def __init__(
        self,
        store: PolicyStore,
        config: Optional[GateConfig] = None,
        identity: Optional[IdentitySource] = None,
    ) -> None:
        self._store = store
        self._config = config or store.config
        self._identity: IdentitySource = identity or ContextIdentitySource()

    @property
    def store(self) -> PolicyStore:
        return self._store

    def is_system_table(self, table_name: str) -> bool:
        return table_name in self._config.system_tables

    def check_create(self, table_name: TableName, regions: Optional[Any] = None) -> None:
        name = _table_str(table_name)
        if is_exempt(name, self._config.exempt_prefixes) or self.is_system_table(name):
            return
        self._store.maybe_reload()
        snap = self._store.snapshot()
        user = resolve_active_principal(self._identity)
        self._check_admin(snap, user, name)
        logger.info("Admin user %s is creating table %s", user, name)

    def check_delete(self, table_name: TableName) -> None:
        name = _table_str(table_name)
        if is_exempt(name, self._config.exempt_prefixes):
            return
        self._store.maybe_reload()
        # One snapshot per decision, so a concurrent commit cannot mix two policies.
        snap = self._store.snapshot()
        self._check_protected(snap, name)
        user = resolve_active_principal(self._identity)
        self._check_admin(snap, user, name)
        logger.info("Admin user %s is deleting table %s", user, name)

    def check_modify(self, table_name: TableName, descriptor: Optional[Any] = None) -> None:
        name = _table_str(table_name)
        if is_exempt(name, self._config.exempt_prefixes):
            return
        self._store.maybe_reload()
        snap = self._store.snapshot()
        if self._config.unified_identity:
            user = resolve_active_principal(self._identity)
        else:
            user = self._identity.process_principal()
        self._check_admin(snap, user, name)
        logger.info("Admin user %s is modifying table %s", user, name)

    def _prefix_hint(self) -> str:
        return " or ".join(f'"{p}"' for p in self._config.exempt_prefixes)

    def _check_admin(self, snap: PolicySnapshot, user: Optional[Principal], table_name: str) -> None:
        short_name = user.short_name if user is not None else None
        if snap.is_admin(short_name):
            return
        msg = (
            f"User {short_name or '<unknown>'} is not the Administrator. "
            "Non-administrators cannot create/delete/modify/truncate tables, "
            f"but can operate on tables prefixed with {self._prefix_hint()}. "
            f"Please contact {self._config.admin_contact}."
        )
        logger.warning(msg)
        raise NotAuthorized(msg, table=table_name, user=short_name)

    def _check_protected(self, snap: PolicySnapshot, table_name: str) -> None:
        if not snap.is_protected(table_name):
            return
        msg = (
            f"Table {table_name} is protected and cannot be deleted. "
            f"If you need to delete it, please contact {self._config.admin_contact}."
        )
        logger.warning(msg)
        raise ProtectedTable(msg, table=table_name)
