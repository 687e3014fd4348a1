from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, FrozenSet, Iterable, Optional, Protocol, Tuple

from tablegate.authz.config import GateConfig, load_gate_config
from tablegate.authz.errors import ConfigLoadFailure
from tablegate.authz.resource import (
    ADMIN_USERS_KEY,
    WHITE_TABLES_KEY,
    PolicyLocator,
    PolicyResource,
)

logger = logging.getLogger(__name__)

WILDCARD = "*"


def _now_ms() -> int:
    return int(time.time() * 1000)


def matches_protected(table_name: str, patterns: Iterable[str]) -> bool:
    """
    True if `table_name` is protected by any pattern.

    A pattern matches on exact equality, or, when it ends with `*`, when the table
    name starts with the pattern minus the marker.
    """
    for pattern in patterns:
        if pattern == table_name:
            return True
        if pattern.endswith(WILDCARD) and table_name.startswith(pattern[: -len(WILDCARD)]):
            return True
    return False


@dataclass(frozen=True)
class PolicySnapshot:
    admin_identities: FrozenSet[str] = frozenset()
    protected_table_patterns: Tuple[str, ...] = ()

    @classmethod
    def empty(cls) -> "PolicySnapshot":
        return cls()

    @classmethod
    def build(cls, admins: Iterable[str], patterns: Iterable[str]) -> "PolicySnapshot":
        return cls(
            admin_identities=frozenset(a for a in admins if a),
            protected_table_patterns=tuple(p for p in patterns if p),
        )

    def is_admin(self, short_name: Optional[str]) -> bool:
        return bool(short_name) and short_name in self.admin_identities

    def is_protected(self, table_name: str) -> bool:
        return matches_protected(table_name, self.protected_table_patterns)


@dataclass(frozen=True)
class ReloadState:
    # Both epoch ms; 0 means "never".
    last_resource_modified_time: int = 0
    last_successful_reload_time: int = 0


class Locator(Protocol):
    def locate(self) -> Optional[PolicyResource]: ...


class PolicyStore:
    """
    Eventually-fresh admin set + protected-table list.

    Reload is pull-based: callers invoke `maybe_reload()` on the hot path. A resource
    is only trusted once `reload_wait_ms` has passed since its modification time,
    which debounces multi-step (truncate-then-write) edits.

    Readers get the whole snapshot through a single reference, so a commit is seen
    either fully or not at all. The commit lock is never held across I/O.

    Only one caller runs a reload at a time, and that covers the whole locate,
    metadata fetch and parse. Others skip rather than wait, so while a slow
    HEAD or read is in flight (up to `fetch_timeout_seconds`) concurrent calls
    serve the current snapshot without checking the resource themselves.
    """

    def __init__(
        self,
        config: Optional[GateConfig] = None,
        *,
        locator: Optional[Locator] = None,
        clock: Optional[Callable[[], int]] = None,
    ) -> None:
        self._config = config or load_gate_config()
        self._locator: Locator = locator or PolicyLocator(self._config)
        self._clock = clock or _now_ms
        self._snapshot = PolicySnapshot.empty()
        self._state = ReloadState()
        self._reload_lock = threading.Lock()
        self._commit_lock = threading.Lock()

    @property
    def config(self) -> GateConfig:
        return self._config

    def snapshot(self) -> PolicySnapshot:
        return self._snapshot

    def reload_state(self) -> ReloadState:
        return self._state

    def is_admin(self, short_name: Optional[str]) -> bool:
        return self._snapshot.is_admin(short_name)

    def is_protected(self, table_name: str) -> bool:
        return self._snapshot.is_protected(table_name)

    def maybe_reload(self) -> bool:
        """
        Reload the policy if the resource changed and has been quiet long enough.

        Returns True when a new snapshot was committed. Never raises for resource
        problems: failures are logged and the previous snapshot stays in effect.
        """
        # Another caller is already reloading; keep serving the current snapshot.
        if not self._reload_lock.acquire(blocking=False):
            return False
        try:
            return self._reload_locked()
        finally:
            self._reload_lock.release()

    def _reload_locked(self) -> bool:
        try:
            resource = self._locator.locate()
        except ConfigLoadFailure as e:
            logger.warning("Failed to locate table admin policy: %s", e)
            return False
        if resource is None:
            return False

        try:
            modified = resource.last_modified()
        except ConfigLoadFailure as e:
            logger.warning("Failed to check policy resource %s: %s", resource.location, e)
            return False

        now = self._clock()
        if modified <= self._state.last_successful_reload_time:
            return False
        if now <= modified + self._config.reload_wait_ms:
            return False

        logger.info("Reloading table admin policy from %s", resource.location)
        try:
            props = resource.load()
        except ConfigLoadFailure as e:
            logger.warning("Load of table admin policy %s failed: %s", resource.location, e)
            return False

        fresh = PolicySnapshot.build(
            props.get_string_collection(ADMIN_USERS_KEY),
            props.get_string_collection(WHITE_TABLES_KEY),
        )
        with self._commit_lock:
            # Never let an older resource version replace a newer committed one.
            if modified < self._state.last_resource_modified_time:
                return False
            self._snapshot = fresh
            self._state = ReloadState(last_resource_modified_time=modified, last_successful_reload_time=now)
        logger.info(
            "Table admin policy loaded: %d admin(s), %d protected pattern(s)",
            len(fresh.admin_identities),
            len(fresh.protected_table_patterns),
        )
        return True
