"""
Acting-identity lookup.

The host binds a request-scoped principal around each inbound operation with
`request_context()`. Outside of one, checks fall back to the identity the
process itself runs as.
"""

from __future__ import annotations

import getpass
import os
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any, Iterator, Optional, Protocol


@dataclass(frozen=True)
class Principal:
    short_name: str

    def __str__(self) -> str:
        return self.short_name


# A bound context may carry no principal (anonymous request); that must not
# fall back to the process identity.
_NO_REQUEST = object()
_request_principal: ContextVar[Any] = ContextVar("tablegate_request_principal", default=_NO_REQUEST)


@contextmanager
def request_context(principal: Optional[Principal]) -> Iterator[Optional[Principal]]:
    token = _request_principal.set(principal)
    try:
        yield principal
    finally:
        _request_principal.reset(token)


def get_request_principal() -> Optional[Principal]:
    principal = _request_principal.get()
    return None if principal is _NO_REQUEST else principal


def in_request_context() -> bool:
    return _request_principal.get() is not _NO_REQUEST


def current_process_principal() -> Optional[Principal]:
    """Identity of the running process (`TABLEGATE_PROCESS_USER` overrides the OS login name)."""
    override = (os.getenv("TABLEGATE_PROCESS_USER", "") or "").strip()
    if override:
        return Principal(override)
    try:
        name = getpass.getuser()
    except Exception:
        # No passwd entry / no login env vars (e.g. minimal containers).
        return None
    return Principal(name) if name else None


class IdentitySource(Protocol):
    def in_request(self) -> bool: ...

    def request_principal(self) -> Optional[Principal]: ...

    def process_principal(self) -> Optional[Principal]: ...


class ContextIdentitySource:
    """Default source: contextvar-bound request principal + process identity."""

    def in_request(self) -> bool:
        return in_request_context()

    def request_principal(self) -> Optional[Principal]:
        return get_request_principal()

    def process_principal(self) -> Optional[Principal]:
        return current_process_principal()


def resolve_active_principal(source: IdentitySource) -> Optional[Principal]:
    """
    Principal that authorization checks should be applied to.

    Inside a request context the remote principal is used, even when the request
    carries none; only outside one does the process identity apply. Never raises;
    a missing identity is only an error at the admin check.
    """
    if source.in_request():
        return source.request_principal()
    return source.process_principal()
