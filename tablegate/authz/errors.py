from __future__ import annotations

from typing import Optional


class AccessDenied(Exception):
    """
    A table operation was refused.

    The host aborts the operation and surfaces `str(err)` verbatim to the caller.
    """

    def __init__(self, message: str, *, table: Optional[str] = None, user: Optional[str] = None) -> None:
        super().__init__(message)
        self.table = table
        self.user = user


class NotAuthorized(AccessDenied):
    """Acting identity is absent or not in the admin set."""


class ProtectedTable(AccessDenied):
    """Delete attempted against a protected table (regardless of admin status)."""


class ConfigLoadFailure(Exception):
    """The policy resource could not be read or parsed."""
