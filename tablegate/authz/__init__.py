"""
Authorization gate for table lifecycle operations (file/URL driven policy).

Admins control, through a single key/value resource:
- who may create/delete/modify non-sandbox tables (`admin.users`)
- which tables may never be deleted (`admin.white.tables`, `name*` for a prefix family)
"""

from tablegate.authz.config import GateConfig, load_gate_config
from tablegate.authz.errors import AccessDenied, ConfigLoadFailure, NotAuthorized, ProtectedTable
from tablegate.authz.gate import AccessGate, TableGate
from tablegate.authz.identity import Principal, request_context
from tablegate.authz.policy import PolicySnapshot, PolicyStore, ReloadState

__all__ = [
    "AccessDenied",
    "AccessGate",
    "ConfigLoadFailure",
    "GateConfig",
    "NotAuthorized",
    "PolicySnapshot",
    "PolicyStore",
    "Principal",
    "ProtectedTable",
    "ReloadState",
    "TableGate",
    "load_gate_config",
    "request_context",
]
