"""
Pytest config.

Pins the repo root on sys.path so `import tablegate` works when a global `pytest`
entrypoint is used without installing the package, and isolates every test from
`TABLEGATE_*` env vars and the cached gate config.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest


def _ensure_repo_root_on_syspath() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    repo_root_str = str(repo_root)
    if repo_root_str not in sys.path:
        sys.path.insert(0, repo_root_str)


_ensure_repo_root_on_syspath()


@pytest.fixture(autouse=True)
def _isolate_gate_env(monkeypatch: pytest.MonkeyPatch):
    from tablegate.authz.config import load_gate_config

    for name in list(os.environ):
        if name.startswith("TABLEGATE_"):
            monkeypatch.delenv(name, raising=False)
    load_gate_config.cache_clear()
    yield
    load_gate_config.cache_clear()


class FakeClock:
    def __init__(self, now_ms: int = 0) -> None:
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


def write_policy(path: Path, *, users: str = "", white: str = "", mtime_ms: int | None = None) -> Path:
    path.write_text(
        "<configuration>\n"
        f"  <property><name>admin.users</name><value>{users}</value></property>\n"
        f"  <property><name>admin.white.tables</name><value>{white}</value></property>\n"
        "</configuration>\n",
        encoding="utf-8",
    )
    if mtime_ms is not None:
        os.utime(path, (mtime_ms / 1000, mtime_ms / 1000))
    return path


@pytest.fixture(name="write_policy")
def _write_policy_fixture():
    return write_policy
