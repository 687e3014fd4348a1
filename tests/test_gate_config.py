from __future__ import annotations

import os

import pytest


def test_load_gate_config_defaults() -> None:
    from tablegate.authz.config import load_gate_config

    cfg = load_gate_config()
    assert cfg.admin_file is None
    assert cfg.site_file is None
    assert cfg.default_resource == "table-admin.xml"
    assert cfg.reload_wait_ms == 60_000
    assert cfg.exempt_prefixes == ("temp_", "test_")
    assert "hbase:meta" in cfg.system_tables
    assert cfg.unified_identity is True


def test_load_gate_config_parses_env(monkeypatch: pytest.MonkeyPatch) -> None:
    from tablegate.authz.config import load_gate_config

    monkeypatch.setenv("TABLEGATE_ADMIN_FILE", " /etc/tables/admin.yaml ")
    monkeypatch.setenv("TABLEGATE_SEARCH_PATH", os.pathsep.join(["/etc/tables", "conf"]))
    monkeypatch.setenv("TABLEGATE_RELOAD_WAIT_MS", "5000")
    monkeypatch.setenv("TABLEGATE_EXEMPT_PREFIXES", "scratch_, tmp_ ")
    monkeypatch.setenv("TABLEGATE_ADMIN_CONTACT", "dba@example.com")
    monkeypatch.setenv("TABLEGATE_UNIFIED_IDENTITY", "0")
    cfg = load_gate_config()
    assert cfg.admin_file == "/etc/tables/admin.yaml"
    assert cfg.search_path == ("/etc/tables", "conf")
    assert cfg.reload_wait_ms == 5000
    assert cfg.exempt_prefixes == ("scratch_", "tmp_")
    assert cfg.admin_contact == "dba@example.com"
    assert cfg.unified_identity is False


def test_load_gate_config_clamps_bad_numbers(monkeypatch: pytest.MonkeyPatch) -> None:
    from tablegate.authz.config import load_gate_config

    monkeypatch.setenv("TABLEGATE_RELOAD_WAIT_MS", "-10")
    monkeypatch.setenv("TABLEGATE_FETCH_TIMEOUT_SECONDS", "not-a-number")
    cfg = load_gate_config()
    assert cfg.reload_wait_ms == 0
    assert cfg.fetch_timeout_seconds == 10


def test_load_gate_config_is_cached(monkeypatch: pytest.MonkeyPatch) -> None:
    from tablegate.authz.config import load_gate_config

    first = load_gate_config()
    monkeypatch.setenv("TABLEGATE_RELOAD_WAIT_MS", "1")
    assert load_gate_config() is first
    load_gate_config.cache_clear()
    assert load_gate_config().reload_wait_ms == 1


def test_load_gate_config_unknown_flag_keeps_default(monkeypatch: pytest.MonkeyPatch) -> None:
    from tablegate.authz.config import load_gate_config

    monkeypatch.setenv("TABLEGATE_UNIFIED_IDENTITY", "maybe")
    monkeypatch.setenv("TABLEGATE_FETCH_TIMEOUT_SECONDS", "9999")
    cfg = load_gate_config()
    assert cfg.unified_identity is True
    assert cfg.fetch_timeout_seconds == 120
