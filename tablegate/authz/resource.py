"""Key/value policy resource: a local file or an http(s) URL holding admin settings."""

from __future__ import annotations

import logging
import os
import xml.etree.ElementTree as ET
from datetime import timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple
from urllib.parse import unquote, urlparse

import requests
import yaml
from dateutil import parser as date_parser

from tablegate.authz.config import GateConfig
from tablegate.authz.errors import ConfigLoadFailure

logger = logging.getLogger(__name__)

ADMIN_FILE_KEY = "admin.file"
WHITE_TABLES_KEY = "admin.white.tables"
ADMIN_USERS_KEY = "admin.users"


class PolicyProperties:
    """Read-only view over the parsed key/value pairs of a policy resource."""

    def __init__(self, values: Mapping[str, Any]) -> None:
        self._values: Dict[str, Any] = dict(values)

    def __contains__(self, key: str) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return len(self._values)

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        value = self._values.get(key)
        if value is None:
            return default
        if isinstance(value, list):
            return ",".join(str(v) for v in value)
        return str(value)

    def get_string_collection(self, key: str) -> List[str]:
        value = self._values.get(key)
        if value is None:
            return []
        items = value if isinstance(value, list) else str(value).split(",")
        return [s for s in (str(x).strip() for x in items if x is not None) if s]


def _flatten(data: Mapping[str, Any], prefix: str = "") -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for k, v in data.items():
        key = f"{prefix}.{k}" if prefix else str(k)
        if isinstance(v, Mapping):
            out.update(_flatten(v, key))
        elif v is not None:
            out[key] = list(v) if isinstance(v, (list, tuple)) else v
    return out


def parse_xml_properties(text: str) -> Dict[str, Any]:
    """Parse a Hadoop-style `<configuration><property><name/><value/></property>` document."""
    root = ET.fromstring(text)
    out: Dict[str, Any] = {}
    for prop in root.iter("property"):
        name = (prop.findtext("name") or "").strip()
        if not name:
            continue
        out[name] = (prop.findtext("value") or "").strip()
    return out


def parse_yaml_properties(text: str) -> Dict[str, Any]:
    data = yaml.safe_load(text) or {}
    if not isinstance(data, Mapping):
        raise ValueError(f"expected a mapping at the top level, got {type(data).__name__}")
    return _flatten(data)


class PolicyResource:
    """
    A policy resource addressed by filesystem path or URL.

    `file://` URLs are treated as plain paths; `http(s)://` URLs are read with
    `requests` and their modification time comes from the `Last-Modified` header.
    """

    def __init__(self, location: str, *, timeout_seconds: int = 10) -> None:
        self.location = location
        self.timeout_seconds = timeout_seconds
        parsed = urlparse(location)
        self._is_http = parsed.scheme in ("http", "https")
        self._path: Optional[Path] = None
        if not self._is_http:
            self._path = Path(unquote(parsed.path)) if parsed.scheme == "file" else Path(location)

    def __repr__(self) -> str:
        return f"PolicyResource({self.location!r})"

    @property
    def is_url(self) -> bool:
        return self._is_http

    def last_modified(self) -> int:
        """Modification time in epoch ms; 0 when the resource is missing or reports none."""
        if self._path is not None:
            try:
                return int(self._path.stat().st_mtime * 1000)
            except FileNotFoundError:
                return 0
            except OSError as e:
                raise ConfigLoadFailure(f"cannot stat {self.location}: {e}") from e

        try:
            resp = requests.head(self.location, timeout=self.timeout_seconds, allow_redirects=True)
        except requests.exceptions.RequestException as e:
            raise ConfigLoadFailure(f"cannot reach {self.location}: {e}") from e
        if resp.status_code == 404:
            return 0
        if resp.status_code >= 400:
            raise ConfigLoadFailure(f"HEAD {self.location} returned HTTP {resp.status_code}")

        header = resp.headers.get("Last-Modified")
        if not header:
            return 0
        try:
            dt = date_parser.parse(header)
        except (ValueError, OverflowError) as e:
            raise ConfigLoadFailure(f"bad Last-Modified header from {self.location}: {header!r}") from e
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return int(dt.timestamp() * 1000)

    def read_text(self) -> str:
        if self._path is not None:
            try:
                return self._path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                raise ConfigLoadFailure(f"cannot read {self.location}: {e}") from e
        try:
            resp = requests.get(self.location, timeout=self.timeout_seconds)
            resp.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise ConfigLoadFailure(f"cannot fetch {self.location}: {e}") from e
        return resp.text

    def load(self) -> PolicyProperties:
        text = self.read_text()
        suffix = urlparse(self.location).path if self._is_http else str(self._path)
        try:
            if suffix.lower().endswith(".xml"):
                values = parse_xml_properties(text)
            else:
                values = parse_yaml_properties(text)
        except (ET.ParseError, yaml.YAMLError, ValueError) as e:
            raise ConfigLoadFailure(f"cannot parse {self.location}: {e}") from e
        return PolicyProperties(values)


class PolicyLocator:
    """
    Resolves where the policy resource lives.

    Order: explicit `admin_file`, then `admin.file` from the host site file, then the
    first `default_resource` found on `search_path`. The site file is only re-read
    when its own modification time changes.
    """

    def __init__(self, config: GateConfig) -> None:
        self._config = config
        self._site_cache: Tuple[int, Optional[str]] = (-1, None)

    def _site_admin_file(self) -> Optional[str]:
        if not self._config.site_file:
            return None
        site = PolicyResource(self._config.site_file, timeout_seconds=self._config.fetch_timeout_seconds)
        try:
            mtime = site.last_modified()
            if mtime == self._site_cache[0]:
                return self._site_cache[1]
            location = site.load().get(ADMIN_FILE_KEY) if mtime else None
        except ConfigLoadFailure as e:
            logger.warning("Failed to read site file %s: %s", self._config.site_file, e)
            return self._site_cache[1]
        self._site_cache = (mtime, (location or "").strip() or None)
        return self._site_cache[1]

    def locate(self) -> Optional[PolicyResource]:
        timeout = self._config.fetch_timeout_seconds
        location = self._config.admin_file or self._site_admin_file()
        if location:
            return PolicyResource(location, timeout_seconds=timeout)

        for directory in self._config.search_path:
            candidate = os.path.join(directory, self._config.default_resource)
            if os.path.isfile(candidate):
                return PolicyResource(candidate, timeout_seconds=timeout)
        return None
