"""
Error registry backed by registry.yaml.

Each entry maps a code raised by the application (or chosen for a
framework error) to the HTTP status, log severity and client-facing
message used in the error envelope. The file is validated as a whole at
startup; a broken registry stops the app from booting instead of
surfacing as odd responses later.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

import yaml

from app.core.errors import CODE_PATTERN

logger = logging.getLogger(__name__)

VALID_SEVERITIES = {"DEBUG", "INFO", "WARN", "ERROR", "CRITICAL"}
REQUIRED_FIELDS = {"code", "title", "severity", "retryable", "http_status", "safe_message"}
FALLBACK_CODE = "INTERNAL_ERROR"

DEFAULT_REGISTRY_PATH = os.path.join(os.path.dirname(__file__), "registry.yaml")


class RegistryValidationError(Exception):
    """registry.yaml is malformed."""


@dataclass(frozen=True)
class ErrorEntry:
    code: str
    title: str
    severity: str
    retryable: bool
    http_status: int
    safe_message: str
    expose_detail: bool = False

    @classmethod
    def from_mapping(cls, idx: int, raw: Mapping[str, Any]) -> "ErrorEntry":
        if not isinstance(raw, Mapping):
            raise RegistryValidationError(f"Entry {idx}: expected a mapping, got {type(raw).__name__}")

        missing = REQUIRED_FIELDS - set(raw)
        if missing:
            raise RegistryValidationError(
                f"Entry {idx} ({raw.get('code', '?')}): missing fields {sorted(missing)}"
            )

        code = str(raw["code"])
        if not CODE_PATTERN.match(code):
            raise RegistryValidationError(f"Invalid code format: {code!r}")
        if raw["severity"] not in VALID_SEVERITIES:
            raise RegistryValidationError(f"{code}: unknown severity {raw['severity']!r}")

        status = int(raw["http_status"])
        if not 400 <= status <= 599:
            raise RegistryValidationError(f"{code}: http_status {status} is not an error status")

        return cls(
            code=code,
            title=str(raw["title"]),
            severity=raw["severity"],
            retryable=bool(raw["retryable"]),
            http_status=status,
            safe_message=str(raw["safe_message"]),
            expose_detail=bool(raw.get("expose_detail", False)),
        )


class ErrorRegistry:
    """Validated error codes, looked up by code or by HTTP status."""

    def __init__(self) -> None:
        self._entries: Dict[str, ErrorEntry] = {}
        self._by_status: Dict[int, str] = {}
        self.schema_version: int = 0

    def load(self, path: Optional[str] = None) -> None:
        """Replace the current entries with the ones in ``path``.

        Nothing is swapped in unless the whole file validates.
        """
        with open(path or DEFAULT_REGISTRY_PATH, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        raw_entries = data.get("errors", [])
        if not isinstance(raw_entries, list):
            raise RegistryValidationError("'errors' must be a list")

        entries: Dict[str, ErrorEntry] = {}
        by_status: Dict[int, str] = {}
        for idx, raw in enumerate(raw_entries):
            entry = ErrorEntry.from_mapping(idx, raw)
            if entry.code in entries:
                raise RegistryValidationError(f"Duplicate code: {entry.code}")
            entries[entry.code] = entry
            # first code registered for a status is the one framework errors use
            by_status.setdefault(entry.http_status, entry.code)

        self._entries = entries
        self._by_status = by_status
        self.schema_version = data.get("schema_version", 0)
        logger.info("error_registry_loaded", extra={"count": len(entries), "schema_version": self.schema_version})

    def get(self, code: Optional[str]) -> Optional[ErrorEntry]:
        return self._entries.get(code) if code else None

    def lookup(self, code: str) -> ErrorEntry:
        entry = self._entries.get(code)
        if entry is None:
            raise KeyError(f"Unknown error code: {code!r}")
        return entry

    def code_for_status(self, status: int) -> Optional[str]:
        return self._by_status.get(status)

    def all_codes(self) -> list[str]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)


# Loaded once in the app lifespan
error_registry = ErrorRegistry()
