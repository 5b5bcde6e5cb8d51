"""Versioned persistence format for the entity cache.

The persisted document is ``{"version": N, "entries": {key: record}}``.
Each schema bump adds one pure ``migrate_vN_to_vN+1`` function operating on
plain dicts, so upgrades can be tested without any storage backend.

Version history:
    1: ``{"data": <game>, "timestamp": <unix seconds>}``
    2: ``{"value": <game>, "fetched_at", "last_accessed_at", "fetch_count", "provenance"}``
"""

import json
from typing import Any, Callable

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from game_cache.entities import Provenance
from game_cache.errors import CacheCorruption

CURRENT_VERSION = 2


class PersistedEntry(BaseModel):
    """One cache record in the current schema."""

    value: dict[str, Any]
    fetched_at: float
    last_accessed_at: float
    fetch_count: int = Field(1, ge=1)
    provenance: Provenance = Provenance.CACHE


class PersistedCache(BaseModel):
    """The whole persisted document in the current schema."""

    version: int = CURRENT_VERSION
    entries: dict[str, PersistedEntry] = Field(default_factory=dict)


def migrate_v1_to_v2(entries: dict[str, Any]) -> dict[str, Any]:
    """Rename ``data``/``timestamp`` and fill the fields v1 did not track."""
    migrated = {}
    for key, record in entries.items():
        if not isinstance(record, dict) or "data" not in record or "timestamp" not in record:
            raise CacheCorruption(f"v1 record {key!r} is missing data or timestamp")

        fetched_at = record["timestamp"]
        migrated[key] = {
            "value": record["data"],
            "fetched_at": fetched_at,
            "last_accessed_at": fetched_at,
            "fetch_count": 1,
            "provenance": Provenance.CACHE.value,
        }
    return migrated


MIGRATIONS: dict[int, Callable[[dict[str, Any]], dict[str, Any]]] = {
    1: migrate_v1_to_v2,
}


def migrate(document: dict[str, Any], from_version: int) -> dict[str, Any]:
    """Upgrade a persisted document to ``CURRENT_VERSION``.

    Args:
        document: Decoded document (``{"entries": {...}}``, version ignored)
        from_version: Schema version the document was written with

    Returns:
        A new document tagged with ``CURRENT_VERSION``

    Raises:
        CacheCorruption: If the version is unknown or a record cannot be migrated
    """
    if from_version > CURRENT_VERSION or from_version < 1:
        raise CacheCorruption(f"Unsupported cache schema version {from_version}")

    entries = document.get("entries", {})
    if not isinstance(entries, dict):
        raise CacheCorruption("Cache entries must be an object")

    version = from_version
    while version < CURRENT_VERSION:
        step = MIGRATIONS.get(version)
        if step is None:
            raise CacheCorruption(f"No migration from cache schema version {version}")
        entries = step(entries)
        version += 1

    return {"version": CURRENT_VERSION, "entries": entries}


def decode(blob: str) -> PersistedCache:
    """Parse, migrate and validate a persisted blob.

    Documents without a version tag predate versioning and are read as v1.

    Raises:
        CacheCorruption: On any unreadable or invalid input
    """
    try:
        document = json.loads(blob)
    except (TypeError, ValueError) as e:
        raise CacheCorruption("Persisted cache is not valid JSON") from e

    if not isinstance(document, dict):
        raise CacheCorruption("Persisted cache must be a JSON object")

    version = document.get("version", 1)
    if not isinstance(version, int) or isinstance(version, bool):
        raise CacheCorruption(f"Invalid cache schema version {version!r}")

    upgraded = migrate(document, version)
    try:
        return PersistedCache.model_validate(upgraded)
    except PydanticValidationError as e:
        raise CacheCorruption(f"Persisted cache failed validation: {e.error_count()} errors") from e


def encode(entries: dict[str, PersistedEntry]) -> str:
    return PersistedCache(version=CURRENT_VERSION, entries=entries).model_dump_json()
