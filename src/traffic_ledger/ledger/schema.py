"""Ledger document schema versioning and migrations.

Version history:
    1: delta-accumulation collector. No ``schemaVersion`` key, per-repo totals
       under ``repositories``; history rows are rolling 14-day snapshots and
       cannot be summed.
    2: absolute per-day reconciliation. ``legacyOffset`` baseline plus
       per-day ``history`` under ``entities``; totals are derived.

Migrations run on the raw JSON document before model validation, so older
shapes never have to validate against the current models.
"""
import copy
import logging
from typing import Any, Callable

from ..schemas.ledger import CURRENT_SCHEMA_VERSION
from .exceptions import LedgerSchemaError


logger = logging.getLogger(__name__)


SCHEMA_VERSION = CURRENT_SCHEMA_VERSION
LEGACY_SCHEMA_VERSION = 1


def _safe_count(value: Any) -> int:
    if value is None or isinstance(value, bool):
        return 0
    try:
        return max(0, int(float(value)))
    except (TypeError, ValueError):
        return 0


def detect_schema_version(document: dict) -> int:
    """Return the schema version of a raw ledger document.

    Documents written before versioning existed carry no ``schemaVersion``
    and are treated as version 1.

    Raises:
        LedgerSchemaError: If the version is not a positive integer
    """
    version = document.get("schemaVersion", LEGACY_SCHEMA_VERSION)
    if isinstance(version, bool) or not isinstance(version, int) or version < 1:
        raise LedgerSchemaError(version, SCHEMA_VERSION)
    return version


def needs_migration(document: dict) -> bool:
    return detect_schema_version(document) < SCHEMA_VERSION


def migrate_document(document: dict) -> dict:
    """Bring a raw ledger document up to the current schema version.

    A document already at the current version is returned unchanged, so
    calling this repeatedly is a no-op. The input is never mutated.

    Args:
        document: Parsed JSON ledger document

    Returns:
        Document at SCHEMA_VERSION

    Raises:
        LedgerSchemaError: If the document is newer than this build supports
    """
    version = detect_schema_version(document)

    if version > SCHEMA_VERSION:
        raise LedgerSchemaError(version, SCHEMA_VERSION)

    if version == SCHEMA_VERSION:
        logger.debug("Ledger schema up to date (version %s)", version)
        return document

    migrated = copy.deepcopy(document)
    while version < SCHEMA_VERSION:
        migrated = _MIGRATIONS[version](migrated)
        version += 1
        migrated["schemaVersion"] = version
        logger.info(
            "Migrated ledger schema v%s -> v%s (%s entities)",
            version - 1,
            version,
            len(migrated.get("entities", {})),
        )

    return migrated


def _migrate_v1_to_v2(document: dict) -> dict:
    """Freeze v1 running totals into the permanent legacyOffset baseline.

    v1 history rows are 14-day snapshots, so summing them would double count;
    they are dropped and history rebuilds from the next fetch. PR and commit
    counters are carried over and overwritten on the next successful fetch.
    """
    prior_entities = document.get("entities")
    if not isinstance(prior_entities, dict):
        prior_entities = document.get("repositories") or {}

    entities: dict[str, dict] = {}
    for name, prior in prior_entities.items():
        if not isinstance(prior, dict):
            logger.warning("Ledger entry for %s is not an object, starting it at zero", name)
            prior = {}

        offsets = prior.get("legacyOffset")
        if not isinstance(offsets, dict):
            offsets = {}

        clones = _safe_count(prior.get("totalClones", offsets.get("clones")))
        views = _safe_count(prior.get("totalViews", offsets.get("views")))

        entities[name] = {
            "legacyOffset": {"clones": clones, "views": views},
            "history": [],
            "totalClones": clones,
            "totalViews": views,
            "totalPRs": _safe_count(prior.get("totalPRs")),
            "totalCommits": _safe_count(prior.get("totalCommits")),
        }

        discarded = prior.get("history") or []
        if discarded:
            logger.debug(
                "Discarded %s v1 snapshot rows for %s (baseline clones=%s views=%s)",
                len(discarded),
                name,
                clones,
                views,
            )

    return {
        "lastUpdated": document.get("lastUpdated"),
        "totals": {},
        "entities": entities,
    }


_MIGRATIONS: dict[int, Callable[[dict], dict]] = {
    1: _migrate_v1_to_v2,
}
