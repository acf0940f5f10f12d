"""JSON file persistence for the traffic ledger.

The whole document is read, mutated in memory and rewritten each run.
Writers assume exclusive access; there is no locking.
"""
import json
import logging
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError

from ..schemas.ledger import LedgerStore
from .aggregate import DEFAULT_PR_WEIGHT, compute_global_totals
from .exceptions import LedgerCorruptError
from .schema import SCHEMA_VERSION, migrate_document, needs_migration


logger = logging.getLogger(__name__)


def load_ledger(path: str | Path, pr_weight: int = DEFAULT_PR_WEIGHT) -> LedgerStore:
    """Load the ledger, migrating older schema versions in memory.

    Args:
        path: Ledger JSON file
        pr_weight: PR weight used when global totals are rebuilt after migration

    Returns:
        LedgerStore (zero-valued if the file does not exist)

    Raises:
        LedgerCorruptError: If the file exists but cannot be parsed or validated
        LedgerSchemaError: If the document is newer than this build supports
    """
    path = Path(path)

    if not path.exists():
        logger.info("No ledger at %s, starting empty (schema v%s)", path, SCHEMA_VERSION)
        return LedgerStore()

    try:
        with open(path, encoding="utf-8") as handle:
            document = json.load(handle)
    except json.JSONDecodeError as exc:
        raise LedgerCorruptError(path, f"invalid JSON: {exc}") from exc
    except UnicodeDecodeError as exc:
        raise LedgerCorruptError(path, f"not UTF-8: {exc}") from exc
    except OSError as exc:
        raise LedgerCorruptError(path, f"cannot read: {exc}") from exc

    if not isinstance(document, dict):
        raise LedgerCorruptError(path, "top-level value is not an object")

    migrated = needs_migration(document)
    document = migrate_document(document)

    try:
        store = LedgerStore.model_validate(document)
    except ValidationError as exc:
        raise LedgerCorruptError(path, str(exc)) from exc

    if migrated:
        store.totals = compute_global_totals(store.entities, pr_weight)

    logger.debug(
        "Loaded ledger %s: %s entities, last updated %s",
        path,
        len(store.entities),
        store.last_updated,
    )
    return store


def save_ledger(store: LedgerStore, path: str | Path) -> None:
    """Atomically overwrite the ledger file with ``store``.

    Writes a temp file in the target directory, fsyncs it and renames it over
    the destination, so readers see either the old or the new document.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    payload = store.model_dump_json(by_alias=True, indent=2)

    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{path.name}.", suffix=".tmp", dir=path.parent
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(payload)
            handle.write("\n")
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise

    logger.info("Saved ledger to %s (%s entities)", path, len(store.entities))
