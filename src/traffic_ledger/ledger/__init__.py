"""Traffic ledger: persistence, schema migration, reconciliation and totals.

Persists to:
- JSON: data/traffic-history.json (whole-document overwrite)
"""
from .aggregate import compute_global_totals, contribution_score, finalize_ledger
from .exceptions import LedgerCorruptError, LedgerError, LedgerSchemaError
from .reconcile import ReconcileResult, reconcile_entity
from .schema import SCHEMA_VERSION, migrate_document
from .store import load_ledger, save_ledger

__all__ = [
    "SCHEMA_VERSION",
    "LedgerCorruptError",
    "LedgerError",
    "LedgerSchemaError",
    "ReconcileResult",
    "compute_global_totals",
    "contribution_score",
    "finalize_ledger",
    "load_ledger",
    "migrate_document",
    "reconcile_entity",
    "save_ledger",
]
