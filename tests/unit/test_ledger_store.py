"""Unit tests for ledger file persistence."""
import json
from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from src.traffic_ledger.ledger.exceptions import LedgerCorruptError, LedgerSchemaError
from src.traffic_ledger.ledger.schema import SCHEMA_VERSION
from src.traffic_ledger.ledger.store import load_ledger, save_ledger
from src.traffic_ledger.schemas.ledger import (
    AccumulatorState,
    DayRecord,
    LedgerStore,
    LedgerTotals,
    MetricOffsets,
)


def _sample_store() -> LedgerStore:
    state = AccumulatorState(
        legacy_offset=MetricOffsets(clones=100, views=40),
        history=[
            DayRecord(date="2026-10-17", clones=3, clones_uniques=2, views=9, views_uniques=4),
            DayRecord(date="2026-10-18", clones=5, clones_uniques=1),
        ],
        total_clones=108,
        total_views=49,
        total_prs=2,
        total_commits=17,
    )
    return LedgerStore(
        last_updated=datetime(2026, 10, 19, 6, 0, tzinfo=timezone.utc),
        totals=LedgerTotals(
            total_clones=108,
            total_views=49,
            total_prs=2,
            total_commits=17,
            total_contributions=37,
        ),
        entities={"repo-a": state},
    )


def test_missing_file_loads_empty_store(tmp_path):
    store = load_ledger(tmp_path / "absent.json")

    assert store.entities == {}
    assert store.schema_version == SCHEMA_VERSION
    assert store.totals.total_contributions == 0
    assert store.last_updated is None


def test_save_then_load_preserves_ledger(tmp_path):
    path = tmp_path / "traffic-history.json"
    original = _sample_store()

    save_ledger(original, path)
    loaded = load_ledger(path)

    assert loaded.model_dump() == original.model_dump()


def test_saved_file_uses_camel_case_keys(tmp_path):
    path = tmp_path / "traffic-history.json"

    save_ledger(_sample_store(), path)
    document = json.loads(path.read_text(encoding="utf-8"))

    assert document["schemaVersion"] == SCHEMA_VERSION
    assert document["totals"]["totalContributions"] == 37
    entity = document["entities"]["repo-a"]
    assert entity["legacyOffset"] == {"clones": 100, "views": 40}
    assert entity["totalPRs"] == 2
    assert entity["history"][0]["clonesUniques"] == 2
    assert entity["history"][0]["viewsUniques"] == 4


def test_save_leaves_no_temp_files(tmp_path):
    path = tmp_path / "traffic-history.json"

    save_ledger(_sample_store(), path)
    save_ledger(_sample_store(), path)

    assert sorted(p.name for p in tmp_path.iterdir()) == ["traffic-history.json"]


def test_save_creates_parent_directory(tmp_path):
    path = tmp_path / "data" / "nested" / "traffic-history.json"

    save_ledger(LedgerStore(), path)

    assert path.exists()


def test_invalid_json_raises_corrupt_error(tmp_path):
    path = tmp_path / "traffic-history.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(LedgerCorruptError) as exc_info:
        load_ledger(path)

    assert "invalid JSON" in str(exc_info.value)


def test_non_object_document_raises_corrupt_error(tmp_path):
    path = tmp_path / "traffic-history.json"
    path.write_text("[1, 2, 3]", encoding="utf-8")

    with pytest.raises(LedgerCorruptError):
        load_ledger(path)


def test_duplicate_history_dates_raise_corrupt_error(tmp_path):
    path = tmp_path / "traffic-history.json"
    document = {
        "schemaVersion": SCHEMA_VERSION,
        "entities": {
            "repo-a": {
                "history": [
                    {"date": "2026-10-18", "clones": 1},
                    {"date": "2026-10-18", "clones": 2},
                ]
            }
        },
    }
    path.write_text(json.dumps(document), encoding="utf-8")

    with pytest.raises(LedgerCorruptError):
        load_ledger(path)


def test_future_schema_version_raises(tmp_path):
    path = tmp_path / "traffic-history.json"
    path.write_text(json.dumps({"schemaVersion": SCHEMA_VERSION + 1}), encoding="utf-8")

    with pytest.raises(LedgerSchemaError):
        load_ledger(path)


def test_legacy_file_is_migrated_and_totals_rebuilt(tmp_path):
    path = tmp_path / "traffic-history.json"
    legacy = {
        "lastUpdated": "2026-01-05T06:00:00Z",
        "repositories": {
            "a": {"totalClones": 120, "totalViews": 700, "totalPRs": 4, "totalCommits": 50},
            "b": {"totalClones": 30, "totalViews": 200, "totalPRs": 1, "totalCommits": 5},
        },
    }
    path.write_text(json.dumps(legacy), encoding="utf-8")

    store = load_ledger(path, pr_weight=10)

    assert store.schema_version == SCHEMA_VERSION
    assert store.entities["a"].legacy_offset.clones == 120
    assert store.totals.total_clones == 150
    assert store.totals.total_views == 900
    assert store.totals.total_prs == 5
    assert store.totals.total_commits == 55
    assert store.totals.total_contributions == 55 + 5 * 10


def test_load_does_not_rewrite_file(tmp_path):
    """Migration happens in memory; the file changes only on save."""
    path = tmp_path / "traffic-history.json"
    raw = json.dumps({"repositories": {"a": {"totalClones": 1}}})
    path.write_text(raw, encoding="utf-8")

    load_ledger(path)

    assert path.read_text(encoding="utf-8") == raw


def test_non_utf8_ledger_raises_corrupt_error(tmp_path):
    path = tmp_path / "traffic-history.json"
    path.write_bytes(b'{"schemaVersion": 2, "x": "\xff"}')

    with pytest.raises(LedgerCorruptError) as exc_info:
        load_ledger(path)

    assert "not UTF-8" in str(exc_info.value)


def test_unreadable_ledger_path_raises_corrupt_error(tmp_path):
    path = tmp_path / "traffic-history.json"
    path.mkdir()

    with pytest.raises(LedgerCorruptError) as exc_info:
        load_ledger(path)

    assert "cannot read" in str(exc_info.value)


@pytest.mark.parametrize("value", ["2026-1-5", "2026-01-5", "20260105", "2026-02-30", ""])
def test_day_record_rejects_non_canonical_dates(value):
    with pytest.raises(ValidationError):
        DayRecord(date=value)


def test_non_padded_history_date_raises_corrupt_error(tmp_path):
    """Stored dates must sort lexicographically in date order."""
    path = tmp_path / "traffic-history.json"
    document = {
        "schemaVersion": SCHEMA_VERSION,
        "entities": {"repo-a": {"history": [{"date": "2026-1-5", "clones": 1}]}},
    }
    path.write_text(json.dumps(document), encoding="utf-8")

    with pytest.raises(LedgerCorruptError):
        load_ledger(path)
