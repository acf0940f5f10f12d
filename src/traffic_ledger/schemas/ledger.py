"""Pydantic models for the persisted traffic ledger document.

The document is read and written wholesale as camelCase JSON:
schemaVersion, lastUpdated, totals, entities.
"""
import re
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


CURRENT_SCHEMA_VERSION = 2

# Zero-padded so that string order is date order
_ISO_DAY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class Metric(str, Enum):
    """Windowed traffic metrics tracked per day."""

    CLONES = "clones"
    VIEWS = "views"

    @property
    def uniques_field(self) -> str:
        """Name of the DayRecord attribute holding this metric's uniques."""
        return f"{self.value}_uniques"


class DayRecord(BaseModel):
    """Traffic counts for one repository on one calendar date."""

    model_config = ConfigDict(populate_by_name=True)

    date: str = Field(..., description="Calendar date (YYYY-MM-DD)")
    clones: int = Field(0, ge=0)
    clones_uniques: int = Field(0, ge=0, alias="clonesUniques")
    views: int = Field(0, ge=0)
    views_uniques: int = Field(0, ge=0, alias="viewsUniques")

    @field_validator("date")
    @classmethod
    def date_is_iso_day(cls, value: str) -> str:
        if not _ISO_DAY_RE.match(value):
            raise ValueError(f"date must be YYYY-MM-DD, got {value!r}")
        datetime.strptime(value, "%Y-%m-%d")
        return value

    def count(self, metric: Metric) -> int:
        return getattr(self, metric.value)

    def set_metric(self, metric: Metric, count: int, uniques: int) -> None:
        """Overwrite one metric's fields, leaving the other metric untouched."""
        setattr(self, metric.value, count)
        setattr(self, metric.uniques_field, uniques)


class MetricOffsets(BaseModel):
    """Baseline counts not covered by retained per-day history."""

    clones: int = Field(0, ge=0)
    views: int = Field(0, ge=0)

    def get(self, metric: Metric) -> int:
        return getattr(self, metric.value)

    def add(self, metric: Metric, amount: int) -> None:
        if amount < 0:
            raise ValueError("legacy offset can only grow")
        setattr(self, metric.value, self.get(metric) + amount)


class AccumulatorState(BaseModel):
    """Persisted all-time accumulator for one tracked repository."""

    model_config = ConfigDict(populate_by_name=True)

    legacy_offset: MetricOffsets = Field(
        default_factory=MetricOffsets, alias="legacyOffset"
    )
    history: list[DayRecord] = Field(default_factory=list)
    total_clones: int = Field(0, ge=0, alias="totalClones")
    total_views: int = Field(0, ge=0, alias="totalViews")
    total_prs: int = Field(0, ge=0, alias="totalPRs")
    total_commits: int = Field(0, ge=0, alias="totalCommits")

    @field_validator("history")
    @classmethod
    def history_unique_and_sorted(cls, history: list[DayRecord]) -> list[DayRecord]:
        seen: set[str] = set()
        for record in history:
            if record.date in seen:
                raise ValueError(f"duplicate history date: {record.date}")
            seen.add(record.date)
        return sorted(history, key=lambda record: record.date)

    def total(self, metric: Metric) -> int:
        if metric is Metric.CLONES:
            return self.total_clones
        return self.total_views

    def history_sum(self, metric: Metric) -> int:
        return sum(record.count(metric) for record in self.history)


class LedgerTotals(BaseModel):
    """System-wide sums, recomputed from entity totals every run."""

    model_config = ConfigDict(populate_by_name=True)

    total_clones: int = Field(0, ge=0, alias="totalClones")
    total_views: int = Field(0, ge=0, alias="totalViews")
    total_prs: int = Field(0, ge=0, alias="totalPRs")
    total_commits: int = Field(0, ge=0, alias="totalCommits")
    total_contributions: int = Field(0, ge=0, alias="totalContributions")


class LedgerStore(BaseModel):
    """Root ledger document."""

    model_config = ConfigDict(populate_by_name=True)

    schema_version: int = Field(CURRENT_SCHEMA_VERSION, alias="schemaVersion")
    last_updated: Optional[datetime] = Field(None, alias="lastUpdated")
    totals: LedgerTotals = Field(default_factory=LedgerTotals)
    entities: dict[str, AccumulatorState] = Field(default_factory=dict)
