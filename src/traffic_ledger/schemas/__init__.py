"""Pydantic models for the traffic ledger and GitHub traffic payloads."""
from .ledger import (
    CURRENT_SCHEMA_VERSION,
    AccumulatorState,
    DayRecord,
    LedgerStore,
    LedgerTotals,
    Metric,
    MetricOffsets,
)
from .traffic import DailyObservation, EntityWindow, TrafficDay, TrafficWindowPayload

__all__ = [
    "CURRENT_SCHEMA_VERSION",
    "AccumulatorState",
    "DailyObservation",
    "DayRecord",
    "EntityWindow",
    "LedgerStore",
    "LedgerTotals",
    "Metric",
    "MetricOffsets",
    "TrafficDay",
    "TrafficWindowPayload",
]
