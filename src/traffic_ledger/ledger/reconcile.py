"""Reconciliation engine: merge a fetched traffic window into an accumulator.

Each run re-fetches the upstream's rolling window, so the same dates are seen
many times. Days are upserted (latest fetch wins), days older than the
retention cutoff are folded into the legacy offset before being dropped, and
totals are recomputed from scratch.
"""
import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable, Optional

from ..schemas.ledger import AccumulatorState, DayRecord, Metric
from ..schemas.traffic import DailyObservation, EntityWindow


logger = logging.getLogger(__name__)


WINDOWED_METRICS = (Metric.CLONES, Metric.VIEWS)

# The upstream exposes 14 days; retaining less would fold days that can
# still be re-fetched.
UPSTREAM_WINDOW_DAYS = 14
DEFAULT_RETENTION_DAYS = 90


@dataclass(frozen=True)
class ReconcileResult:
    """Outcome of reconciling one repository."""

    state: AccumulatorState
    inserted: int = 0
    updated: int = 0
    ignored: int = 0
    aged_out: int = 0


def retention_cutoff(today: date, retention_days: int) -> date:
    """First date that is still kept as per-day history."""
    return today - timedelta(days=retention_days)


def upsert_observations(
    history: dict[str, DayRecord],
    metric: Metric,
    observations: Iterable[DailyObservation],
) -> tuple[int, int]:
    """Write one metric's observations into a date-keyed history.

    Existing records get this metric's count/uniques overwritten and keep the
    other metric's values. Missing dates get a new record with the other
    metric zeroed.

    Args:
        history: Mapping of date -> DayRecord, mutated in place
        metric: Metric the observations belong to
        observations: Fetched (date, count, uniques) tuples

    Returns:
        (inserted, updated) record counts
    """
    inserted = 0
    updated = 0
    for obs in observations:
        record = history.get(obs.date)
        if record is None:
            record = DayRecord(date=obs.date)
            history[obs.date] = record
            inserted += 1
        else:
            updated += 1
        record.set_metric(metric, obs.count, obs.uniques)
    return inserted, updated


def apply_retention(state: AccumulatorState, cutoff: date) -> list[DayRecord]:
    """Fold days older than ``cutoff`` into the legacy offset and drop them.

    The offset is only ever added to, so the all-time total is unchanged by
    pruning.

    Returns:
        The aged-out records, oldest first
    """
    cutoff_key = cutoff.isoformat()
    aged: list[DayRecord] = []
    retained: list[DayRecord] = []
    for record in state.history:
        if record.date < cutoff_key:
            aged.append(record)
        else:
            retained.append(record)

    for record in aged:
        for metric in WINDOWED_METRICS:
            state.legacy_offset.add(metric, record.count(metric))

    state.history = sorted(retained, key=lambda record: record.date)
    aged.sort(key=lambda record: record.date)
    return aged


def recompute_totals(state: AccumulatorState) -> None:
    """Derive all-time totals from the offset plus retained history."""
    state.total_clones = state.legacy_offset.clones + state.history_sum(Metric.CLONES)
    state.total_views = state.legacy_offset.views + state.history_sum(Metric.VIEWS)


def apply_point_in_time(state: AccumulatorState, window: EntityWindow) -> None:
    """Overwrite PR/commit counters with current values when they were fetched."""
    if window.prs is not None:
        state.total_prs = window.prs
    if window.commits is not None:
        state.total_commits = window.commits


def reconcile_entity(
    state: Optional[AccumulatorState],
    window: EntityWindow,
    today: date,
    retention_days: int = DEFAULT_RETENTION_DAYS,
) -> ReconcileResult:
    """Reconcile one repository's fetched window into its accumulator.

    Works on a deep copy: the caller's state is never mutated, so a failure
    part-way leaves the persisted entry exactly as it was.

    Args:
        state: Prior accumulator, or None for a repository seen for the first time
        window: Fetch result for this run
        today: Run date used for the retention cutoff
        retention_days: Days of per-day history to keep

    Returns:
        ReconcileResult with the new state and change counts
    """
    if retention_days < UPSTREAM_WINDOW_DAYS:
        raise ValueError(
            f"retention_days must be >= {UPSTREAM_WINDOW_DAYS}, got {retention_days}"
        )

    working = state.model_copy(deep=True) if state is not None else AccumulatorState()
    cutoff = retention_cutoff(today, retention_days)
    cutoff_key = cutoff.isoformat()

    history = {record.date: record for record in working.history}
    inserted = updated = ignored = 0

    for metric in WINDOWED_METRICS:
        observations = window.window(metric)
        if observations is None:
            logger.debug(
                "No %s data for %s this run, keeping stored days",
                metric.value,
                window.repo,
            )
            continue

        fresh = [obs for obs in observations if obs.date >= cutoff_key]
        if len(fresh) != len(observations):
            ignored += len(observations) - len(fresh)
            logger.debug(
                "Ignored %s %s observations before %s for %s",
                len(observations) - len(fresh),
                metric.value,
                cutoff_key,
                window.repo,
            )

        metric_inserted, metric_updated = upsert_observations(history, metric, fresh)
        inserted += metric_inserted
        updated += metric_updated

    working.history = sorted(history.values(), key=lambda record: record.date)

    aged = apply_retention(working, cutoff)
    if aged:
        logger.info(
            "Aged %s days out of %s history (%s -> %s) into legacy offset",
            len(aged),
            window.repo,
            aged[0].date,
            aged[-1].date,
        )

    recompute_totals(working)
    apply_point_in_time(working, window)

    return ReconcileResult(
        state=working,
        inserted=inserted,
        updated=updated,
        ignored=ignored,
        aged_out=len(aged),
    )
