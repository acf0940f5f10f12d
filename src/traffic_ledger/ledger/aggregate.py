"""System-wide totals folded from per-repository accumulators."""
from datetime import datetime, timezone
from typing import Mapping, Optional

from ..schemas.ledger import AccumulatorState, LedgerStore, LedgerTotals


DEFAULT_PR_WEIGHT = 10


def contribution_score(commits: int, prs: int, pr_weight: int = DEFAULT_PR_WEIGHT) -> int:
    """Commits plus PRs, with a PR counted as ``pr_weight`` commits."""
    return commits + prs * pr_weight


def compute_global_totals(
    entities: Mapping[str, AccumulatorState],
    pr_weight: int = DEFAULT_PR_WEIGHT,
) -> LedgerTotals:
    """Fresh fold over every entity, including ones no longer tracked."""
    clones = views = prs = commits = 0
    for state in entities.values():
        clones += state.total_clones
        views += state.total_views
        prs += state.total_prs
        commits += state.total_commits

    return LedgerTotals(
        total_clones=clones,
        total_views=views,
        total_prs=prs,
        total_commits=commits,
        total_contributions=contribution_score(commits, prs, pr_weight),
    )


def finalize_ledger(
    store: LedgerStore,
    completed_at: Optional[datetime] = None,
    pr_weight: int = DEFAULT_PR_WEIGHT,
) -> LedgerStore:
    """Recompute global totals and stamp the completion time in place."""
    store.totals = compute_global_totals(store.entities, pr_weight)
    store.last_updated = completed_at or datetime.now(timezone.utc)
    return store
