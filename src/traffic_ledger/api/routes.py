"""FastAPI routes exposing the traffic ledger read-only."""
import logging
import os
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field

from ..config import DEFAULT_LEDGER_PATH, resolve_pr_weight
from ..ledger.exceptions import LedgerError
from ..ledger.store import load_ledger
from ..schemas.ledger import AccumulatorState, LedgerStore, LedgerTotals
from .auth import require_api_key


logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/v1/stats",
    tags=["stats"],
    dependencies=[Depends(require_api_key)],
)


class StatsSummaryResponse(BaseModel):
    """Global ledger summary."""

    model_config = ConfigDict(populate_by_name=True)

    schema_version: int = Field(..., alias="schemaVersion")
    last_updated: Optional[datetime] = Field(None, alias="lastUpdated")
    repository_count: int = Field(..., alias="repositoryCount")
    totals: LedgerTotals


class RepositoryTotals(BaseModel):
    """Per-repository totals without the day-level history."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    total_clones: int = Field(..., alias="totalClones")
    total_views: int = Field(..., alias="totalViews")
    total_prs: int = Field(..., alias="totalPRs")
    total_commits: int = Field(..., alias="totalCommits")
    history_days: int = Field(..., alias="historyDays")


def get_ledger() -> LedgerStore:
    """Load the ledger configured by TRAFFIC_LEDGER_PATH for this request."""
    path = os.getenv("TRAFFIC_LEDGER_PATH", DEFAULT_LEDGER_PATH)
    pr_weight = resolve_pr_weight()
    try:
        return load_ledger(path, pr_weight)
    except LedgerError as exc:
        logger.error("Failed to load ledger %s: %s", path, exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Ledger unavailable",
        ) from exc


@router.get(
    "",
    response_model=StatsSummaryResponse,
    summary="Global traffic totals",
)
async def get_stats(ledger: LedgerStore = Depends(get_ledger)) -> StatsSummaryResponse:
    return StatsSummaryResponse(
        schema_version=ledger.schema_version,
        last_updated=ledger.last_updated,
        repository_count=len(ledger.entities),
        totals=ledger.totals,
    )


@router.get(
    "/repositories",
    response_model=list[RepositoryTotals],
    summary="Per-repository totals",
    description="All tracked repositories, most cloned first.",
)
async def list_repositories(
    ledger: LedgerStore = Depends(get_ledger),
) -> list[RepositoryTotals]:
    rows = [
        RepositoryTotals(
            name=name,
            total_clones=state.total_clones,
            total_views=state.total_views,
            total_prs=state.total_prs,
            total_commits=state.total_commits,
            history_days=len(state.history),
        )
        for name, state in ledger.entities.items()
    ]
    rows.sort(key=lambda row: (-row.total_clones, row.name.lower()))
    return rows


@router.get(
    "/repositories/{name}",
    response_model=AccumulatorState,
    summary="Full accumulator state for one repository",
)
async def get_repository(
    name: str,
    ledger: LedgerStore = Depends(get_ledger),
) -> AccumulatorState:
    state = ledger.entities.get(name)
    if state is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Repository '{name}' is not tracked",
        )
    return state
