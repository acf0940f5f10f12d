"""Typed shapes for GitHub traffic responses and per-repository fetch results."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from .ledger import Metric


def _none_to_zero(value: Any) -> Any:
    return 0 if value is None else value


class TrafficDay(BaseModel):
    """One day of a GitHub traffic breakdown."""

    timestamp: datetime
    count: int = Field(0, ge=0)
    uniques: int = Field(0, ge=0)

    @field_validator("count", "uniques", mode="before")
    @classmethod
    def missing_counts_are_zero(cls, value: Any) -> Any:
        return _none_to_zero(value)


class TrafficWindowPayload(BaseModel):
    """GET /repos/{owner}/{repo}/traffic/{clones|views} response body."""

    count: int = Field(0, ge=0, description="Sum over the returned window")
    uniques: int = Field(0, ge=0, description="Unique visitors/cloners in window")
    days: list[TrafficDay] = Field(default_factory=list)

    @field_validator("count", "uniques", mode="before")
    @classmethod
    def missing_counts_are_zero(cls, value: Any) -> Any:
        return _none_to_zero(value)


@dataclass(frozen=True)
class DailyObservation:
    """A fetched (date, count, uniques) tuple for one windowed metric."""

    date: str
    count: int
    uniques: int


@dataclass(frozen=True)
class EntityWindow:
    """Everything fetched for one repository in one run.

    A ``None`` component means the upstream returned no usable data for it.
    """

    repo: str
    observations: dict[Metric, Optional[tuple[DailyObservation, ...]]] = field(
        default_factory=dict
    )
    prs: Optional[int] = None
    commits: Optional[int] = None

    def window(self, metric: Metric) -> Optional[tuple[DailyObservation, ...]]:
        return self.observations.get(metric)

    @property
    def has_data(self) -> bool:
        return (
            any(obs is not None for obs in self.observations.values())
            or self.prs is not None
            or self.commits is not None
        )
