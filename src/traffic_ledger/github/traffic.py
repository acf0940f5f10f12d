"""Per-repository traffic window fetcher.

Fetches clones and views traffic plus current PR and commit counts.
GitHub only exposes the last 14 days of traffic, and may revise days it is
still finalizing.
"""
import asyncio
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import aiofiles
from pydantic import ValidationError

from ..schemas.ledger import Metric
from ..schemas.traffic import DailyObservation, EntityWindow, TrafficWindowPayload
from .client import GitHubClient
from .exceptions import TrafficFetchError


logger = logging.getLogger(__name__)


def parse_traffic_window(
    metric: Metric, payload: Any
) -> Optional[tuple[DailyObservation, ...]]:
    """Parse a traffic response into observations, or None if unusable.

    The per-day list lives under the metric's name ("clones"/"views").
    Error payloads and malformed shapes yield None, never partial data.
    Missing per-day counts default to zero.
    """
    if not isinstance(payload, dict) or not isinstance(payload.get(metric.value), list):
        return None

    body = {
        "count": payload.get("count"),
        "uniques": payload.get("uniques"),
        "days": payload[metric.value],
    }
    try:
        parsed = TrafficWindowPayload.model_validate(body)
    except ValidationError as exc:
        logger.debug("Malformed %s payload: %s", metric.value, exc)
        return None

    return tuple(
        DailyObservation(
            date=day.timestamp.date().isoformat(),
            count=day.count,
            uniques=day.uniques,
        )
        for day in parsed.days
    )


class TrafficFetcher:
    """Async fetcher for one owner's repository traffic."""

    def __init__(
        self,
        client: GitHubClient,
        owner: str,
        raw_dir: Optional[Path] = None,
    ) -> None:
        """Initialize traffic fetcher.

        Args:
            client: GitHub REST client
            owner: Repository owner (user or organization)
            raw_dir: Directory for raw JSONL audit logs (disabled if None)
        """
        self.client = client
        self.owner = owner
        self.raw_dir = Path(raw_dir) if raw_dir else None
        if self.raw_dir:
            self.raw_dir.mkdir(parents=True, exist_ok=True)

    async def fetch_window(self, repo: str) -> EntityWindow:
        """Fetch the four traffic resources for ``repo`` concurrently.

        Components that fail or come back malformed are reported as None.

        Raises:
            TrafficFetchError: If no component could be fetched
        """
        labels = ("clones", "views", "prs", "commits")
        results = await asyncio.gather(
            self.fetch_traffic(repo, Metric.CLONES),
            self.fetch_traffic(repo, Metric.VIEWS),
            self.count_pull_requests(repo),
            self.count_commits(repo),
            return_exceptions=True,
        )

        values: list[Any] = []
        failures: list[str] = []
        for label, result in zip(labels, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                reason = self.client.redact(str(result))
                logger.warning("%s: %s unavailable: %s", repo, label, reason)
                failures.append(f"{label}: {reason}")
                values.append(None)
            else:
                if result is None:
                    failures.append(f"{label}: no data")
                values.append(result)

        clones, views, prs, commits = values
        window = EntityWindow(
            repo=repo,
            observations={Metric.CLONES: clones, Metric.VIEWS: views},
            prs=prs,
            commits=commits,
        )

        if not window.has_data:
            raise TrafficFetchError(repo, failures)

        return window

    async def fetch_traffic(
        self, repo: str, metric: Metric
    ) -> Optional[tuple[DailyObservation, ...]]:
        """Fetch and parse one metric's 14-day daily breakdown."""
        response = await self.client.get(
            f"/repos/{self.owner}/{repo}/traffic/{metric.value}",
            params={"per": "day"},
        )

        await self._write_raw(repo, metric, response.data)

        observations = parse_traffic_window(metric, response.data)
        if observations is None:
            logger.warning("%s: malformed %s traffic response, ignoring", repo, metric.value)
            return None

        logger.debug("%s: fetched %s %s days", repo, len(observations), metric.value)
        return observations

    async def count_pull_requests(self, repo: str) -> int:
        """Current number of pull requests in any state."""
        return await self.client.count_items(
            f"/repos/{self.owner}/{repo}/pulls", params={"state": "all"}
        )

    async def count_commits(self, repo: str) -> int:
        """Current commit count, summed over contributor contributions."""
        contributors = await self.client.paginate(f"/repos/{self.owner}/{repo}/contributors")
        total = 0
        for contributor in contributors:
            if isinstance(contributor, dict):
                total += int(contributor.get("contributions") or 0)
        return total

    async def _write_raw(self, repo: str, metric: Metric, payload: Any) -> None:
        if self.raw_dir is None:
            return

        fetched_at = datetime.now(timezone.utc)
        jsonl_path = (
            self.raw_dir / f"raw_traffic_{metric.value}_{fetched_at.date().isoformat()}.jsonl"
        )
        envelope = {
            "source": "github",
            "repo": f"{self.owner}/{repo}",
            "metric": metric.value,
            "fetched_at": fetched_at.isoformat(),
            "response_item": payload,
        }
        async with aiofiles.open(jsonl_path, mode="a", encoding="utf-8") as f:
            await f.write(json.dumps(envelope, ensure_ascii=False) + "\n")
