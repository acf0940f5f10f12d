"""Traffic collection service orchestrator.

Coordinates discovery, per-repository fetches and reconciliation for a
single daily run. One run at a time is assumed (scheduled externally).
"""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Optional

import aiohttp

from .config import CollectorSettings
from .github.client import GitHubClient
from .github.discovery import discover_repositories, resolve_owner
from .github.traffic import TrafficFetcher
from .ledger.aggregate import finalize_ledger
from .ledger.reconcile import reconcile_entity
from .ledger.store import load_ledger, save_ledger
from .schemas.ledger import LedgerStore


logger = logging.getLogger(__name__)


class CollectorPreconditionError(RuntimeError):
    """Base class for conditions that abort the whole run."""


class MissingCredentialError(CollectorPreconditionError):
    """Raised when no GitHub token is configured."""

    def __init__(self) -> None:
        super().__init__("GITHUB_TOKEN (or STATS_TOKEN) environment variable is not set")


class EmptyDiscoveryError(CollectorPreconditionError):
    """Raised when discovery yields no repositories to track."""

    def __init__(self, owner: Optional[str]) -> None:
        self.owner = owner
        super().__init__(f"No repositories to track for owner={owner!r}")


@dataclass
class RunSummary:
    """Outcome of one collection run."""

    run_date: date
    processed: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    store: Optional[LedgerStore] = None

    @property
    def attempted(self) -> int:
        return len(self.processed) + len(self.failed)


class TrafficCollectorService:
    """Orchestrates a daily traffic reconciliation run."""

    def __init__(self, settings: Optional[CollectorSettings] = None) -> None:
        """Initialize collector service.

        Args:
            settings: Run settings (defaults to CollectorSettings.from_env())
        """
        self.settings = settings or CollectorSettings.from_env()

        logger.info("TrafficCollectorService initialized")
        logger.info("Ledger: %s", self.settings.ledger_path)
        logger.info(
            "Retention: %s days, PR weight: %s",
            self.settings.retention_days,
            self.settings.pr_weight,
        )

    def _redact_error(self, text: str) -> str:
        token = self.settings.token
        if not text or not token:
            return text
        return text.replace(token, "[REDACTED]")

    def _today(self) -> date:
        return datetime.now(self.settings.tzinfo).date()

    async def run_once(self) -> RunSummary:
        """Run one reconciliation pass over every tracked repository.

        Returns:
            RunSummary with processed/failed repositories and the saved ledger

        Raises:
            MissingCredentialError: If no token is configured
            EmptyDiscoveryError: If there is nothing to track
            LedgerCorruptError: If the stored ledger cannot be read
        """
        if not self.settings.token:
            raise MissingCredentialError()

        run_date = self._today()
        logger.info("Starting traffic collection for %s", run_date.isoformat())

        store = load_ledger(self.settings.ledger_path, self.settings.pr_weight)
        summary = RunSummary(run_date=run_date, store=store)

        timeout = aiohttp.ClientTimeout(total=300, connect=30)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            client = GitHubClient(token=self.settings.token, session=session)

            owner = await resolve_owner(client, self.settings.owner)
            if not owner:
                raise EmptyDiscoveryError(owner)

            repos = await self._discover(client, owner)
            if not repos:
                raise EmptyDiscoveryError(owner)

            logger.info("Fetching traffic for %s repositories", len(repos))

            fetcher = TrafficFetcher(client, owner, raw_dir=self.settings.raw_dir)
            for index, repo in enumerate(repos):
                if index:
                    await asyncio.sleep(self.settings.request_pause)
                await self._collect_repo(repo, fetcher, store, summary)

        finalize_ledger(
            store,
            completed_at=datetime.now(timezone.utc),
            pr_weight=self.settings.pr_weight,
        )
        save_ledger(store, self.settings.ledger_path)

        self._log_summary(summary)
        return summary

    async def _discover(self, client: GitHubClient, owner: str) -> list[str]:
        if self.settings.repos:
            excluded = {name.lower() for name in self.settings.exclude}
            repos = [name for name in self.settings.repos if name.lower() not in excluded]
            logger.info("Using %s configured repositories", len(repos))
            return repos

        return await discover_repositories(
            client,
            owner,
            include_private=self.settings.include_private,
            exclude=self.settings.exclude,
        )

    async def _collect_repo(
        self,
        repo: str,
        fetcher: TrafficFetcher,
        store: LedgerStore,
        summary: RunSummary,
    ) -> None:
        """Fetch and reconcile one repository; failures leave its entry untouched."""
        try:
            window = await fetcher.fetch_window(repo)
            result = reconcile_entity(
                store.entities.get(repo),
                window,
                today=summary.run_date,
                retention_days=self.settings.retention_days,
            )
        except Exception as exc:
            logger.error(
                "%s: collection failed: %s",
                repo,
                self._redact_error(str(exc)),
                exc_info=True,
            )
            summary.failed.append(repo)
            return

        store.entities[repo] = result.state
        summary.processed.append(repo)

        state = result.state
        logger.info(
            "%s: %s clones, %s views (all-time), %s PRs, %s commits "
            "[+%s new days, %s updated, %s aged out]",
            repo,
            state.total_clones,
            state.total_views,
            state.total_prs,
            state.total_commits,
            result.inserted,
            result.updated,
            result.aged_out,
        )

        if self.settings.save_each_entity:
            # On-disk totals must match the entities saved so far
            finalize_ledger(
                store,
                completed_at=datetime.now(timezone.utc),
                pr_weight=self.settings.pr_weight,
            )
            save_ledger(store, self.settings.ledger_path)

    def _log_summary(self, summary: RunSummary) -> None:
        totals = summary.store.totals if summary.store else None
        logger.info(
            "Collection complete for %s: %s processed, %s failed",
            summary.run_date.isoformat(),
            len(summary.processed),
            len(summary.failed),
        )
        if summary.failed:
            logger.warning("Failed repositories: %s", ", ".join(summary.failed))
        if totals is not None:
            logger.info(
                "All-time totals: %s clones, %s views, %s PRs, %s commits, "
                "%s contributions",
                totals.total_clones,
                totals.total_views,
                totals.total_prs,
                totals.total_commits,
                totals.total_contributions,
            )
