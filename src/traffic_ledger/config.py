"""Environment-driven settings for the traffic collector."""
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo

from .ledger.aggregate import DEFAULT_PR_WEIGHT
from .ledger.reconcile import DEFAULT_RETENTION_DAYS, UPSTREAM_WINDOW_DAYS


logger = logging.getLogger(__name__)


DEFAULT_LEDGER_PATH = "data/traffic-history.json"
DEFAULT_REQUEST_PAUSE = 0.1  # seconds between repositories


def _split_names(value: Optional[str]) -> tuple[str, ...]:
    if not value:
        return ()
    return tuple(name.strip() for name in value.split(",") if name.strip())


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {value!r}") from exc


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {value!r}") from exc


def owner_from_environment() -> Optional[str]:
    """Owner from GITHUB_USERNAME, else the owner half of GITHUB_REPOSITORY."""
    username = os.getenv("GITHUB_USERNAME")
    if username and username.strip():
        return username.strip()
    repository = os.getenv("GITHUB_REPOSITORY")
    if repository and "/" in repository:
        return repository.split("/", 1)[0]
    return None


def resolve_pr_weight() -> int:
    """TRAFFIC_PR_WEIGHT, falling back to the default when it is invalid."""
    try:
        weight = _env_int("TRAFFIC_PR_WEIGHT", DEFAULT_PR_WEIGHT)
    except ValueError as exc:
        logger.warning("%s, using %s", exc, DEFAULT_PR_WEIGHT)
        return DEFAULT_PR_WEIGHT
    if weight < 0:
        logger.warning("Negative TRAFFIC_PR_WEIGHT %s, using %s", weight, DEFAULT_PR_WEIGHT)
        return DEFAULT_PR_WEIGHT
    return weight


def resolve_timezone(tz_name: str) -> ZoneInfo:
    try:
        return ZoneInfo(tz_name)
    except Exception:
        logger.warning("Invalid TRAFFIC_TIMEZONE '%s', using UTC", tz_name)
        return ZoneInfo("UTC")


@dataclass(frozen=True)
class CollectorSettings:
    """Settings for one collection run."""

    token: Optional[str] = None
    owner: Optional[str] = None
    ledger_path: Path = Path(DEFAULT_LEDGER_PATH)
    raw_dir: Optional[Path] = None
    retention_days: int = DEFAULT_RETENTION_DAYS
    request_pause: float = DEFAULT_REQUEST_PAUSE
    pr_weight: int = DEFAULT_PR_WEIGHT
    repos: tuple[str, ...] = ()
    exclude: tuple[str, ...] = ()
    include_private: bool = False
    timezone: str = "UTC"
    save_each_entity: bool = False
    _tzinfo: ZoneInfo = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.retention_days < UPSTREAM_WINDOW_DAYS:
            raise ValueError(
                f"retention_days must be at least {UPSTREAM_WINDOW_DAYS} "
                f"(upstream window), got {self.retention_days}"
            )
        if self.request_pause < 0:
            raise ValueError("request_pause must be >= 0")
        if self.pr_weight < 0:
            raise ValueError("pr_weight must be >= 0")
        object.__setattr__(self, "ledger_path", Path(self.ledger_path))
        if self.raw_dir is not None:
            object.__setattr__(self, "raw_dir", Path(self.raw_dir))
        object.__setattr__(self, "_tzinfo", resolve_timezone(self.timezone))

    @property
    def tzinfo(self) -> ZoneInfo:
        return self._tzinfo

    @classmethod
    def from_env(cls) -> "CollectorSettings":
        """Build settings from environment variables."""
        raw_dir = os.getenv("TRAFFIC_RAW_DIR")
        return cls(
            token=os.getenv("GITHUB_TOKEN") or os.getenv("STATS_TOKEN"),
            owner=owner_from_environment(),
            ledger_path=Path(os.getenv("TRAFFIC_LEDGER_PATH", DEFAULT_LEDGER_PATH)),
            raw_dir=Path(raw_dir) if raw_dir else None,
            retention_days=_env_int("TRAFFIC_RETENTION_DAYS", DEFAULT_RETENTION_DAYS),
            request_pause=_env_float("TRAFFIC_REQUEST_PAUSE", DEFAULT_REQUEST_PAUSE),
            pr_weight=_env_int("TRAFFIC_PR_WEIGHT", DEFAULT_PR_WEIGHT),
            repos=_split_names(os.getenv("TRAFFIC_REPOS")),
            exclude=_split_names(os.getenv("TRAFFIC_EXCLUDE_REPOS")),
            include_private=_env_bool("TRAFFIC_INCLUDE_PRIVATE"),
            timezone=os.getenv("TRAFFIC_TIMEZONE", "UTC"),
            save_each_entity=_env_bool("TRAFFIC_SAVE_EACH_ENTITY"),
        )
