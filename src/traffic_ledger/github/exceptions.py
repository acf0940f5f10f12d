"""Custom exceptions for the GitHub traffic client."""
from typing import Optional


class GitHubClientError(Exception):
    """Base exception for all GitHub client errors."""


class GitHubApiError(GitHubClientError):
    """Raised for GitHub API errors (HTTP 4xx/5xx, retries exhausted)."""

    def __init__(self, status: Optional[int], message: str, url: str = ""):
        self.status = status
        self.url = url
        prefix = f"HTTP {status}" if status is not None else "Request failed"
        super().__init__(f"{prefix} for {url}: {message}" if url else f"{prefix}: {message}")


class GitHubRateLimitError(GitHubApiError):
    """Raised when the primary rate limit is exhausted (403, remaining=0)."""

    def __init__(self, url: str, reset_at: Optional[int] = None):
        self.reset_at = reset_at
        super().__init__(403, f"rate limit exhausted (reset={reset_at})", url)


class TrafficFetchError(GitHubClientError):
    """Raised when nothing usable could be fetched for a repository."""

    def __init__(self, repo: str, reasons: list[str]):
        self.repo = repo
        self.reasons = reasons
        detail = "; ".join(reasons) if reasons else "no data"
        super().__init__(f"No traffic data for {repo}: {detail}")
