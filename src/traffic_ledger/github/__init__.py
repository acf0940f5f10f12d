"""GitHub integration: REST client, repository discovery, traffic fetcher."""
from .client import GitHubClient, GitHubResponse, parse_link_header
from .discovery import discover_repositories, filter_repositories, resolve_owner
from .exceptions import (
    GitHubApiError,
    GitHubClientError,
    GitHubRateLimitError,
    TrafficFetchError,
)
from .traffic import TrafficFetcher, parse_traffic_window

__all__ = [
    "GitHubClient",
    "GitHubResponse",
    "TrafficFetcher",
    "discover_repositories",
    "filter_repositories",
    "parse_link_header",
    "parse_traffic_window",
    "resolve_owner",
    "GitHubApiError",
    "GitHubClientError",
    "GitHubRateLimitError",
    "TrafficFetchError",
]
