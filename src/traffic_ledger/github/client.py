"""Async GitHub REST client with retry and Link-header pagination."""
import asyncio
import logging
import random
import re
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional
from urllib.parse import parse_qs, urlparse

import aiohttp
from multidict import CIMultiDict

from .exceptions import GitHubApiError, GitHubRateLimitError


API_BASE = "https://api.github.com"

_LINK_RE = re.compile(r'<([^>]+)>\s*;\s*rel="([^"]+)"')


def parse_link_header(value: Optional[str]) -> dict[str, str]:
    """Map rel -> URL from a GitHub ``Link`` header."""
    if not value:
        return {}
    return {rel: url for url, rel in _LINK_RE.findall(value)}


def _page_number(url: str) -> Optional[int]:
    pages = parse_qs(urlparse(url).query).get("page")
    if not pages:
        return None
    try:
        return int(pages[0])
    except ValueError:
        return None


@dataclass(frozen=True)
class GitHubResponse:
    """Successful response: status, parsed body (None for 204) and headers."""

    status: int
    data: Any
    headers: Mapping[str, str] = field(default_factory=CIMultiDict)

    @property
    def links(self) -> dict[str, str]:
        return parse_link_header(self.headers.get("Link"))


class GitHubClient:
    """Async client for the GitHub REST API v3.

    Retries 429/5xx/network errors with exponential backoff.
    Other 4xx responses fail immediately.
    """

    MAX_RETRY_ATTEMPTS = 4
    RETRY_BASE_DELAY = 0.5  # seconds
    RETRY_MULTIPLIER = 2.0
    RETRY_MAX_DELAY = 30.0  # seconds
    RETRY_JITTER_MS = 250  # milliseconds

    PER_PAGE = 100

    def __init__(
        self,
        token: str,
        session: aiohttp.ClientSession,
        api_base: str = API_BASE,
        logger: Optional[logging.Logger] = None,
    ):
        """Initialize GitHub client.

        Args:
            token: Personal access token (never logged)
            session: Injected aiohttp ClientSession
            api_base: REST API root
            logger: Optional logger instance
        """
        self._token = token
        self.session = session
        self.api_base = api_base.rstrip("/")
        self.logger = logger or logging.getLogger(__name__)

    def redact(self, text: str) -> str:
        if not text or not self._token:
            return text
        return text.replace(self._token, "[REDACTED]")

    def _url(self, path_or_url: str) -> str:
        if path_or_url.startswith("http://") or path_or_url.startswith("https://"):
            return path_or_url
        return f"{self.api_base}/{path_or_url.lstrip('/')}"

    def _headers(self) -> dict[str, str]:
        return {
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {self._token}",
            "User-Agent": "traffic-ledger/0.1",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    async def get(
        self, path_or_url: str, params: Optional[dict] = None
    ) -> GitHubResponse:
        """GET with retry logic.

        Args:
            path_or_url: API path ("/repos/o/r") or absolute URL (pagination)
            params: Query parameters

        Returns:
            GitHubResponse for a 2xx status

        Raises:
            GitHubRateLimitError: Primary rate limit exhausted
            GitHubApiError: Non-retryable status or retries exhausted
        """
        url = self._url(path_or_url)

        attempt = 0
        while True:
            attempt += 1

            try:
                timeout = aiohttp.ClientTimeout(total=30, connect=10)
                async with self.session.get(
                    url,
                    params=params,
                    headers=self._headers(),
                    timeout=timeout,
                ) as resp:
                    headers = CIMultiDict(resp.headers or {})

                    if resp.status == 403 and headers.get("X-RateLimit-Remaining") == "0":
                        reset = headers.get("X-RateLimit-Reset")
                        raise GitHubRateLimitError(
                            url, int(reset) if reset and reset.isdigit() else None
                        )

                    # Secondary rate limits come back as 429 or 403 + Retry-After
                    retry_after = headers.get("Retry-After")
                    if resp.status == 429 or (resp.status == 403 and retry_after):
                        response_text = await resp.text()
                        if attempt > self.MAX_RETRY_ATTEMPTS:
                            raise GitHubApiError(
                                resp.status,
                                f"rate limited after {attempt} attempts: "
                                f"{self.redact(response_text[:200])}",
                                url,
                            )

                        if retry_after and retry_after.isdigit():
                            delay = min(float(retry_after), self.RETRY_MAX_DELAY)
                        else:
                            delay = self._calculate_backoff(attempt)
                        self.logger.warning(
                            "HTTP %s for %s, retry in %.2fs, attempt=%s",
                            resp.status,
                            url,
                            delay,
                            attempt,
                        )
                        await asyncio.sleep(delay)
                        continue

                    if 500 <= resp.status < 600:
                        response_text = await resp.text()
                        if attempt > self.MAX_RETRY_ATTEMPTS:
                            raise GitHubApiError(
                                resp.status,
                                f"after {attempt} attempts: "
                                f"{self.redact(response_text[:200])}",
                                url,
                            )

                        delay = self._calculate_backoff(attempt)
                        self.logger.warning(
                            "HTTP %s for %s, backoff=%.2fs, attempt=%s",
                            resp.status,
                            url,
                            delay,
                            attempt,
                        )
                        await asyncio.sleep(delay)
                        continue

                    if 400 <= resp.status < 500:
                        response_text = await resp.text()
                        raise GitHubApiError(
                            resp.status,
                            f"(non-retryable) {self.redact(response_text[:500])}",
                            url,
                        )

                    if resp.status == 204:
                        return GitHubResponse(status=204, data=None, headers=headers)

                    data = await resp.json(content_type=None)
                    return GitHubResponse(status=resp.status, data=data, headers=headers)

            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                if attempt > self.MAX_RETRY_ATTEMPTS:
                    raise GitHubApiError(
                        None, f"network error after {attempt} attempts: {e}", url
                    )

                delay = self._calculate_backoff(attempt)
                self.logger.warning(
                    "Network error for %s: %s, backoff=%.2fs, attempt=%s",
                    url,
                    e,
                    delay,
                    attempt,
                )
                await asyncio.sleep(delay)
                continue

    async def paginate(self, path: str, params: Optional[dict] = None) -> list[Any]:
        """Follow ``rel="next"`` links and concatenate the list pages."""
        query = {"per_page": self.PER_PAGE, **(params or {})}
        items: list[Any] = []

        next_url: Optional[str] = path
        while next_url:
            response = await self.get(next_url, params=query)
            batch = response.data
            if isinstance(batch, list):
                items.extend(batch)
            elif batch is not None:
                raise GitHubApiError(
                    response.status, f"expected a list page, got {type(batch).__name__}", next_url
                )
            next_url = response.links.get("next")
            # The next link already carries the query string
            query = None

        return items

    async def count_items(self, path: str, params: Optional[dict] = None) -> int:
        """Count a list endpoint's items with a single per_page=1 request.

        The ``rel="last"`` page number equals the item count; without a
        Link header the single page holds everything.
        """
        response = await self.get(path, params={**(params or {}), "per_page": 1})
        last = response.links.get("last")
        if last:
            pages = _page_number(last)
            if pages is not None:
                return pages
        if isinstance(response.data, list):
            return len(response.data)
        return 0

    async def get_authenticated_login(self) -> Optional[str]:
        """Login of the token's user, or None if /user is not available."""
        try:
            response = await self.get("/user")
        except GitHubApiError as exc:
            self.logger.warning("Could not resolve token owner: %s", self.redact(str(exc)))
            return None
        if isinstance(response.data, dict):
            return response.data.get("login")
        return None

    def _calculate_backoff(self, attempt: int) -> float:
        """Calculate exponential backoff with jitter.

        Args:
            attempt: Current retry attempt number (1-indexed)

        Returns:
            Delay in seconds
        """
        delay = min(
            self.RETRY_BASE_DELAY * (self.RETRY_MULTIPLIER ** (attempt - 1)),
            self.RETRY_MAX_DELAY,
        )
        jitter = random.uniform(0, self.RETRY_JITTER_MS / 1000.0)
        return delay + jitter
