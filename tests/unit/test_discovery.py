"""Unit tests for repository discovery."""
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.traffic_ledger.github.discovery import (
    discover_repositories,
    filter_repositories,
    resolve_owner,
)


def _repo(name, **flags):
    return {"name": name, "fork": False, "archived": False, "private": False, **flags}


LISTING = [
    _repo("zeta"),
    _repo("Alpha"),
    _repo("octocat.github.io"),
    _repo("forked", fork=True),
    _repo("old", archived=True),
    _repo("secret", private=True),
    _repo("beta"),
]


@pytest.fixture
def mock_client():
    client = MagicMock()
    client.get_authenticated_login = AsyncMock(return_value="octocat")
    client.paginate = AsyncMock(return_value=LISTING)
    return client


def test_filter_drops_site_forks_archived_and_private():
    assert filter_repositories(LISTING, "octocat") == ["Alpha", "beta", "zeta"]


def test_filter_includes_private_when_enabled():
    names = filter_repositories(LISTING, "octocat", include_private=True)

    assert "secret" in names


def test_filter_denylist_is_case_insensitive():
    names = filter_repositories(LISTING, "octocat", exclude=["ALPHA", " zeta "])

    assert names == ["beta"]


def test_filter_site_repo_matches_owner_case_insensitively():
    names = filter_repositories([_repo("OctoCat.GitHub.io"), _repo("a")], "octocat")

    assert names == ["a"]


def test_filter_skips_malformed_entries_and_duplicates():
    names = filter_repositories([{"fork": False}, "junk", _repo("a"), _repo("A")], "o")

    assert names == ["a"]


@pytest.mark.asyncio
async def test_discover_as_owner_uses_user_repos(mock_client):
    names = await discover_repositories(mock_client, "octocat")

    assert names == ["Alpha", "beta", "zeta"]
    mock_client.paginate.assert_awaited_once_with(
        "/user/repos", params={"affiliation": "owner", "sort": "pushed"}
    )


@pytest.mark.asyncio
async def test_discover_other_owner_uses_public_listing(mock_client):
    await discover_repositories(mock_client, "some-org", exclude=["beta"])

    mock_client.paginate.assert_awaited_once_with(
        "/users/some-org/repos", params={"type": "owner", "sort": "pushed"}
    )


@pytest.mark.asyncio
async def test_resolve_owner_prefers_configured_value(mock_client):
    assert await resolve_owner(mock_client, "configured") == "configured"
    mock_client.get_authenticated_login.assert_not_awaited()


@pytest.mark.asyncio
async def test_resolve_owner_falls_back_to_token_login(mock_client):
    assert await resolve_owner(mock_client, None) == "octocat"
