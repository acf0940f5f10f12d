"""Unit tests for TrafficFetcher and traffic payload parsing."""
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.traffic_ledger.github.client import GitHubResponse
from src.traffic_ledger.github.exceptions import GitHubApiError, TrafficFetchError
from src.traffic_ledger.github.traffic import TrafficFetcher, parse_traffic_window
from src.traffic_ledger.schemas.ledger import Metric
from src.traffic_ledger.schemas.traffic import DailyObservation


CLONES_PAYLOAD = {
    "count": 8,
    "uniques": 3,
    "clones": [
        {"timestamp": "2026-10-17T00:00:00Z", "count": 3, "uniques": 1},
        {"timestamp": "2026-10-18T00:00:00Z", "count": 5, "uniques": 2},
    ],
}

VIEWS_PAYLOAD = {
    "count": 40,
    "uniques": 9,
    "views": [{"timestamp": "2026-10-18T00:00:00Z", "count": 40, "uniques": 9}],
}


def _traffic_get(clones=CLONES_PAYLOAD, views=VIEWS_PAYLOAD):
    """Fake GitHubClient.get keyed on the traffic path suffix."""

    async def fake_get(path, params=None):
        for payload, suffix in ((clones, "/traffic/clones"), (views, "/traffic/views")):
            if path.endswith(suffix):
                if isinstance(payload, Exception):
                    raise payload
                return GitHubResponse(status=200, data=payload)
        raise AssertionError(f"unexpected path {path}")

    return fake_get


@pytest.fixture
def mock_client():
    client = MagicMock()
    client.get = AsyncMock(side_effect=_traffic_get())
    client.count_items = AsyncMock(return_value=7)
    client.paginate = AsyncMock(
        return_value=[{"login": "a", "contributions": 30}, {"login": "b", "contributions": 12}]
    )
    client.redact = lambda text: text
    return client


def test_parse_traffic_window_valid():
    observations = parse_traffic_window(Metric.CLONES, CLONES_PAYLOAD)

    assert observations == (
        DailyObservation(date="2026-10-17", count=3, uniques=1),
        DailyObservation(date="2026-10-18", count=5, uniques=2),
    )


def test_parse_traffic_window_empty_days():
    assert parse_traffic_window(Metric.VIEWS, {"count": 0, "uniques": 0, "views": []}) == ()


@pytest.mark.parametrize(
    "payload",
    [
        None,
        [],
        {"message": "Must have push access to repository"},
        {"count": 1, "uniques": 1, "clones": "not-a-list"},
        {"count": 1, "uniques": 1, "views": []},
    ],
)
def test_parse_traffic_window_unusable_payload(payload):
    assert parse_traffic_window(Metric.CLONES, payload) is None


def test_parse_traffic_window_malformed_day_yields_none():
    payload = {"clones": [{"timestamp": "yesterday", "count": 1, "uniques": 1}]}

    assert parse_traffic_window(Metric.CLONES, payload) is None


def test_parse_traffic_window_null_counts_default_to_zero():
    payload = {
        "count": None,
        "uniques": None,
        "views": [{"timestamp": "2026-10-18T00:00:00Z", "count": None, "uniques": None}],
    }

    observations = parse_traffic_window(Metric.VIEWS, payload)

    assert observations == (DailyObservation(date="2026-10-18", count=0, uniques=0),)


@pytest.mark.asyncio
async def test_fetch_window_collects_all_components(mock_client):
    fetcher = TrafficFetcher(mock_client, "octocat")

    window = await fetcher.fetch_window("SudokuSandbox")

    assert window.repo == "SudokuSandbox"
    assert len(window.window(Metric.CLONES)) == 2
    assert window.window(Metric.VIEWS)[0].count == 40
    assert window.prs == 7
    assert window.commits == 42
    mock_client.count_items.assert_awaited_once_with(
        "/repos/octocat/SudokuSandbox/pulls", params={"state": "all"}
    )
    mock_client.get.assert_any_await(
        "/repos/octocat/SudokuSandbox/traffic/clones", params={"per": "day"}
    )


@pytest.mark.asyncio
async def test_fetch_window_partial_failure_marks_component_none(mock_client):
    mock_client.get.side_effect = _traffic_get(
        views=GitHubApiError(500, "after 5 attempts", "/traffic/views")
    )
    mock_client.count_items.side_effect = GitHubApiError(404, "(non-retryable)", "/pulls")
    fetcher = TrafficFetcher(mock_client, "octocat")

    window = await fetcher.fetch_window("repo")

    assert window.window(Metric.CLONES) is not None
    assert window.window(Metric.VIEWS) is None
    assert window.prs is None
    assert window.commits == 42


@pytest.mark.asyncio
async def test_fetch_window_malformed_traffic_is_none(mock_client):
    mock_client.get.side_effect = _traffic_get(clones={"message": "Server Error"})
    fetcher = TrafficFetcher(mock_client, "octocat")

    window = await fetcher.fetch_window("repo")

    assert window.window(Metric.CLONES) is None
    assert window.window(Metric.VIEWS) is not None


@pytest.mark.asyncio
async def test_fetch_window_all_components_failed_raises(mock_client):
    error = GitHubApiError(403, "(non-retryable) Resource not accessible", "/x")
    mock_client.get.side_effect = error
    mock_client.count_items.side_effect = error
    mock_client.paginate.side_effect = error
    fetcher = TrafficFetcher(mock_client, "octocat")

    with pytest.raises(TrafficFetchError) as exc_info:
        await fetcher.fetch_window("private-repo")

    assert exc_info.value.repo == "private-repo"
    assert len(exc_info.value.reasons) == 4


@pytest.mark.asyncio
async def test_count_commits_sums_contributions(mock_client):
    mock_client.paginate.return_value = [
        {"contributions": 5},
        {"contributions": None},
        "unexpected",
        {"contributions": 2},
    ]
    fetcher = TrafficFetcher(mock_client, "octocat")

    assert await fetcher.count_commits("repo") == 7


@pytest.mark.asyncio
async def test_empty_repository_has_zero_commits(mock_client):
    mock_client.paginate.return_value = []
    fetcher = TrafficFetcher(mock_client, "octocat")

    assert await fetcher.count_commits("empty-repo") == 0


@pytest.mark.asyncio
async def test_raw_responses_written_as_jsonl(mock_client, tmp_path):
    raw_dir = tmp_path / "raw"
    fetcher = TrafficFetcher(mock_client, "octocat", raw_dir=raw_dir)

    await fetcher.fetch_window("repo-a")
    await fetcher.fetch_window("repo-b")

    clone_files = list(raw_dir.glob("raw_traffic_clones_*.jsonl"))
    assert len(clone_files) == 1
    lines = clone_files[0].read_text(encoding="utf-8").splitlines()
    assert len(lines) == 2
    record = json.loads(lines[0])
    assert record["source"] == "github"
    assert record["repo"] == "octocat/repo-a"
    assert record["metric"] == "clones"
    assert record["response_item"] == CLONES_PAYLOAD
    assert list(raw_dir.glob("raw_traffic_views_*.jsonl"))
