"""Repository discovery for the owner whose traffic is tracked."""
import logging
from typing import Iterable, Optional

from .client import GitHubClient


logger = logging.getLogger(__name__)


async def resolve_owner(client: GitHubClient, configured: Optional[str]) -> Optional[str]:
    """Configured owner, falling back to the token's own login."""
    if configured:
        return configured
    login = await client.get_authenticated_login()
    if login:
        logger.info("Detected owner from token: %s", login)
    return login


def filter_repositories(
    repos: Iterable[dict],
    owner: str,
    include_private: bool = False,
    exclude: Iterable[str] = (),
) -> list[str]:
    """Apply the exclusion rules to a raw repository listing.

    Drops forks, archived repos, the owner's own site repository
    (``<owner>.github.io``), denylisted names and, unless enabled, private
    repos. Names are compared case-insensitively.

    Returns:
        Repository names sorted case-insensitively, without duplicates
    """
    denylist = {name.strip().lower() for name in exclude if name.strip()}
    site_repo = f"{owner}.github.io".lower()

    selected: dict[str, str] = {}
    for repo in repos:
        if not isinstance(repo, dict):
            continue
        name = repo.get("name")
        if not name:
            continue
        key = name.lower()

        if key == site_repo:
            logger.debug("Skipping site repository %s", name)
            continue
        if key in denylist:
            logger.debug("Skipping denylisted repository %s", name)
            continue
        if repo.get("fork") or repo.get("archived"):
            continue
        if repo.get("private") and not include_private:
            continue

        selected.setdefault(key, name)

    return sorted(selected.values(), key=str.lower)


async def discover_repositories(
    client: GitHubClient,
    owner: str,
    include_private: bool = False,
    exclude: Iterable[str] = (),
) -> list[str]:
    """List the owner's trackable repositories.

    When the token authenticates as the owner, /user/repos is used so private
    repos are visible (they are still filtered unless ``include_private``).
    Otherwise /users/{owner}/repos returns public repos only.
    """
    login = await client.get_authenticated_login()

    if login and login.lower() == owner.lower():
        path = "/user/repos"
        params = {"affiliation": "owner", "sort": "pushed"}
    else:
        path = f"/users/{owner}/repos"
        params = {"type": "owner", "sort": "pushed"}

    logger.info("Fetching repositories from %s (authenticated as: %s)", path, login)
    repos = await client.paginate(path, params=params)

    names = filter_repositories(repos, owner, include_private, exclude)
    logger.info("Discovered %s repositories (%s listed)", len(names), len(repos))
    return names
