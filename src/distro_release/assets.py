"""Release asset management.

Checks that releases exist, verifies they carry the expected number of
assets, and lists or deletes assets. Tags are processed one at a time in
the order given; the first GitHub error other than "not found" aborts the
batch and is raised unchanged, so nothing after it is touched.

Deletion is not transactional: assets deleted before a failure stay
deleted.
"""

from __future__ import annotations

from collections.abc import Sequence

from distro_release.config import ReleaseConfig, org_from_repo
from distro_release.errors import InvalidInputError, ReleaseNotFoundError
from distro_release.github import GitHubClientProtocol
from distro_release.logging_config import get_logger
from distro_release.schemas import ReleaseAsset

logger = get_logger(__name__)


def _require_tag(tag: str) -> None:
    if not tag:
        raise InvalidInputError("invalid tag provided")


def _require_tags(tags: Sequence[str]) -> None:
    if not tags:
        raise InvalidInputError("no tags provided")


def check_upstream_release(
    client: GitHubClientProtocol, org: str, repo: str, tags: Sequence[str]
) -> dict[str, bool]:
    """Report whether a release exists for each tag.

    Returns:
        Tag -> True if the release exists, False if GitHub returned 404.

    Raises:
        InvalidInputError: If ``org`` or ``repo`` is empty, ``tags`` is empty,
            or any tag is blank. Checked before any request is made.
        GitHubAPIError: On any other GitHub error.
    """
    if not org or not repo:
        raise InvalidInputError("organization and repository are required")
    _require_tags(tags)
    for tag in tags:
        _require_tag(tag)

    releases: dict[str, bool] = {}
    for tag in tags:
        try:
            client.get_release_by_tag(org, repo, tag)
        except ReleaseNotFoundError:
            releases[tag] = False
            continue
        releases[tag] = True

    return releases


def verify_assets(
    client: GitHubClientProtocol,
    repo: str,
    tags: Sequence[str],
    config: ReleaseConfig | None = None,
) -> dict[str, bool]:
    """Check each release carries exactly the expected number of assets.

    Blank tags are skipped. Every other tag gets an explicit result: False
    when the release is missing or its asset count is off.

    Raises:
        InvalidInputError: If ``tags`` is empty, the repository has no known
            organization, or no expected asset count is configured for it.
        GitHubAPIError: On any GitHub error other than 404.
    """
    config = config or ReleaseConfig()
    _require_tags(tags)
    org = org_from_repo(repo, config)

    try:
        expected = config.expected_assets[repo]
    except KeyError:
        raise InvalidInputError(f"no expected asset count for {repo}") from None

    releases: dict[str, bool] = {}
    for tag in tags:
        if not tag:
            continue

        try:
            release = client.get_release_by_tag(org, repo, tag)
        except ReleaseNotFoundError:
            releases[tag] = False
            continue

        releases[tag] = len(release.assets) == expected
        if not releases[tag]:
            logger.info(
                "asset_count_mismatch",
                repo=repo,
                tag=tag,
                expected=expected,
                actual=len(release.assets),
            )

    return releases


def list_assets(
    client: GitHubClientProtocol, repo: str, tag: str, config: ReleaseConfig | None = None
) -> list[ReleaseAsset]:
    """All assets of the release for ``tag``; [] if there is no such release."""
    org = org_from_repo(repo, config)
    _require_tag(tag)

    try:
        release = client.get_release_by_tag(org, repo, tag)
    except ReleaseNotFoundError:
        logger.debug("release_not_found", org=org, repo=repo, tag=tag)
        return []

    return list(release.assets)


def delete_assets_by_release(
    client: GitHubClientProtocol, repo: str, tag: str, config: ReleaseConfig | None = None
) -> list[int]:
    """Delete every asset of the release for ``tag``.

    Returns:
        Ids of the deleted assets, in deletion order.

    Raises:
        GitHubAPIError: As soon as one deletion fails; earlier deletions
            are not rolled back.
    """
    org = org_from_repo(repo, config)
    _require_tag(tag)

    try:
        release = client.get_release_by_tag(org, repo, tag)
    except ReleaseNotFoundError:
        logger.debug("release_not_found", org=org, repo=repo, tag=tag)
        return []

    deleted: list[int] = []
    for asset in release.assets:
        client.delete_release_asset(org, repo, asset.id)
        deleted.append(asset.id)
        logger.info("asset_deleted", repo=repo, tag=tag, asset_id=asset.id, name=asset.name)

    return deleted


def delete_asset_by_id(
    client: GitHubClientProtocol,
    repo: str,
    tag: str,
    asset_id: int,
    config: ReleaseConfig | None = None,
) -> None:
    """Delete a single release asset."""
    org = org_from_repo(repo, config)
    _require_tag(tag)

    client.delete_release_asset(org, repo, asset_id)
    logger.info("asset_deleted", repo=repo, tag=tag, asset_id=asset_id)
