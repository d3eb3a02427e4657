"""GitHub API client for releases, assets and changelog data.

This module talks to GitHub's REST API for everything the release tooling
needs from the release platform:
- Releases by tag, latest release, release creation
- Release asset deletion
- Commit comparison and the pull requests behind each commit
- Pull request creation for image-build bumps

Design notes:
- Uses httpx (synchronous; every operation here is a short CLI run)
- A 404 raises ReleaseNotFoundError so callers can treat "missing" as a
  result instead of a failure; every other error raises GitHubAPIError
- Uses a Protocol so the asset manager and changelog source can be tested
  against MockGitHubClient

GitHub API docs: https://docs.github.com/en/rest
"""

from __future__ import annotations

import os
from typing import Any, Protocol

import httpx

from distro_release.config import ReleaseConfig
from distro_release.errors import GitHubAPIError, ReleaseNotFoundError
from distro_release.logging_config import get_logger
from distro_release.schemas import PullRequest, Release

logger = get_logger(__name__)

# ---------------------------------------------------------------------------
# Protocol (Interface)
# ---------------------------------------------------------------------------


class GitHubClientProtocol(Protocol):
    """Operations the release tooling performs against GitHub."""

    def get_release_by_tag(self, org: str, repo: str, tag: str) -> Release:
        ...

    def get_latest_release(self, org: str, repo: str) -> Release:
        ...

    def create_release(
        self, org: str, repo: str, tag: str, name: str, prerelease: bool = False
    ) -> Release:
        ...

    def delete_release_asset(self, org: str, repo: str, asset_id: int) -> None:
        ...

    def compare_commits(self, org: str, repo: str, base: str, head: str) -> list[str]:
        """SHAs of the commits reachable from ``head`` but not ``base``, oldest first."""
        ...

    def pull_requests_for_commit(self, org: str, repo: str, sha: str) -> list[PullRequest]:
        ...

    def create_pull_request(
        self, org: str, repo: str, title: str, head: str, base: str
    ) -> PullRequest:
        ...


# ---------------------------------------------------------------------------
# Concrete Implementation
# ---------------------------------------------------------------------------


class GitHubClient:
    """Real GitHub API client using httpx.

    Usage:
        with GitHubClient(token="ghp_...") as client:
            release = client.get_release_by_tag("rancher", "rke2", "v1.25.3+rke2r1")
    """

    def __init__(
        self,
        token: str | None = None,
        config: ReleaseConfig | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the GitHub client.

        Args:
            token: GitHub personal access token. Falls back to
                   GITHUB_TOKEN environment variable if not provided.
            config: API URL and timeout settings.
            transport: Custom httpx transport (tests use httpx.MockTransport).
        """
        config = config or ReleaseConfig()
        self._token = token or os.environ.get("GITHUB_TOKEN", "")
        headers: dict[str, str] = {
            "Accept": "application/vnd.github.v3+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"

        self._client = httpx.Client(
            base_url=config.github_api_url,
            headers=headers,
            timeout=config.github_timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> GitHubClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # -----------------------------------------------------------------------
    # Releases
    # -----------------------------------------------------------------------

    def get_release_by_tag(self, org: str, repo: str, tag: str) -> Release:
        """GET /repos/{org}/{repo}/releases/tags/{tag}

        Raises:
            ReleaseNotFoundError: If no release exists for the tag.
            GitHubAPIError: For any other failure.
        """
        data = self._request("GET", f"/repos/{org}/{repo}/releases/tags/{tag}")
        return Release.model_validate(data)

    def get_latest_release(self, org: str, repo: str) -> Release:
        data = self._request("GET", f"/repos/{org}/{repo}/releases/latest")
        return Release.model_validate(data)

    def create_release(
        self, org: str, repo: str, tag: str, name: str, prerelease: bool = False
    ) -> Release:
        data = self._request(
            "POST",
            f"/repos/{org}/{repo}/releases",
            json={"tag_name": tag, "name": name, "prerelease": prerelease},
        )
        return Release.model_validate(data)

    def delete_release_asset(self, org: str, repo: str, asset_id: int) -> None:
        self._request("DELETE", f"/repos/{org}/{repo}/releases/assets/{asset_id}")

    # -----------------------------------------------------------------------
    # Commits and pull requests
    # -----------------------------------------------------------------------

    def compare_commits(self, org: str, repo: str, base: str, head: str) -> list[str]:
        """GET /repos/{org}/{repo}/compare/{base}...{head}, all pages."""
        shas: list[str] = []
        next_url: str | None = f"/repos/{org}/{repo}/compare/{base}...{head}"
        while next_url:
            resp = self._send("GET", next_url, params={"per_page": 100})
            shas.extend(commit["sha"] for commit in resp.json().get("commits", []))
            next_url = self._parse_next_link(resp.headers.get("link", ""))
        return shas

    def pull_requests_for_commit(self, org: str, repo: str, sha: str) -> list[PullRequest]:
        data = self._request("GET", f"/repos/{org}/{repo}/commits/{sha}/pulls")
        return [PullRequest.model_validate(item) for item in data]

    def create_pull_request(
        self, org: str, repo: str, title: str, head: str, base: str
    ) -> PullRequest:
        data = self._request(
            "POST",
            f"/repos/{org}/{repo}/pulls",
            json={
                "title": title,
                "head": head,
                "base": base,
                "maintainer_can_modify": True,
            },
        )
        return PullRequest.model_validate(data)

    # -----------------------------------------------------------------------
    # Plumbing
    # -----------------------------------------------------------------------

    def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        resp = self._send(method, url, **kwargs)
        if resp.status_code == httpx.codes.NO_CONTENT or not resp.content:
            return None
        return resp.json()

    def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            resp = self._client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise GitHubAPIError(0, str(exc), url) from exc

        if resp.status_code == httpx.codes.NOT_FOUND:
            raise ReleaseNotFoundError(self._error_message(resp), url)
        if resp.is_error:
            raise GitHubAPIError(resp.status_code, self._error_message(resp), url)

        logger.debug("github_request", method=method, url=url, status_code=resp.status_code)
        return resp

    @staticmethod
    def _error_message(resp: httpx.Response) -> str:
        try:
            data = resp.json()
        except ValueError:
            return resp.text
        if isinstance(data, dict):
            return str(data.get("message", resp.text))
        return resp.text

    @staticmethod
    def _parse_next_link(link_header: str) -> str | None:
        """Extract the 'next' URL from a GitHub Link header."""
        if not link_header:
            return None
        for part in link_header.split(","):
            if 'rel="next"' in part:
                return part.split(";")[0].strip().strip("<>")
        return None


# ---------------------------------------------------------------------------
# Mock Implementation (for testing)
# ---------------------------------------------------------------------------


class MockGitHubClient:
    """In-memory GitHub client.

    Releases are keyed by (org, repo, tag). Errors can be injected per tag
    and per asset id to exercise the failure paths.

    Usage:
        client = MockGitHubClient(releases={("rancher", "rke2", "v1"): release})
        client.get_release_by_tag("rancher", "rke2", "v1")
    """

    def __init__(
        self,
        releases: dict[tuple[str, str, str], Release] | None = None,
        errors: dict[tuple[str, str, str], GitHubAPIError] | None = None,
        delete_errors: dict[int, GitHubAPIError] | None = None,
        commits: dict[tuple[str, str], list[str]] | None = None,
        pulls: dict[str, list[PullRequest]] | None = None,
    ) -> None:
        self.releases = dict(releases or {})
        self.errors = dict(errors or {})
        self.delete_errors = dict(delete_errors or {})
        self.commits = dict(commits or {})
        self.pulls = dict(pulls or {})
        self.deleted_assets: list[int] = []
        self.created_releases: list[Release] = []
        self.created_pulls: list[dict[str, str]] = []
        self.requested_tags: list[str] = []

    def __enter__(self) -> MockGitHubClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        pass

    def get_release_by_tag(self, org: str, repo: str, tag: str) -> Release:
        self.requested_tags.append(tag)
        key = (org, repo, tag)
        if key in self.errors:
            raise self.errors[key]
        if key not in self.releases:
            raise ReleaseNotFoundError(url=f"/repos/{org}/{repo}/releases/tags/{tag}")
        return self.releases[key]

    def get_latest_release(self, org: str, repo: str) -> Release:
        candidates = [
            release
            for (r_org, r_repo, _), release in self.releases.items()
            if (r_org, r_repo) == (org, repo)
        ]
        if not candidates:
            raise ReleaseNotFoundError(url=f"/repos/{org}/{repo}/releases/latest")
        return max(candidates, key=lambda release: release.id)

    def create_release(
        self, org: str, repo: str, tag: str, name: str, prerelease: bool = False
    ) -> Release:
        release = Release(
            id=len(self.releases) + 1, tag_name=tag, name=name, prerelease=prerelease
        )
        self.releases[(org, repo, tag)] = release
        self.created_releases.append(release)
        return release

    def delete_release_asset(self, org: str, repo: str, asset_id: int) -> None:
        if asset_id in self.delete_errors:
            raise self.delete_errors[asset_id]
        self.deleted_assets.append(asset_id)

    def compare_commits(self, org: str, repo: str, base: str, head: str) -> list[str]:
        return list(self.commits.get((base, head), []))

    def pull_requests_for_commit(self, org: str, repo: str, sha: str) -> list[PullRequest]:
        return list(self.pulls.get(sha, []))

    def create_pull_request(
        self, org: str, repo: str, title: str, head: str, base: str
    ) -> PullRequest:
        self.created_pulls.append({"org": org, "repo": repo, "title": title, "head": head, "base": base})
        number = len(self.created_pulls)
        return PullRequest(
            number=number,
            title=title,
            html_url=f"https://github.com/{org}/{repo}/pull/{number}",
        )
