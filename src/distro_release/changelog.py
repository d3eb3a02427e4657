"""Changelog retrieval from GitHub history.

The changelog for a release is the list of pull requests merged between the
previous milestone and the current one. Each commit in the comparison is
mapped back to the pull request(s) it came from; a pull request appears
once, at the position of its first commit.

The note for an entry is the body of the PR's ```release-note fenced
block. "NONE" (any case) means the PR has nothing to say in the notes.
"""

from __future__ import annotations

import re
from typing import Protocol

from distro_release.github import GitHubClientProtocol
from distro_release.logging_config import get_logger
from distro_release.schemas import ChangelogEntry, Distribution

logger = get_logger(__name__)

_RELEASE_NOTE_BLOCK = re.compile(r"```release-note\s*\r?\n(.*?)```", re.DOTALL)


class ChangelogSourceProtocol(Protocol):
    """Anything that can produce the ordered changelog between two refs."""

    def retrieve(
        self, distribution: Distribution, prev_milestone: str, milestone: str
    ) -> list[ChangelogEntry]:
        ...


def extract_release_note(body: str | None) -> str:
    """Return the text of the first ```release-note block in a PR body."""
    if not body:
        return ""
    match = _RELEASE_NOTE_BLOCK.search(body)
    if match is None:
        return ""
    note = match.group(1).strip()
    if note.upper() == "NONE":
        return ""
    return note.replace("\r\n", "\n")


class GitHubChangelogSource:
    """Builds the changelog from GitHub's compare and commit-pulls APIs.

    Usage:
        source = GitHubChangelogSource(github_client)
        entries = source.retrieve(Distribution.K3S, "v1.25.2+k3s1", "v1.25.3+k3s1")
    """

    def __init__(self, client: GitHubClientProtocol) -> None:
        self._client = client

    def retrieve(
        self, distribution: Distribution, prev_milestone: str, milestone: str
    ) -> list[ChangelogEntry]:
        """Collect pull requests merged between ``prev_milestone`` and ``milestone``.

        Raises:
            GitHubAPIError: If any GitHub call fails.
        """
        org, repo = distribution.upstream_repo.split("/")
        shas = self._client.compare_commits(org, repo, prev_milestone, milestone)

        entries: list[ChangelogEntry] = []
        seen: set[int] = set()
        for sha in shas:
            for pull in self._client.pull_requests_for_commit(org, repo, sha):
                if pull.number in seen:
                    continue
                seen.add(pull.number)
                entries.append(
                    ChangelogEntry(
                        title=pull.title,
                        number=pull.number,
                        url=pull.html_url,
                        note=extract_release_note(pull.body),
                    )
                )

        logger.info(
            "changelog_retrieved",
            repo=distribution.upstream_repo,
            base=prev_milestone,
            head=milestone,
            commits=len(shas),
            entries=len(entries),
        )
        return entries


class StaticChangelogSource:
    """Returns a fixed list of entries, for offline rendering and tests."""

    def __init__(self, entries: list[ChangelogEntry] | None = None) -> None:
        self._entries = list(entries or [])

    def retrieve(
        self, distribution: Distribution, prev_milestone: str, milestone: str
    ) -> list[ChangelogEntry]:
        return list(self._entries)
