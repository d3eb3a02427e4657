"""Exception types raised by the release tooling.

Scrape misses never show up here: a version that cannot be fetched or
found degrades to an empty string and is only logged. These types cover
the conditions that must reach the caller.
"""

from __future__ import annotations


class DistroReleaseError(Exception):
    """Base class for all release tooling errors."""


class InvalidInputError(DistroReleaseError, ValueError):
    """Raised before any request is made when arguments are unusable.

    Examples: an empty tag, an empty tag list, a repository with no known
    organization, or a milestone that is not a version.
    """


class GitHubAPIError(DistroReleaseError):
    """A non-success response from the GitHub REST API."""

    def __init__(self, status_code: int, message: str, url: str = "") -> None:
        self.status_code = status_code
        self.message = message
        self.url = url
        super().__init__(f"GitHub API error {status_code} for {url or 'request'}: {message}")


class ReleaseNotFoundError(GitHubAPIError):
    """The requested release (or other resource) does not exist (HTTP 404)."""

    def __init__(self, message: str = "Not Found", url: str = "") -> None:
        super().__init__(404, message, url)


class ManifestParseError(DistroReleaseError):
    """An upstream manifest (go.mod) could not be parsed."""

    def __init__(self, line_number: int, message: str) -> None:
        self.line_number = line_number
        super().__init__(f"line {line_number}: {message}")


class TemplateParseError(DistroReleaseError):
    """A release note template failed to compile."""


class TemplateRenderError(DistroReleaseError):
    """Rendering a release note template failed."""


class ImageBuildError(DistroReleaseError):
    """Image build automation failed (go.dev, Docker Hub or the update script)."""
