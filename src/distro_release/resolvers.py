"""Source-specific version resolvers.

Each resolver reads one well-known file from a distribution's upstream
repository at a given ref and pulls a single version out of it:

- go.mod                 -> Go library versions (replace wins over require)
- scripts/version.sh     -> VERSION_* / *_VERSION build variables
- Dockerfile (RKE2 only) -> hardened images and packaged chart versions
- image list             -> bundled image tags
- sqlite3-binding.h      -> SQLite version vendored by go-sqlite3

A resolver never raises for a missing or unreadable source. It logs at
debug level and returns "", which the notes render as a blank field.
"""

from __future__ import annotations

from distro_release.config import ReleaseConfig
from distro_release.errors import ManifestParseError
from distro_release.extract import extract_version_from_url
from distro_release.fetch import TextFetcherProtocol
from distro_release.gomod import parse_go_mod
from distro_release.logging_config import get_logger
from distro_release.schemas import Distribution, VersionQuery

logger = get_logger(__name__)

BUILD_SCRIPT_REGEX = r"(?P<version>v[\d\.]+(-k3s.\w*)?)"
DOCKERFILE_REGEX = (
    r"(?:FROM|RUN)\s(?:CHART_VERSION=\"|[\w-]+/[\w-]+:)"
    r"(?P<version>.*?)([0-9][0-9])?(-build.*)?\"?\s"
)
IMAGE_TAG_REGEX = r":(.*)(-build.*)?"
SQLITE_VERSION_REGEX = r"\"(.*)\""
SQLITE_VERSION_MARKER = "SQLITE_VERSION"
SQLITE_REPO = "mattn/go-sqlite3"


class VersionResolver:
    """Resolves component versions from upstream repository files.

    Usage:
        with RemoteTextFetcher() as fetcher:
            resolver = VersionResolver(fetcher)
            kine = resolver.go_mod_version(
                VersionQuery(distribution="k3s", ref="v1.25.3+k3s1", name="kine")
            )
    """

    def __init__(
        self,
        fetcher: TextFetcherProtocol,
        config: ReleaseConfig | None = None,
    ) -> None:
        self._fetcher = fetcher
        self._base_url = (config or ReleaseConfig()).raw_content_base_url.rstrip("/")

    def raw_url(self, repo: str, ref: str, path: str) -> str:
        """URL of ``path`` in GitHub repository ``repo`` ("owner/name") at ``ref``."""
        return f"{self._base_url}/{repo}/{ref}/{path}"

    # -----------------------------------------------------------------------
    # go.mod
    # -----------------------------------------------------------------------

    def go_mod_version(self, query: VersionQuery) -> str:
        """Version of the first Go module whose path contains ``query.name``.

        A ``replace`` directive takes precedence over ``require`` because it
        is the version that actually gets vendored.
        """
        url = self.raw_url(query.distribution.upstream_repo, query.ref, "go.mod")
        text = self._fetcher.fetch(url)
        if text is None:
            return ""

        try:
            mod = parse_go_mod(text)
        except ManifestParseError as exc:
            logger.debug("go_mod_parse_failed", url=url, error=str(exc))
            return ""

        for replace in mod.replace:
            if query.name in replace.old_path:
                return replace.new_version

        for require in mod.require:
            if query.name in require.path:
                return require.version

        logger.debug("library_not_found", library=query.name, url=url)
        return ""

    # -----------------------------------------------------------------------
    # scripts/version.sh
    # -----------------------------------------------------------------------

    def build_script_version(self, query: VersionQuery) -> str:
        """Value of a version variable such as ``VERSION_CONTAINERD``."""
        url = self.raw_url(query.distribution.upstream_repo, query.ref, "scripts/version.sh")
        return self._first_group(url, query.name, BUILD_SCRIPT_REGEX)

    # -----------------------------------------------------------------------
    # Dockerfile
    # -----------------------------------------------------------------------

    def dockerfile_version(self, query: VersionQuery) -> str:
        """Version of an image or chart pinned in the RKE2 Dockerfile.

        K3s has no equivalent file, so K3s queries resolve to "" without a
        request.
        """
        if query.distribution is Distribution.K3S:
            return ""

        url = self.raw_url(Distribution.RKE2.upstream_repo, query.ref, "Dockerfile")
        return self._first_group(url, query.name, DOCKERFILE_REGEX)

    # -----------------------------------------------------------------------
    # Image lists
    # -----------------------------------------------------------------------

    def image_tag_version(self, query: VersionQuery) -> str:
        """Tag of a bundled image, without any ``-build`` suffix."""
        if query.distribution is Distribution.RKE2:
            path = "scripts/build-images"
        else:
            path = "scripts/airgap/image-list.txt"
        url = self.raw_url(query.distribution.upstream_repo, query.ref, path)

        version = self._first_group(url, query.name, IMAGE_TAG_REGEX)
        if "-build" in version:
            return version.split("-")[0]
        return version

    # -----------------------------------------------------------------------
    # sqlite3-binding.h
    # -----------------------------------------------------------------------

    def sqlite_binding_version(self, go_sqlite_version: str) -> str:
        """SQLite version bundled with the given go-sqlite3 release."""
        if not go_sqlite_version:
            logger.debug("sqlite_lookup_skipped", reason="go-sqlite3 version unknown")
            return ""

        url = self.raw_url(SQLITE_REPO, go_sqlite_version, "sqlite3-binding.h")
        return self._first_group(url, SQLITE_VERSION_MARKER, SQLITE_VERSION_REGEX)

    def _first_group(self, url: str, marker: str, regex: str) -> str:
        version = extract_version_from_url(self._fetcher, url, marker, regex)
        if version is not None:
            return version
        logger.debug("version_not_found", marker=marker, url=url)
        return ""
