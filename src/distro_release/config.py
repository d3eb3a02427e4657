"""Configuration for the release tooling.

Defaults reproduce the behaviour the release team relies on. Any value can be
overridden from a YAML file passed with ``--config``:

    fetch_timeout: 30
    expected_assets:
      rke2: 52
    repo_orgs:
      rke2-selinux: rancher

Maps from the YAML file are merged over the defaults, so a file only has to
name the entries it changes.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

from distro_release.errors import InvalidInputError

# Number of assets a complete release carries, per repository.
DEFAULT_EXPECTED_ASSETS: dict[str, int] = {
    "rke2": 50,
    "k3s": 18,
    "rke2-packaging": 23,
}

DEFAULT_REPO_ORGS: dict[str, str] = {
    "k3s": "k3s-io",
    "k3s-selinux": "k3s-io",
    "k3s-upgrade": "k3s-io",
    "rke2": "rancher",
    "rke2-selinux": "rancher",
    "rke2-packaging": "rancher",
    "rke2-upgrade": "rancher",
}


class ReleaseConfig(BaseModel):
    """Top-level configuration.

    Attributes:
        raw_content_base_url: Where upstream files are scraped from
        fetch_timeout: Per-request timeout for scraping, in seconds
        github_api_url: GitHub REST API root
        github_timeout: Per-request timeout for GitHub API calls, in seconds
        expected_assets: Repository name -> number of assets in a full release
        repo_orgs: Repository name -> owning GitHub organization
        gomod_runtime_release_line: Kubernetes major.minor whose notes take
            containerd and runc versions from go.mod
    """

    raw_content_base_url: str = "https://raw.githubusercontent.com"
    fetch_timeout: float = Field(15.0, gt=0)
    github_api_url: str = "https://api.github.com"
    github_timeout: float = Field(30.0, gt=0)
    expected_assets: dict[str, int] = Field(
        default_factory=lambda: dict(DEFAULT_EXPECTED_ASSETS)
    )
    repo_orgs: dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_REPO_ORGS))
    gomod_runtime_release_line: str = "1.23"


def load_release_config(path: str | Path | None = None) -> ReleaseConfig:
    """Load and validate a YAML config file.

    Args:
        path: Path to the YAML configuration file. Falls back to the
              DISTRO_RELEASE_CONFIG env var, then to built-in defaults.

    Returns:
        A validated ReleaseConfig. Returns defaults if the file doesn't exist.

    Raises:
        ValueError: If the YAML content is invalid or fails validation.
    """
    path = path or os.environ.get("DISTRO_RELEASE_CONFIG")
    if not path:
        return ReleaseConfig()

    config_path = Path(path)
    if not config_path.exists():
        return ReleaseConfig()

    try:
        raw = yaml.safe_load(config_path.read_text()) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in {path}: {exc}") from exc

    if not isinstance(raw, dict):
        raise ValueError(f"Invalid release config in {path}: expected a mapping")

    merged: dict[str, Any] = dict(raw)
    for key, defaults in (
        ("expected_assets", DEFAULT_EXPECTED_ASSETS),
        ("repo_orgs", DEFAULT_REPO_ORGS),
    ):
        if isinstance(raw.get(key), dict):
            merged[key] = {**defaults, **raw[key]}

    try:
        return ReleaseConfig.model_validate(merged)
    except Exception as exc:
        raise ValueError(f"Invalid release config in {path}: {exc}") from exc


def org_from_repo(repo: str, config: ReleaseConfig | None = None) -> str:
    """Return the GitHub organization that owns ``repo``.

    Raises:
        InvalidInputError: If the repository is not one we release.
    """
    orgs = (config or ReleaseConfig()).repo_orgs
    if not repo:
        raise InvalidInputError("repository name is empty")
    try:
        return orgs[repo]
    except KeyError:
        raise InvalidInputError(f"repository not supported: {repo}") from None
