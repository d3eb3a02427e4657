"""Pydantic models shared across the release tooling.

These schemas are the contract between the scrapers, the context builder,
the template renderer and the GitHub layer:
- Distribution and VersionQuery describe *where* a version is scraped from
- ChangelogEntry is one pull request in the release notes
- The render contexts are the complete, typed input to a notes template
- Release and ReleaseAsset mirror the parts of the GitHub API we use

Every version field in a render context defaults to "" so a template can
always reference it, whether or not the upstream scrape succeeded.
"""

from __future__ import annotations

from enum import StrEnum
from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class Distribution(StrEnum):
    """Kubernetes distribution whose release notes we render.

    K3S: Lightweight distribution, upstream repo k3s-io/k3s
    RKE2: Security-focused distribution, upstream repo rancher/rke2
    """

    K3S = "k3s"
    RKE2 = "rke2"

    @property
    def upstream_repo(self) -> str:
        """GitHub "owner/name" of the distribution's source repository."""
        if self is Distribution.RKE2:
            return "rancher/rke2"
        return "k3s-io/k3s"


# ---------------------------------------------------------------------------
# Scraping
# ---------------------------------------------------------------------------


class VersionQuery(BaseModel):
    """One version lookup against one upstream file.

    Attributes:
        distribution: Which distribution's repository to read
        ref: Branch, tag or milestone the file is read at
        name: Library path fragment, script variable or image name to find
    """

    model_config = ConfigDict(frozen=True)

    distribution: Distribution
    ref: str = Field(..., min_length=1, description="Git ref to read the file at")
    name: str = Field(..., min_length=1, description="Library, variable or image name")


# ---------------------------------------------------------------------------
# Changelog
# ---------------------------------------------------------------------------


class ChangelogEntry(BaseModel):
    """A single merged pull request in the changelog.

    Attributes:
        title: Pull request title
        number: Pull request number
        url: Link to the pull request
        note: Release note text, one bullet per non-empty line
    """

    title: str
    number: int = Field(..., gt=0)
    url: str
    note: str = ""


# ---------------------------------------------------------------------------
# Render contexts
# ---------------------------------------------------------------------------


class BaseRenderContext(BaseModel):
    """Fields every release notes document needs.

    Attributes:
        milestone: Release being documented, release-candidate suffix removed
        prev_milestone: Release the changelog starts from
        change_log_since: prev_milestone's version without build metadata
            or periods, used as the upstream changelog anchor
        content: Changelog entries in history order
        k8s_version: Kubernetes version (milestone without build metadata)
        change_log_version: k8s_version without periods
        major_minor: Kubernetes release line, e.g. "1.25"
    """

    distribution: ClassVar[Distribution]

    milestone: str
    prev_milestone: str
    change_log_since: str
    content: list[ChangelogEntry] = Field(default_factory=list)
    k8s_version: str
    change_log_version: str
    major_minor: str


class K3sRenderContext(BaseRenderContext):
    """Embedded component versions shown in K3s release notes."""

    distribution: ClassVar[Distribution] = Distribution.K3S

    kine: str = ""
    sqlite: str = ""
    sqlite_replaced: str = ""
    etcd: str = ""
    containerd: str = ""
    containerd_go_mod: str = ""
    runc_go_mod: str = ""
    runc_build_script: str = ""
    flannel: str = ""
    metrics_server: str = ""
    traefik: str = ""
    coredns: str = ""
    helm_controller: str = ""
    local_path_provisioner: str = ""


class Rke2RenderContext(BaseRenderContext):
    """Packaged component and CNI versions shown in RKE2 release notes."""

    distribution: ClassVar[Distribution] = Distribution.RKE2

    etcd: str = ""
    containerd: str = ""
    containerd_go_mod: str = ""
    runc: str = ""
    metrics_server: str = ""
    coredns: str = ""
    ingress_nginx: str = ""
    helm_controller: str = ""
    flannel: str = ""
    canal_calico: str = ""
    calico: str = ""
    cilium: str = ""
    multus: str = ""


RenderContext = K3sRenderContext | Rke2RenderContext


# ---------------------------------------------------------------------------
# GitHub records
# ---------------------------------------------------------------------------


class ReleaseAsset(BaseModel):
    """A file attached to a GitHub release."""

    id: int
    name: str
    size: int = 0
    browser_download_url: str = ""


class Release(BaseModel):
    """The parts of a GitHub release the tooling reads."""

    id: int
    tag_name: str
    name: str | None = None
    prerelease: bool = False
    draft: bool = False
    assets: list[ReleaseAsset] = Field(default_factory=list)


class PullRequest(BaseModel):
    """A pull request associated with a commit."""

    number: int
    title: str
    html_url: str
    body: str | None = None
