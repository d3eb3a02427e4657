"""Builds the typed render context for a release notes document.

Given a distribution, the milestone being released and the previous
milestone, this module derives the display values (Kubernetes version,
release line, changelog anchors) and scrapes every component version the
distribution's template shows.

Two forms of the milestone are in play:
- the display milestone has any release-candidate suffix removed
  ("v1.25.3-rc1+k3s1" -> "v1.25.3+k3s1")
- the original milestone is the git ref the upstream files are read at,
  since only the RC tag exists upstream while the release is being cut

Resolvers run one after the other. Any version that cannot be resolved
is "" in the context; it never stops the notes from being rendered.
"""

from __future__ import annotations

import re
from collections.abc import Sequence

from distro_release.errors import InvalidInputError
from distro_release.logging_config import get_logger
from distro_release.resolvers import VersionResolver
from distro_release.schemas import (
    ChangelogEntry,
    Distribution,
    K3sRenderContext,
    RenderContext,
    Rke2RenderContext,
    VersionQuery,
)
from distro_release.templates import trim_periods

logger = get_logger(__name__)

_RC_SUFFIX = re.compile(r"-rc\d*")


def parse_distribution(value: Distribution | str) -> Distribution:
    """Coerce "k3s"/"rke2" to a Distribution.

    Raises:
        InvalidInputError: For any other value.
    """
    try:
        return Distribution(value)
    except ValueError:
        raise InvalidInputError(f"unknown distribution: {value!r}") from None


def strip_rc(milestone: str) -> str:
    """Remove the first ``-rc<N>`` suffix from a milestone."""
    return _RC_SUFFIX.sub("", milestone, count=1)


def strip_build_metadata(version: str) -> str:
    """Drop everything from the first ``+`` on ("v1.25.3+k3s1" -> "v1.25.3")."""
    return version.split("+")[0]


def major_minor(k8s_version: str) -> str:
    """Release line of a Kubernetes version ("v1.25.3" -> "1.25").

    Raises:
        InvalidInputError: If the version has fewer than two components.
    """
    parts = k8s_version.replace("v", "").split(".")
    if len(parts) < 2 or not parts[0] or not parts[1]:
        raise InvalidInputError(f"milestone is not a version: {k8s_version!r}")
    return f"{parts[0]}.{parts[1]}"


def _base_fields(
    milestone: str, prev_milestone: str, content: Sequence[ChangelogEntry]
) -> dict[str, object]:
    display_milestone = strip_rc(milestone)
    k8s_version = strip_build_metadata(display_milestone)
    return {
        "milestone": display_milestone,
        "prev_milestone": prev_milestone,
        "change_log_since": trim_periods(strip_build_metadata(prev_milestone)),
        "content": list(content),
        "k8s_version": k8s_version,
        "change_log_version": trim_periods(k8s_version),
        "major_minor": major_minor(k8s_version),
    }


def build_k3s_context(
    resolver: VersionResolver,
    milestone: str,
    prev_milestone: str,
    content: Sequence[ChangelogEntry] = (),
) -> K3sRenderContext:
    """Scrape every component version shown in K3s release notes."""
    base = _base_fields(milestone, prev_milestone, content)

    def query(name: str) -> VersionQuery:
        return VersionQuery(distribution=Distribution.K3S, ref=milestone, name=name)

    sqlite = resolver.sqlite_binding_version(resolver.go_mod_version(query("go-sqlite3")))

    return K3sRenderContext(
        **base,
        kine=resolver.go_mod_version(query("kine")),
        sqlite=sqlite,
        sqlite_replaced=sqlite.replace(".", "_"),
        etcd=resolver.go_mod_version(query("etcd/api/v3")),
        containerd=resolver.build_script_version(query("VERSION_CONTAINERD")),
        containerd_go_mod=resolver.go_mod_version(query("containerd/containerd")),
        runc_go_mod=resolver.go_mod_version(query("runc")),
        runc_build_script=resolver.build_script_version(query("VERSION_RUNC")),
        flannel=resolver.go_mod_version(query("flannel")),
        metrics_server=resolver.image_tag_version(query("metrics-server")),
        traefik=resolver.image_tag_version(query("traefik")),
        coredns=resolver.image_tag_version(query("coredns")),
        helm_controller=resolver.go_mod_version(query("helm-controller")),
        local_path_provisioner=resolver.image_tag_version(query("local-path-provisioner")),
    )


def build_rke2_context(
    resolver: VersionResolver,
    milestone: str,
    prev_milestone: str,
    content: Sequence[ChangelogEntry] = (),
) -> Rke2RenderContext:
    """Scrape every component and CNI version shown in RKE2 release notes."""
    base = _base_fields(milestone, prev_milestone, content)

    def query(name: str) -> VersionQuery:
        return VersionQuery(distribution=Distribution.RKE2, ref=milestone, name=name)

    return Rke2RenderContext(
        **base,
        etcd=resolver.build_script_version(query("ETCD_VERSION")),
        containerd=resolver.dockerfile_version(query("hardened-containerd")),
        containerd_go_mod=resolver.go_mod_version(query("containerd/containerd")),
        runc=resolver.dockerfile_version(query("hardened-runc")),
        metrics_server=resolver.image_tag_version(query("metrics-server")),
        coredns=resolver.image_tag_version(query("coredns")),
        ingress_nginx=resolver.dockerfile_version(query("rke2-ingress-nginx")),
        helm_controller=resolver.go_mod_version(query("helm-controller")),
        flannel=resolver.image_tag_version(query("flannel")),
        canal_calico=resolver.image_tag_version(query("hardened-calico")),
        calico=resolver.image_tag_version(query("calico-node")),
        cilium=resolver.image_tag_version(query("cilium-cilium")),
        multus=resolver.image_tag_version(query("multus-cni")),
    )


def build_render_context(
    distribution: Distribution | str,
    milestone: str,
    prev_milestone: str,
    resolver: VersionResolver,
    content: Sequence[ChangelogEntry] = (),
) -> RenderContext:
    """Build the complete render context for ``distribution``.

    Args:
        distribution: "k3s" or "rke2".
        milestone: Release being documented, possibly with an -rcN suffix.
        prev_milestone: Release the changelog starts from.
        resolver: Resolver used for every upstream lookup.
        content: Changelog entries, in the order they should appear.

    Raises:
        InvalidInputError: If the distribution is unknown, a milestone is
            empty, or the milestone is not a version.
    """
    distribution = parse_distribution(distribution)
    if not milestone or not prev_milestone:
        raise InvalidInputError("milestone and previous milestone are required")

    logger.debug(
        "building_render_context",
        distribution=distribution.value,
        milestone=milestone,
        prev_milestone=prev_milestone,
        entries=len(content),
    )

    if distribution is Distribution.RKE2:
        return build_rke2_context(resolver, milestone, prev_milestone, content)
    return build_k3s_context(resolver, milestone, prev_milestone, content)

