"""Shared fixtures: upstream file contents and URL helpers."""

from __future__ import annotations

import pytest
import structlog

from distro_release.fetch import MockTextFetcher
from distro_release.resolvers import VersionResolver

RAW = "https://raw.githubusercontent.com"

K3S_MILESTONE = "v1.25.3+k3s1"
K3S_PREV_MILESTONE = "v1.25.2+k3s1"
RKE2_MILESTONE = "v1.25.3+rke2r1"
RKE2_PREV_MILESTONE = "v1.25.2+rke2r1"

K3S_GO_MOD = """\
module github.com/k3s-io/k3s

go 1.19

replace (
	github.com/containerd/containerd => github.com/k3s-io/containerd v1.6.8-k3s1
	github.com/opencontainers/runc => github.com/opencontainers/runc v1.1.4
	go.etcd.io/etcd/api/v3 => github.com/k3s-io/etcd/api/v3 v3.5.4-k3s1
	github.com/k3s-io/kine => ../kine
)

require (
	github.com/containerd/containerd v1.6.6 // indirect
	github.com/flannel-io/flannel v0.19.2
	github.com/k3s-io/helm-controller v0.12.3
	github.com/k3s-io/kine v0.9.3
	github.com/mattn/go-sqlite3 v1.14.15
	go.etcd.io/etcd/api/v3 v3.5.4
)
"""

K3S_VERSION_SH = """\
#!/bin/bash
if [ -z "$VERSION_CONTAINERD" ]; then
    VERSION_CONTAINERD="v1.6.8-k3s1"
fi
VERSION_RUNC="v1.1.4"
"""

K3S_IMAGE_LIST = """\
docker.io/rancher/klipper-helm:v0.7.3-build20220613
docker.io/rancher/local-path-provisioner:v0.0.21
docker.io/rancher/mirrored-coredns-coredns:1.9.1
docker.io/rancher/mirrored-library-traefik:2.9.1
docker.io/rancher/mirrored-metrics-server:v0.6.1
"""

RKE2_DOCKERFILE = """\
FROM rancher/hardened-containerd:v1.6.8-k3s1-build20220915 AS containerd
FROM rancher/hardened-runc:v1.1.4-build20220831 AS runc
RUN CHART_VERSION="4.1.003"     CHART_FILE=/charts/rke2-ingress-nginx.yaml
"""

RKE2_BUILD_IMAGES = """\
    ${REGISTRY}/rancher/hardened-cni-plugins:v1.2.3-build20220101
    ${REGISTRY}/rancher/hardened-calico:v3.24.1-build20220826
    ${REGISTRY}/rancher/mirrored-calico-node:v3.24.1
    ${REGISTRY}/rancher/mirrored-cilium-cilium:v1.12.1
    ${REGISTRY}/rancher/hardened-flannel:v0.19.2-build20220913
    ${REGISTRY}/rancher/hardened-k8s-metrics-server:v0.6.1-build20220607
    ${REGISTRY}/rancher/hardened-coredns:v1.9.3-build20220613
    ${REGISTRY}/rancher/hardened-multus-cni:v3.8-build20220623
"""

RKE2_VERSION_SH = """\
ETCD_VERSION=${ETCD_VERSION:-v3.5.4-k3s1}
"""

SQLITE_BINDING = """\
#ifndef USE_LIBSQLITE3
#define SQLITE_VERSION        "3.39.2"
#define SQLITE_VERSION_NUMBER 3039002
"""


def raw_url(repo: str, ref: str, path: str) -> str:
    return f"{RAW}/{repo}/{ref}/{path}"


@pytest.fixture(autouse=True)
def reset_structlog():
    """Undo any logging configuration a test (e.g. the CLI) installed."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def k3s_documents() -> dict[str, str]:
    """Upstream files for the k3s milestone."""
    return {
        raw_url("k3s-io/k3s", K3S_MILESTONE, "go.mod"): K3S_GO_MOD,
        raw_url("k3s-io/k3s", K3S_MILESTONE, "scripts/version.sh"): K3S_VERSION_SH,
        raw_url("k3s-io/k3s", K3S_MILESTONE, "scripts/airgap/image-list.txt"): K3S_IMAGE_LIST,
        raw_url("mattn/go-sqlite3", "v1.14.15", "sqlite3-binding.h"): SQLITE_BINDING,
    }


@pytest.fixture
def rke2_documents() -> dict[str, str]:
    """Upstream files for the rke2 milestone."""
    return {
        raw_url("rancher/rke2", RKE2_MILESTONE, "Dockerfile"): RKE2_DOCKERFILE,
        raw_url("rancher/rke2", RKE2_MILESTONE, "scripts/build-images"): RKE2_BUILD_IMAGES,
        raw_url("rancher/rke2", RKE2_MILESTONE, "scripts/version.sh"): RKE2_VERSION_SH,
        raw_url("rancher/rke2", RKE2_MILESTONE, "go.mod"): (
            "module github.com/rancher/rke2\n\n"
            "require (\n"
            "\tgithub.com/containerd/containerd v1.6.8\n"
            "\tgithub.com/k3s-io/helm-controller v0.12.3\n"
            ")\n"
        ),
    }


@pytest.fixture
def empty_resolver() -> VersionResolver:
    """A resolver for which every upstream file is missing."""
    return VersionResolver(MockTextFetcher())
