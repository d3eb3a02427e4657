"""Tests for image-build-base releases and image-build repo updates.

go.dev and Docker Hub are served by httpx.MockTransport; the update
script runner is replaced by a fake subprocess.run.

Run with: pytest tests/test_image_build.py -v
"""

from __future__ import annotations

import subprocess
from pathlib import Path

import httpx
import pytest

from distro_release.errors import ImageBuildError, InvalidInputError
from distro_release.github import MockGitHubClient
from distro_release.image_build import (
    DockerHubArchChecker,
    go_versions,
    image_build_base_release,
    render_update_script,
    update_image_build,
)
from distro_release.schemas import Release

GO_VERSIONS = [
    {"version": "go1.20.3", "stable": True},
    {"version": "go1.19.8", "stable": True},
    {"version": "go1.21rc1", "stable": False},
]


class AllArchs:
    """Arch checker that accepts every image."""

    def __init__(self) -> None:
        self.checked: list[str] = []

    def check(self, namespace, repo, tag, archs) -> None:
        self.checked.append(tag)


def go_dev_client(payload=GO_VERSIONS, status: int = 200) -> httpx.Client:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, json=payload)

    return httpx.Client(transport=httpx.MockTransport(handler))


class FakeRun:
    """Stands in for subprocess.run and keeps the script it was given."""

    def __init__(self, returncode: int = 0, stdout: str = "pushed\n", stderr: str = "") -> None:
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        self.calls: list[list[str]] = []
        self.script = ""

    def __call__(self, args, **kwargs) -> subprocess.CompletedProcess[str]:
        self.calls.append(args)
        self.script = Path(args[1]).read_text()
        return subprocess.CompletedProcess(args, self.returncode, self.stdout, self.stderr)


# ---------------------------------------------------------------------------
# go.dev and Docker Hub
# ---------------------------------------------------------------------------


class TestGoVersions:
    def test_parses_records(self):
        records = go_versions(go_dev_client())
        assert [r.version for r in records] == ["go1.20.3", "go1.19.8", "go1.21rc1"]
        assert records[2].stable is False

    def test_non_200(self):
        with pytest.raises(ImageBuildError, match="stable go versions"):
            go_versions(go_dev_client(status=503))


class TestDockerHubArchChecker:
    def make_checker(self, archs: list[str], status: int = 200) -> DockerHubArchChecker:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/v2/repositories/library/golang/tags/1.20.3-alpine3.17"
            return httpx.Response(
                status, json={"images": [{"architecture": arch} for arch in archs]}
            )

        return DockerHubArchChecker(httpx.Client(transport=httpx.MockTransport(handler)))

    def test_all_archs_present(self):
        checker = self.make_checker(["amd64", "arm64", "s390x", "ppc64le"])
        checker.check("library", "golang", "1.20.3-alpine3.17", ["amd64", "arm64", "s390x"])

    def test_missing_arch(self):
        checker = self.make_checker(["amd64", "arm64"])
        with pytest.raises(ImageBuildError, match="s390x"):
            checker.check("library", "golang", "1.20.3-alpine3.17", ["amd64", "arm64", "s390x"])

    def test_image_not_found(self):
        checker = self.make_checker([], status=404)
        with pytest.raises(ImageBuildError, match="not found"):
            checker.check("library", "golang", "1.20.3-alpine3.17", ["amd64"])


# ---------------------------------------------------------------------------
# image_build_base_release
# ---------------------------------------------------------------------------


class TestImageBuildBaseRelease:
    def test_creates_missing_stable_releases(self):
        github = MockGitHubClient(
            releases={
                ("rancher", "image-build-base", "v1.19.8b1"): Release(id=1, tag_name="v1.19.8b1")
            }
        )
        checker = AllArchs()

        created = image_build_base_release(github, checker, go_dev_client(), "3.17")

        assert created == ["v1.20.3b1"]
        assert [r.tag_name for r in github.created_releases] == ["v1.20.3b1"]
        assert checker.checked == ["1.20.3-alpine3.17", "1.19.8-alpine3.17"]

    def test_dry_run_stops_at_first_release(self):
        github = MockGitHubClient()
        created = image_build_base_release(
            github, AllArchs(), go_dev_client(), "3.17", dry_run=True
        )
        assert created == ["v1.20.3b1"]
        assert github.created_releases == []

    def test_missing_arch_aborts(self):
        class NoS390x:
            def check(self, namespace, repo, tag, archs):
                raise ImageBuildError("missing architectures: s390x")

        github = MockGitHubClient()
        with pytest.raises(ImageBuildError):
            image_build_base_release(github, NoS390x(), go_dev_client(), "3.17")
        assert github.created_releases == []


# ---------------------------------------------------------------------------
# update_image_build
# ---------------------------------------------------------------------------


@pytest.fixture
def base_github() -> MockGitHubClient:
    return MockGitHubClient(
        releases={
            ("rancher", "image-build-base", "v1.19.8b1"): Release(id=1, tag_name="v1.19.8b1"),
            ("rancher", "image-build-base", "v1.20.3b1"): Release(id=2, tag_name="v1.20.3b1"),
        }
    )


class TestRenderUpdateScript:
    def test_values_are_shell_quoted(self):
        script = render_update_script(
            "image-build-etcd", "me", "/tmp/my clone", "v1.20.3b1", "update-to-v1.20.3b1", True
        )
        assert script.startswith("#!/bin/sh\nset -e\n")
        assert "CLONE_DIR='/tmp/my clone'" in script
        assert "DRY_RUN=true" in script
        assert "NEW_TAG=v1.20.3b1" in script


class TestUpdateImageBuild:
    def test_runs_script_with_latest_base_tag(self, base_github):
        run = FakeRun()
        output = update_image_build(
            base_github, "image-build-etcd", "me", "/tmp/etcd", run=run
        )
        assert output == "pushed\n"
        assert run.calls[0][0] == "sh"
        assert "NEW_TAG=v1.20.3b1" in run.script
        assert "BRANCH_NAME=update-to-v1.20.3b1" in run.script
        assert "DRY_RUN=false" in run.script
        assert base_github.created_pulls == []

    def test_creates_pull_request(self, base_github):
        update_image_build(
            base_github, "image-build-etcd", "me", "/tmp/etcd", create_pr=True, run=FakeRun()
        )
        assert base_github.created_pulls == [
            {
                "org": "rancher",
                "repo": "image-build-etcd",
                "title": "Update hardened build base to v1.20.3b1",
                "head": "me:update-to-v1.20.3b1",
                "base": "master",
            }
        ]

    def test_dry_run_skips_pull_request(self, base_github):
        update_image_build(
            base_github,
            "image-build-etcd",
            "me",
            "/tmp/etcd",
            dry_run=True,
            create_pr=True,
            run=FakeRun(),
        )
        assert base_github.created_pulls == []

    def test_script_failure(self, base_github):
        with pytest.raises(ImageBuildError, match="permission denied"):
            update_image_build(
                base_github,
                "image-build-etcd",
                "me",
                "/tmp/etcd",
                create_pr=True,
                run=FakeRun(returncode=1, stderr="permission denied\n"),
            )
        assert base_github.created_pulls == []

    def test_unknown_repo(self, base_github):
        run = FakeRun()
        with pytest.raises(InvalidInputError):
            update_image_build(base_github, "image-build-nope", "me", "/tmp/x", run=run)
        assert run.calls == []
