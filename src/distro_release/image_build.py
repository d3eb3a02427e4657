"""Image build automation for RKE2's hardened images.

Two jobs live here:

image_build_base_release
    Cuts an ``image-build-base`` release (``v<go version>b1``) for every
    stable Go release whose ``golang:<version>-alpine<alpine>`` image is
    published for all the architectures RKE2 builds.

update_image_build
    Bumps ``hardened-build-base`` in one of the ``image-build-*``
    repositories to the latest image-build-base release by running a
    templated shell script, and optionally opens the pull request.
"""

from __future__ import annotations

import shlex
import subprocess
import tempfile
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Protocol

import httpx
from jinja2 import Environment
from pydantic import BaseModel

from distro_release.errors import ImageBuildError, InvalidInputError, ReleaseNotFoundError
from distro_release.github import GitHubClientProtocol
from distro_release.logging_config import get_logger

logger = get_logger(__name__)

GO_DEV_URL = "https://go.dev/dl/?mode=json"
DOCKER_HUB_URL = "https://hub.docker.com/v2"
IMAGE_BUILD_BASE_ORG = "rancher"
IMAGE_BUILD_BASE_REPO = "image-build-base"
REQUIRED_ARCHS = ("amd64", "arm64", "s390x")
UPDATE_SCRIPT_NAME = "update_image_build_base.sh"

IMAGE_BUILD_REPOS = frozenset(
    {
        "image-build-dns-nodecache",
        "image-build-k8s-metrics-server",
        "image-build-sriov-cni",
        "image-build-ib-sriov-cni",
        "image-build-sriov-network-device-plugin",
        "image-build-sriov-network-resources-injector",
        "image-build-calico",
        "image-build-cni-plugins",
        "image-build-whereabouts",
        "image-build-flannel",
        "image-build-etcd",
        "image-build-containerd",
        "image-build-runc",
        "image-build-multus",
        "image-build-rke2-cloud-provider",
    }
)

UPDATE_IMAGE_BUILD_SCRIPT = """\
#!/bin/sh
set -e
REPO_NAME={{ repo_name | quote }}
REPO_ORG={{ repo_org | quote }}
DRY_RUN={{ dry_run | quote }}
CLONE_DIR={{ clone_dir | quote }}
NEW_TAG={{ new_tag | quote }}
BRANCH_NAME={{ branch_name | quote }}
echo "repo name: ${REPO_NAME}"
echo "org name: ${REPO_ORG}"
echo "dry run: ${DRY_RUN}"
echo "branch name: ${BRANCH_NAME}"

echo "cloning ${REPO_ORG}/${REPO_NAME} into ${CLONE_DIR}"
git clone "git@github.com:${REPO_ORG}/${REPO_NAME}.git" "${CLONE_DIR}"
cd "${CLONE_DIR}"
CURRENT_TAG=$(cat .hardened-build-base-version)
echo "current tag: ${CURRENT_TAG}"
echo "new tag: ${NEW_TAG}"
git checkout -B "${BRANCH_NAME}" master
git clean -xfd
case $(uname -s) in
Darwin)
	sed -i '' "s/hardened-build-base:${CURRENT_TAG}/hardened-build-base:${NEW_TAG}/" Dockerfile
	;;
Linux)
	sed -i "s/hardened-build-base:${CURRENT_TAG}/hardened-build-base:${NEW_TAG}/" Dockerfile
	;;
*)
	>&2 echo "$(uname -s) not supported yet"
	exit 1
	;;
esac
git add Dockerfile
git commit -m "update hardened-build-base to ${NEW_TAG}"
if [ "${DRY_RUN}" = false ]; then
	git push --set-upstream origin "${BRANCH_NAME}"
fi
"""


class GoVersionRecord(BaseModel):
    """One entry of https://go.dev/dl/?mode=json."""

    version: str
    stable: bool


class ArchCheckerProtocol(Protocol):
    def check(self, namespace: str, repo: str, tag: str, archs: Sequence[str]) -> None:
        """Raise ImageBuildError unless the image exists for every arch."""
        ...


class DockerHubArchChecker:
    """Checks image architectures through the Docker Hub tags API."""

    def __init__(self, client: httpx.Client, base_url: str = DOCKER_HUB_URL) -> None:
        self._client = client
        self._base_url = base_url.rstrip("/")

    def check(self, namespace: str, repo: str, tag: str, archs: Sequence[str]) -> None:
        url = f"{self._base_url}/repositories/{namespace}/{repo}/tags/{tag}"
        try:
            resp = self._client.get(url)
        except httpx.HTTPError as exc:
            raise ImageBuildError(f"failed to fetch {url}: {exc}") from exc
        if resp.status_code != httpx.codes.OK:
            raise ImageBuildError(f"image {namespace}/{repo}:{tag} not found ({resp.status_code})")

        published = {image.get("architecture") for image in resp.json().get("images", [])}
        missing = [arch for arch in archs if arch not in published]
        if missing:
            raise ImageBuildError(
                f"image {namespace}/{repo}:{tag} missing architectures: {', '.join(missing)}"
            )


def go_versions(client: httpx.Client, url: str = GO_DEV_URL) -> list[GoVersionRecord]:
    """Current Go releases as listed on go.dev."""
    try:
        resp = client.get(url)
    except httpx.HTTPError as exc:
        raise ImageBuildError(f"failed to get stable go versions: {exc}") from exc
    if resp.status_code != httpx.codes.OK:
        raise ImageBuildError("failed to get stable go versions")
    return [GoVersionRecord.model_validate(item) for item in resp.json()]


def image_build_base_release(
    github: GitHubClientProtocol,
    arch_checker: ArchCheckerProtocol,
    http_client: httpx.Client,
    alpine_version: str,
    dry_run: bool = False,
) -> list[str]:
    """Create image-build-base releases for new stable Go versions.

    A dry run stops at the first release that would be created.

    Returns:
        Tags of the releases that were created (or would be, on a dry run).
    """
    created: list[str] = []
    for record in go_versions(http_client):
        if not record.stable:
            logger.info("go_version_skipped", version=record.version, reason="not stable")
            continue

        version = record.version.removeprefix("go")
        arch_checker.check("library", "golang", f"{version}-alpine{alpine_version}", REQUIRED_ARCHS)

        tag = f"v{version}b1"
        if _release_exists(github, tag):
            logger.info("release_exists", repo=IMAGE_BUILD_BASE_REPO, tag=tag)
            continue

        if dry_run:
            logger.info(
                "dry_run_release",
                owner=IMAGE_BUILD_BASE_ORG,
                repo=IMAGE_BUILD_BASE_REPO,
                tag=tag,
            )
            created.append(tag)
            return created

        github.create_release(IMAGE_BUILD_BASE_ORG, IMAGE_BUILD_BASE_REPO, tag, tag)
        logger.info("release_created", repo=IMAGE_BUILD_BASE_REPO, tag=tag)
        created.append(tag)

    return created


def _release_exists(github: GitHubClientProtocol, tag: str) -> bool:
    try:
        github.get_release_by_tag(IMAGE_BUILD_BASE_ORG, IMAGE_BUILD_BASE_REPO, tag)
    except ReleaseNotFoundError:
        return False
    return True


def render_update_script(
    repo_name: str,
    repo_org: str,
    clone_dir: str,
    new_tag: str,
    branch_name: str,
    dry_run: bool,
) -> str:
    env = Environment(autoescape=False, keep_trailing_newline=True)
    env.filters["quote"] = lambda value: shlex.quote(str(value))
    return env.from_string(UPDATE_IMAGE_BUILD_SCRIPT).render(
        repo_name=repo_name,
        repo_org=repo_org,
        clone_dir=clone_dir,
        new_tag=new_tag,
        branch_name=branch_name,
        dry_run="true" if dry_run else "false",
    )


def update_image_build(
    github: GitHubClientProtocol,
    repo: str,
    owner: str,
    clone_dir: str,
    dry_run: bool = False,
    create_pr: bool = False,
    run: Callable[..., subprocess.CompletedProcess[str]] = subprocess.run,
) -> str:
    """Bump hardened-build-base in ``owner/repo`` to the latest image-build-base.

    Args:
        github: GitHub client.
        repo: One of IMAGE_BUILD_REPOS.
        owner: Fork owner the branch is pushed to.
        clone_dir: Where the repository gets cloned.
        dry_run: Commit locally but do not push or open a PR.
        create_pr: Open a PR from ``owner:update-to-<tag>`` into rancher:master.
        run: subprocess.run compatible callable.

    Returns:
        The script output.

    Raises:
        InvalidInputError: If ``repo`` is not a known image-build repository.
        ImageBuildError: If the update script fails.
    """
    if repo not in IMAGE_BUILD_REPOS:
        raise InvalidInputError(f"invalid repo {repo!r}, see IMAGE_BUILD_REPOS")

    new_tag = github.get_latest_release(IMAGE_BUILD_BASE_ORG, IMAGE_BUILD_BASE_REPO).tag_name
    branch_name = f"update-to-{new_tag}"
    script = render_update_script(repo, owner, clone_dir, new_tag, branch_name, dry_run)

    with tempfile.TemporaryDirectory() as script_dir:
        script_path = Path(script_dir) / UPDATE_SCRIPT_NAME
        script_path.write_text(script)
        result = run(["sh", str(script_path)], capture_output=True, text=True, check=False)

    if result.returncode != 0:
        raise ImageBuildError(f"{UPDATE_SCRIPT_NAME} failed: {result.stderr.strip()}")
    logger.info("update_script_complete", repo=repo, new_tag=new_tag, output=result.stdout)

    if create_pr:
        title = f"Update hardened build base to {new_tag}"
        head = f"{owner}:{branch_name}"
        if dry_run:
            logger.info("dry_run_pull_request", title=title, head=head, base="rancher:master")
        else:
            pull = github.create_pull_request("rancher", repo, title, head, "master")
            logger.info("pull_request_created", repo=repo, number=pull.number, url=pull.html_url)

    return result.stdout
