"""Command line entry point.

Usage:
    distro-release notes -d k3s -m v1.25.3+k3s1 -p v1.25.2+k3s1 > notes.md
    distro-release check-release --org k3s-io --repo k3s --tags v1.25.3+k3s1,v1.24.7+k3s1
    distro-release verify-assets --repo rke2 --tags v1.25.3+rke2r1
    distro-release list-assets --repo rke2 --tag v1.25.3+rke2r1
    distro-release delete-assets --repo rke2 --tag v1.25.3+rke2r1 [--asset-id 123]
    distro-release image-build-base --alpine-version 3.16 --dry-run
    distro-release update-image-build --repo image-build-etcd --owner me --clone-dir /tmp/etcd

GitHub calls authenticate with GITHUB_TOKEN (or --github-token).
"""

from __future__ import annotations

import argparse
import json
import sys
from collections.abc import Sequence
from pathlib import Path

import httpx

from distro_release.assets import (
    check_upstream_release,
    delete_asset_by_id,
    delete_assets_by_release,
    list_assets,
    verify_assets,
)
from distro_release.changelog import GitHubChangelogSource, StaticChangelogSource
from distro_release.config import ReleaseConfig, load_release_config
from distro_release.errors import DistroReleaseError
from distro_release.fetch import RemoteTextFetcher
from distro_release.github import GitHubClient
from distro_release.image_build import (
    DockerHubArchChecker,
    image_build_base_release,
    update_image_build,
)
from distro_release.logging_config import get_logger, setup_logging
from distro_release.notes import ReleaseNotesGenerator
from distro_release.resolvers import VersionResolver
from distro_release.schemas import ChangelogEntry, Distribution
from distro_release.templates import TemplateRenderer

logger = get_logger(__name__)


def _tag_list(value: str) -> list[str]:
    return [tag.strip() for tag in value.split(",")]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="distro-release",
        description="Release notes and release asset tooling for K3s and RKE2",
    )
    parser.add_argument("--config", "-c", help="Path to a YAML config file")
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING or ERROR")
    parser.add_argument("--github-token", help="Defaults to $GITHUB_TOKEN")
    sub = parser.add_subparsers(dest="command", required=True)

    notes = sub.add_parser("notes", help="Generate release notes")
    notes.add_argument(
        "--distribution", "-d", required=True, choices=[d.value for d in Distribution]
    )
    notes.add_argument("--milestone", "-m", required=True)
    notes.add_argument("--prev-milestone", "-p", required=True)
    notes.add_argument("--output", "-o", help="Write to a file instead of stdout")
    notes.add_argument(
        "--changelog",
        help="JSON file with changelog entries; skips GitHub changelog retrieval",
    )

    check = sub.add_parser("check-release", help="Check that releases exist")
    check.add_argument("--org", required=True)
    check.add_argument("--repo", required=True)
    check.add_argument("--tags", required=True, type=_tag_list, help="Comma separated")

    verify = sub.add_parser("verify-assets", help="Verify release asset counts")
    verify.add_argument("--repo", required=True)
    verify.add_argument("--tags", required=True, type=_tag_list, help="Comma separated")

    list_cmd = sub.add_parser("list-assets", help="List the assets of a release")
    list_cmd.add_argument("--repo", required=True)
    list_cmd.add_argument("--tag", required=True)

    delete = sub.add_parser("delete-assets", help="Delete release assets")
    delete.add_argument("--repo", required=True)
    delete.add_argument("--tag", required=True)
    delete.add_argument("--asset-id", type=int, help="Delete only this asset")

    base = sub.add_parser("image-build-base", help="Release image-build-base for new Go versions")
    base.add_argument("--alpine-version", required=True)
    base.add_argument("--dry-run", action="store_true")

    update = sub.add_parser("update-image-build", help="Bump hardened-build-base in a repo")
    update.add_argument("--repo", required=True)
    update.add_argument("--owner", required=True)
    update.add_argument("--clone-dir", required=True)
    update.add_argument("--dry-run", action="store_true")
    update.add_argument("--create-pr", action="store_true")

    return parser


def _load_changelog(path: str) -> list[ChangelogEntry]:
    data = json.loads(Path(path).read_text())
    return [ChangelogEntry.model_validate(item) for item in data]


def _print_json(data: object) -> None:
    print(json.dumps(data, indent=2, sort_keys=True))


def run(args: argparse.Namespace, config: ReleaseConfig) -> None:
    with GitHubClient(token=args.github_token, config=config) as github:
        if args.command == "notes":
            if args.changelog:
                source = StaticChangelogSource(_load_changelog(args.changelog))
            else:
                source = GitHubChangelogSource(github)
            with RemoteTextFetcher(timeout=config.fetch_timeout) as fetcher:
                generator = ReleaseNotesGenerator(
                    source, VersionResolver(fetcher, config), TemplateRenderer(config)
                )
                markdown = generator.generate(args.distribution, args.milestone, args.prev_milestone)
            if args.output:
                Path(args.output).write_text(markdown)
            else:
                sys.stdout.write(markdown)

        elif args.command == "check-release":
            _print_json(check_upstream_release(github, args.org, args.repo, args.tags))

        elif args.command == "verify-assets":
            _print_json(verify_assets(github, args.repo, args.tags, config))

        elif args.command == "list-assets":
            assets = list_assets(github, args.repo, args.tag, config)
            _print_json([asset.model_dump() for asset in assets])

        elif args.command == "delete-assets":
            if args.asset_id is not None:
                delete_asset_by_id(github, args.repo, args.tag, args.asset_id, config)
                _print_json([args.asset_id])
            else:
                _print_json(delete_assets_by_release(github, args.repo, args.tag, config))

        elif args.command == "image-build-base":
            with httpx.Client(timeout=config.fetch_timeout) as http_client:
                created = image_build_base_release(
                    github,
                    DockerHubArchChecker(http_client),
                    http_client,
                    args.alpine_version,
                    dry_run=args.dry_run,
                )
            _print_json(created)

        elif args.command == "update-image-build":
            output = update_image_build(
                github,
                args.repo,
                args.owner,
                args.clone_dir,
                dry_run=args.dry_run,
                create_pr=args.create_pr,
            )
            sys.stdout.write(output)


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point. Returns the process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(log_level=args.log_level)

    try:
        config = load_release_config(args.config)
        run(args, config)
    except (DistroReleaseError, ValueError) as e:
        logger.error("command_failed", command=args.command, error=str(e))
        print(f"error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
