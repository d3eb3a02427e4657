"""Release notes generation pipeline.

Ties the pieces together:
1. Retrieve the changelog between the previous milestone and this one
2. Scrape component versions into the distribution's render context
3. Render the distribution's document template

The generator is stateless; every call builds its context from scratch.
"""

from __future__ import annotations

from distro_release.changelog import ChangelogSourceProtocol
from distro_release.context_builder import build_render_context, parse_distribution
from distro_release.logging_config import get_logger
from distro_release.resolvers import VersionResolver
from distro_release.schemas import Distribution
from distro_release.templates import TemplateRenderer

logger = get_logger(__name__)


class ReleaseNotesGenerator:
    """Generates Markdown release notes for K3s and RKE2.

    Usage:
        generator = ReleaseNotesGenerator(changelog_source, resolver)
        markdown = generator.generate("k3s", "v1.25.3+k3s1", "v1.25.2+k3s1")
    """

    def __init__(
        self,
        changelog_source: ChangelogSourceProtocol,
        resolver: VersionResolver,
        renderer: TemplateRenderer | None = None,
    ) -> None:
        self.changelog_source = changelog_source
        self.resolver = resolver
        self.renderer = renderer or TemplateRenderer()

    def generate(
        self, distribution: Distribution | str, milestone: str, prev_milestone: str
    ) -> str:
        """Produce the release notes document.

        Args:
            distribution: "k3s" or "rke2".
            milestone: Release being documented (an -rcN tag is fine).
            prev_milestone: Release the changelog starts from.

        Returns:
            The rendered Markdown.

        Raises:
            InvalidInputError: On an unknown distribution or bad milestone.
            GitHubAPIError: If the changelog cannot be retrieved.
            TemplateRenderError: If the template cannot be rendered.
        """
        logger.info(
            "release_notes_started",
            distribution=str(distribution),
            milestone=milestone,
            prev_milestone=prev_milestone,
        )
        try:
            distribution = parse_distribution(distribution)
            content = self.changelog_source.retrieve(distribution, prev_milestone, milestone)
            context = build_render_context(
                distribution, milestone, prev_milestone, self.resolver, content
            )
            notes = self.renderer.render(context)
        except Exception as e:
            logger.error(
                "release_notes_failed",
                distribution=str(distribution),
                milestone=milestone,
                error=str(e),
            )
            raise

        logger.info(
            "release_notes_complete",
            distribution=distribution.value,
            milestone=context.milestone,
            entries=len(content),
            size=len(notes),
        )
        return notes
