"""Tests for the template helpers and the Jinja2 release note templates.

Run with: pytest tests/test_templates.py -v
"""

from __future__ import annotations

import pytest

from distro_release import templates
from distro_release.config import ReleaseConfig
from distro_release.errors import TemplateParseError, TemplateRenderError
from distro_release.schemas import ChangelogEntry, K3sRenderContext, Rke2RenderContext
from distro_release.templates import (
    TemplateRenderer,
    capitalize_first,
    maj_min,
    split,
    trim_periods,
)

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

BASE = {
    "milestone": "v1.25.3+k3s1",
    "prev_milestone": "v1.25.2+k3s1",
    "change_log_since": "v1252",
    "k8s_version": "v1.25.3",
    "change_log_version": "v1253",
    "major_minor": "1.25",
}


@pytest.fixture
def entries() -> list[ChangelogEntry]:
    return [
        ChangelogEntry(
            title="fix flannel backend",
            number=6000,
            url="https://github.com/k3s-io/k3s/pull/6000",
            note="bump flannel to v0.19.2\n\n-adds vxlan fix",
        ),
        ChangelogEntry(
            title="[Release-1.25] update runc",
            number=6001,
            url="https://github.com/k3s-io/k3s/pull/6001",
        ),
    ]


@pytest.fixture
def renderer() -> TemplateRenderer:
    return TemplateRenderer()


def rke2_context(**overrides) -> Rke2RenderContext:
    fields = {
        **BASE,
        "milestone": "v1.25.3+rke2r1",
        "prev_milestone": "v1.25.2+rke2r1",
        "canal_calico": "v3.24.1",
        "calico": "v3.24.1",
        "flannel": "v0.19.2",
        "containerd": "v1.6.8-k3s1",
        "containerd_go_mod": "v1.6.8",
    }
    fields.update(overrides)
    return Rke2RenderContext(**fields)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class TestHelpers:
    @pytest.mark.parametrize(
        "version, expected",
        [
            ("v3.24.1", "v3.24"),
            ("v3.24", "v3.24"),
            ("v3", "v3.0"),
            ("v1.2.3-rc1+build.5", "v1.2"),
        ],
    )
    def test_maj_min(self, version, expected):
        assert maj_min(version) == expected

    @pytest.mark.parametrize("bad", ["", "3.24.1", "v01.2", "vfoo"])
    def test_maj_min_rejects_invalid(self, bad):
        with pytest.raises(ValueError):
            maj_min(bad)

    def test_trim_periods(self):
        assert trim_periods("v1.25.3") == "v1253"
        assert trim_periods("") == ""

    def test_split(self):
        assert split("a\n\nb", "\n") == ["a", "", "b"]

    @pytest.mark.parametrize(
        "value, expected",
        [
            ("fix CNI bug", "Fix CNI bug"),
            ("-adds vxlan fix", "-Adds vxlan fix"),
            ("[release-1.25] update", "[Release-1.25] update"),
            ("123", "123"),
            ("", ""),
        ],
    )
    def test_capitalize_first(self, value, expected):
        assert capitalize_first(value) == expected


# ---------------------------------------------------------------------------
# Changelog section
# ---------------------------------------------------------------------------


class TestChangelogTemplate:
    def test_entries_and_note_bullets(self, renderer, entries):
        context = K3sRenderContext(**BASE, content=entries)
        output = renderer.render_template("changelog", context)
        assert output == (
            "## Changes since v1.25.2+k3s1:\n"
            "\n"
            "* Fix flannel backend [(#6000)](https://github.com/k3s-io/k3s/pull/6000)\n"
            "  * Bump flannel to v0.19.2\n"
            "  * -Adds vxlan fix\n"
            "* [Release-1.25] update runc [(#6001)](https://github.com/k3s-io/k3s/pull/6001)"
        )

    def test_no_entries(self, renderer):
        output = renderer.render_template("changelog", K3sRenderContext(**BASE))
        assert output == "## Changes since v1.25.2+k3s1:\n"


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


class TestK3sTemplate:
    def test_header_and_links(self, renderer, entries):
        output = renderer.render(K3sRenderContext(**BASE, content=entries, kine="v0.9.3"))
        assert output.startswith("<!-- v1.25.3+k3s1 -->\nThis release updates Kubernetes to v1.25.3")
        assert "CHANGELOG-1.25.md#changelog-since-v1252" in output
        assert "| Kine | [v0.9.3](https://github.com/k3s-io/kine/releases/tag/v0.9.3) |" in output
        assert "* Fix flannel backend [(#6000)]" in output

    def test_missing_versions_render_blank(self, renderer):
        output = renderer.render(K3sRenderContext(**BASE))
        assert "| Etcd | [](https://github.com/k3s-io/etcd/releases/tag/) |" in output
        assert "| SQLite | [](https://sqlite.org/releaselog/.html) |" in output

    def test_runtime_versions_from_build_script(self, renderer):
        context = K3sRenderContext(
            **BASE,
            containerd="v1.6.8-k3s1",
            containerd_go_mod="v1.6.6",
            runc_go_mod="v1.1.4",
            runc_build_script="v1.1.3",
        )
        output = renderer.render(context)
        assert "| Containerd | [v1.6.8-k3s1]" in output
        assert "| Runc | [v1.1.4]" in output

    def test_release_line_123_uses_go_mod_containerd(self, renderer):
        context = K3sRenderContext(
            **{**BASE, "k8s_version": "v1.23.13", "major_minor": "1.23"},
            containerd="v1.6.8-k3s1",
            containerd_go_mod="v1.5.13-k3s1",
            runc_go_mod="v1.1.4",
            runc_build_script="v1.1.3",
        )
        output = renderer.render(context)
        assert "| Containerd | [v1.5.13-k3s1]" in output
        assert "| Runc | [v1.1.3]" in output
        assert "v1.6.8-k3s1" not in output

    def test_release_line_is_configurable(self):
        renderer = TemplateRenderer(ReleaseConfig(gomod_runtime_release_line="1.25"))
        context = K3sRenderContext(**BASE, containerd="v1.6.8-k3s1", containerd_go_mod="v1.6.6")
        assert "| Containerd | [v1.6.6]" in renderer.render(context)

    def test_flannel_and_coredns_rows_keep_trailing_space(self, renderer):
        lines = renderer.render(K3sRenderContext(**BASE, flannel="v0.19.2", coredns="1.9.1")).splitlines()
        assert (
            "| Flannel | [v0.19.2](https://github.com/flannel-io/flannel/releases/tag/v0.19.2) | "
            in lines
        )
        assert "| CoreDNS | [v1.9.1](https://github.com/coredns/coredns/releases/tag/v1.9.1) | " in lines

    def test_rendering_is_deterministic(self, renderer, entries):
        context = K3sRenderContext(**BASE, content=entries)
        assert renderer.render(context) == renderer.render(context)


class TestRke2Template:
    def test_placeholder_and_cni_links(self, renderer):
        output = renderer.render(rke2_context())
        assert output.startswith("<!-- v1.25.3+rke2r1 -->\n\nThis release ... <FILL ME OUT!>")
        assert (
            "[Calico v3.24.1](https://projectcalico.docs.tigera.io/archive/v3.24/release-notes/#v3241)"
            in output
        )
        assert "INSTALL_RKE2_VERSION=v1.25.3+rke2r1" in output

    def test_containerd_branch(self, renderer):
        assert "| Containerd      | [v1.6.8-k3s1]" in renderer.render(rke2_context())
        output = renderer.render(rke2_context(major_minor="1.23"))
        assert "| Containerd      | [v1.6.8]" in output

    @pytest.mark.parametrize("field", ["calico", "canal_calico"])
    def test_invalid_calico_version_fails(self, renderer, field):
        with pytest.raises(TemplateRenderError, match="not valid"):
            renderer.render(rke2_context(**{field: ""}))


class TestTemplateParsing:
    def test_syntax_error_fails_at_construction(self, monkeypatch):
        monkeypatch.setitem(templates.TEMPLATES, "k3s", "{% if %}")
        with pytest.raises(TemplateParseError, match="'k3s'"):
            TemplateRenderer()
