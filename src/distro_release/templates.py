"""Jinja2 templates and helpers for release notes.

Three templates are registered by name:
- "changelog": the "Changes since" section, shared by both documents
- "k3s": K3s release notes with the embedded component table
- "rke2": RKE2 release notes with packaged components and CNIs

Templates may only call the helpers in HELPERS. They are registered both
as filters ({{ version | maj_min }}) and as globals ({{ maj_min(version) }}).

A missing or empty value renders as an empty string. The one helper that
can fail is maj_min: an invalid semantic version aborts the render, since
it means a link in the notes would point nowhere.
"""

from __future__ import annotations

import re
from collections.abc import Callable

from jinja2 import DictLoader, Environment, TemplateError, TemplateSyntaxError

from distro_release.config import ReleaseConfig
from distro_release.errors import TemplateParseError, TemplateRenderError
from distro_release.logging_config import get_logger
from distro_release.schemas import Distribution, RenderContext

logger = get_logger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_SEMVER = re.compile(
    r"^v(0|[1-9]\d*)"
    r"(?:\.(0|[1-9]\d*)"
    r"(?:\.(0|[1-9]\d*)"
    r"(?:-[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*)?"
    r"(?:\+[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*)?)?)?$"
)


def maj_min(version: str) -> str:
    """Major and minor of a "v"-prefixed semantic version ("v3.24.1" -> "v3.24").

    Shorthand versions are accepted, "v3" -> "v3.0".

    Raises:
        ValueError: If ``version`` is not a valid semantic version.
    """
    match = _SEMVER.match(version)
    if match is None:
        raise ValueError(f"version is not valid: {version!r}")
    major, minor = match.group(1), match.group(2) or "0"
    return f"v{major}.{minor}"


def trim_periods(value: str) -> str:
    """Remove every period ("v1.25.3" -> "v1253")."""
    return value.replace(".", "")


def split(value: str, separator: str) -> list[str]:
    return value.split(separator)


def capitalize_first(value: str) -> str:
    """Upper-case the first letter, skipping any leading non-letters.

    Unlike str.capitalize, the rest of the string is left alone:
    "-fix CNI bug" -> "-Fix CNI bug".
    """
    for i, char in enumerate(value):
        if char.isalpha():
            return value[:i] + char.upper() + value[i + 1 :]
    return value


HELPERS: dict[str, Callable[..., object]] = {
    "maj_min": maj_min,
    "trim_periods": trim_periods,
    "split": split,
    "capitalize_first": capitalize_first,
}

# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------

CHANGELOG_TEMPLATE = """\
## Changes since {{ prev_milestone }}:
{% for entry in content %}
* {{ entry.title | capitalize_first }} [(#{{ entry.number }})]({{ entry.url }})
{%- for line in entry.note | split("\\n") %}
{%- if line != "" %}
  * {{ line | capitalize_first }}
{%- endif %}
{%- endfor %}
{%- endfor %}"""

RKE2_TEMPLATE = """\
<!-- {{ milestone }} -->

This release ... <FILL ME OUT!>

**Important Note**

If your server (control-plane) nodes were not started with the `--token` CLI flag or config file key, a randomized token was generated during initial cluster startup. This key is used both for joining new nodes to the cluster, and for encrypting cluster bootstrap data within the datastore. Ensure that you retain a copy of this token, as is required when restoring from backup.

You may retrieve the token value from any server already joined to the cluster:
```bash
cat /var/lib/rancher/rke2/server/token
```

{% include "changelog" %}

## Packaged Component Versions
| Component       | Version                                                                                           |
| --------------- | ------------------------------------------------------------------------------------------------- |
| Kubernetes      | [{{ k8s_version }}](https://github.com/kubernetes/kubernetes/blob/master/CHANGELOG/CHANGELOG-{{ major_minor }}.md#{{ change_log_version }}) |
| Etcd            | [{{ etcd }}](https://github.com/k3s-io/etcd/releases/tag/{{ etcd }})                       |
{%- if major_minor == gomod_runtime_release_line %}
| Containerd      | [{{ containerd_go_mod }}](https://github.com/k3s-io/containerd/releases/tag/{{ containerd_go_mod }})                      |
{%- else %}
| Containerd      | [{{ containerd }}](https://github.com/k3s-io/containerd/releases/tag/{{ containerd }})                      |
{%- endif %}
| Runc            | [{{ runc }}](https://github.com/opencontainers/runc/releases/tag/{{ runc }})                              |
| Metrics-server  | [{{ metrics_server }}](https://github.com/kubernetes-sigs/metrics-server/releases/tag/{{ metrics_server }})                   |
| CoreDNS         | [{{ coredns }}](https://github.com/coredns/coredns/releases/tag/{{ coredns }})                                  |
| Ingress-Nginx   | [{{ ingress_nginx }}](https://github.com/kubernetes/ingress-nginx/releases/tag/helm-chart-{{ ingress_nginx }})                                  |
| Helm-controller | [{{ helm_controller }}](https://github.com/k3s-io/helm-controller/releases/tag/{{ helm_controller }})                         |

### Available CNIs
| Component       | Version                                                                                                                                                                             | FIPS Compliant |
| --------------- | ----------------------------------------------------------------------------------------------------------------------------------------------------------------------------------- | -------------- |
| Canal (Default) | [Flannel {{ flannel }}](https://github.com/k3s-io/flannel/releases/tag/{{ flannel }})<br/>[Calico {{ canal_calico }}](https://projectcalico.docs.tigera.io/archive/{{ canal_calico | maj_min }}/release-notes/#{{ canal_calico | trim_periods }}) | Yes            |
| Calico          | [{{ calico }}](https://projectcalico.docs.tigera.io/archive/{{ calico | maj_min }}/release-notes/#{{ calico | trim_periods }})                                                                    | No             |
| Cilium          | [{{ cilium }}](https://github.com/cilium/cilium/releases/tag/{{ cilium }})                                                                                                                      | No             |
| Multus          | [{{ multus }}](https://github.com/k8snetworkplumbingwg/multus-cni/releases/tag/{{ multus }})                                                                                                    | No             |

## Known Issues

- [#1447](https://github.com/rancher/rke2/issues/1447) - When restoring RKE2 from backup to a new node, you should ensure that all pods are stopped following the initial restore:

```bash
curl -sfL https://get.rke2.io | sudo INSTALL_RKE2_VERSION={{ milestone }}
rke2 server \\
  --cluster-reset \\
  --cluster-reset-restore-path=<PATH-TO-SNAPSHOT> --token <token used in the original cluster>
rke2-killall.sh
systemctl enable rke2-server
systemctl start rke2-server
```

## Helpful Links

As always, we welcome and appreciate feedback from our community of users. Please feel free to:
- [Open issues here](https://github.com/rancher/rke2/issues/new)
- [Join our Slack channel](https://slack.rancher.io/)
- [Check out our documentation](https://docs.rke2.io) for guidance on how to get started.
"""

K3S_TEMPLATE = """\
<!-- {{ milestone }} -->
This release updates Kubernetes to {{ k8s_version }}, and fixes a number of issues.

For more details on what's new, see the [Kubernetes release notes](https://github.com/kubernetes/kubernetes/blob/master/CHANGELOG/CHANGELOG-{{ major_minor }}.md#changelog-since-{{ change_log_since }}).

{% include "changelog" %}

## Embedded Component Versions
| Component | Version |
|---|---|
| Kubernetes | [{{ k8s_version }}](https://github.com/kubernetes/kubernetes/blob/master/CHANGELOG/CHANGELOG-{{ major_minor }}.md#{{ change_log_version }}) |
| Kine | [{{ kine }}](https://github.com/k3s-io/kine/releases/tag/{{ kine }}) |
| SQLite | [{{ sqlite }}](https://sqlite.org/releaselog/{{ sqlite_replaced }}.html) |
| Etcd | [{{ etcd }}](https://github.com/k3s-io/etcd/releases/tag/{{ etcd }}) |
{%- if major_minor == gomod_runtime_release_line %}
| Containerd | [{{ containerd_go_mod }}](https://github.com/k3s-io/containerd/releases/tag/{{ containerd_go_mod }}) |
| Runc | [{{ runc_build_script }}](https://github.com/opencontainers/runc/releases/tag/{{ runc_build_script }}) |
{%- else %}
| Containerd | [{{ containerd }}](https://github.com/k3s-io/containerd/releases/tag/{{ containerd }}) |
| Runc | [{{ runc_go_mod }}](https://github.com/opencontainers/runc/releases/tag/{{ runc_go_mod }}) |
{%- endif %}
| Flannel | [{{ flannel }}](https://github.com/flannel-io/flannel/releases/tag/{{ flannel }}) | 
| Metrics-server | [{{ metrics_server }}](https://github.com/kubernetes-sigs/metrics-server/releases/tag/{{ metrics_server }}) |
| Traefik | [v{{ traefik }}](https://github.com/traefik/traefik/releases/tag/v{{ traefik }}) |
| CoreDNS | [v{{ coredns }}](https://github.com/coredns/coredns/releases/tag/v{{ coredns }}) | 
| Helm-controller | [{{ helm_controller }}](https://github.com/k3s-io/helm-controller/releases/tag/{{ helm_controller }}) |
| Local-path-provisioner | [{{ local_path_provisioner }}](https://github.com/rancher/local-path-provisioner/releases/tag/{{ local_path_provisioner }}) |

## Helpful Links
As always, we welcome and appreciate feedback from our community of users. Please feel free to:
- [Open issues here](https://github.com/rancher/k3s/issues/new/choose)
- [Join our Slack channel](https://slack.rancher.io/)
- [Check out our documentation](https://rancher.com/docs/k3s/latest/en/) for guidance on how to get started or to dive deep into K3s.
- [Read how you can contribute here](https://github.com/rancher/k3s/blob/master/CONTRIBUTING.md)
"""

CHANGELOG = "changelog"

TEMPLATES: dict[str, str] = {
    CHANGELOG: CHANGELOG_TEMPLATE,
    Distribution.K3S.value: K3S_TEMPLATE,
    Distribution.RKE2.value: RKE2_TEMPLATE,
}

DOCUMENT_TEMPLATES: dict[Distribution, str] = {
    Distribution.K3S: Distribution.K3S.value,
    Distribution.RKE2: Distribution.RKE2.value,
}

# ---------------------------------------------------------------------------
# Renderer
# ---------------------------------------------------------------------------


def build_environment(config: ReleaseConfig | None = None) -> Environment:
    """Create the Jinja2 environment with every template and helper loaded."""
    config = config or ReleaseConfig()
    env = Environment(
        loader=DictLoader(TEMPLATES),
        autoescape=False,
        keep_trailing_newline=True,
    )
    env.filters.update(HELPERS)
    env.globals.update(HELPERS)
    env.globals["gomod_runtime_release_line"] = config.gomod_runtime_release_line
    return env


class TemplateRenderer:
    """Renders release notes documents.

    All templates are compiled up front, so a broken template fails when
    the renderer is created rather than halfway through a release.

    Usage:
        renderer = TemplateRenderer()
        markdown = renderer.render(context)
    """

    def __init__(self, config: ReleaseConfig | None = None) -> None:
        self._env = build_environment(config)
        try:
            self._templates = {name: self._env.get_template(name) for name in TEMPLATES}
        except TemplateSyntaxError as exc:
            raise TemplateParseError(
                f"template {exc.name!r} line {exc.lineno}: {exc.message}"
            ) from exc

    def render(self, context: RenderContext) -> str:
        """Render the document template for ``context.distribution``.

        Raises:
            TemplateRenderError: If a helper rejects a value (e.g. maj_min
                on a version that is not semver) or Jinja2 fails.
        """
        name = DOCUMENT_TEMPLATES[context.distribution]
        return self.render_template(name, context)

    def render_template(self, name: str, context: RenderContext) -> str:
        template = self._templates[name]
        try:
            return template.render(context.model_dump())
        except (ValueError, TemplateError) as exc:
            logger.error("template_render_failed", template=name, error=str(exc))
            raise TemplateRenderError(f"rendering {name!r} failed: {exc}") from exc
