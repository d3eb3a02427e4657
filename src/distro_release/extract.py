"""Line-oriented version extraction from fetched text.

Upstream files are loosely structured, so extraction works in two steps:
find the lines that mention a marker (a variable, library or image name),
then run a regular expression over those lines. The first matching line
wins, because upstream files define a value closest to its authoritative
definition first.
"""

from __future__ import annotations

import re

from distro_release.fetch import TextFetcherProtocol


def find_in_text(text: str, marker: str, regex: str) -> list[str]:
    """Scan ``text`` for ``marker`` and apply ``regex`` to matching lines.

    Args:
        text: Document to scan.
        marker: Substring a line must contain to be considered.
        regex: Pattern with at least one capture group. When empty, every
               line containing ``marker`` is returned verbatim instead.

    Returns:
        For a non-empty regex: the whole match followed by each capture
        group (unmatched groups as ""), for the first matching line; an
        empty list when nothing matches. For an empty regex: the matching
        lines in order.
    """
    if not regex:
        return [line for line in text.splitlines() if marker in line]

    pattern = re.compile(regex)
    for line in text.splitlines():
        if marker not in line:
            continue
        match = pattern.search(line)
        if match is not None:
            return [match.group(0), *(group or "" for group in match.groups())]
    return []


def _first_capture(submatch: list[str]) -> str | None:
    if len(submatch) > 1:
        return submatch[1]
    return None


def extract_version(text: str, marker: str, regex: str) -> str | None:
    """Return the first capture group of the first match, or None."""
    return _first_capture(find_in_text(text, marker, regex))


def find_in_url(
    fetcher: TextFetcherProtocol, url: str, marker: str, regex: str
) -> list[str]:
    """Fetch ``url`` and run :func:`find_in_text` on it.

    An unavailable document yields an empty list.
    """
    text = fetcher.fetch(url)
    if text is None:
        return []
    return find_in_text(text, marker, regex)


def extract_version_from_url(
    fetcher: TextFetcherProtocol, url: str, marker: str, regex: str
) -> str | None:
    """Fetch ``url`` and return the first capture group of the first match.

    None when the document is unavailable or nothing matches.
    """
    return _first_capture(find_in_url(fetcher, url, marker, regex))
