"""Minimal go.mod parser.

Only the directives the version lookups need are interpreted: ``require``
and ``replace``, in both single-line and block form. Other known
directives are accepted and skipped; anything else is a parse error, as it
would be for the Go toolchain.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from distro_release.errors import ManifestParseError

_KNOWN_DIRECTIVES = {
    "module",
    "go",
    "toolchain",
    "godebug",
    "require",
    "replace",
    "exclude",
    "retract",
    "tool",
    "ignore",
}


@dataclass(frozen=True)
class Requirement:
    path: str
    version: str


@dataclass(frozen=True)
class Replacement:
    """A ``replace old [v] => new [v]`` directive.

    ``new_version`` is empty when the replacement is a local directory.
    """

    old_path: str
    old_version: str
    new_path: str
    new_version: str


@dataclass
class GoModFile:
    module: str = ""
    require: list[Requirement] = field(default_factory=list)
    replace: list[Replacement] = field(default_factory=list)


def _tokens(line: str) -> list[str]:
    if "//" in line:
        line = line[: line.index("//")]
    # Parentheses are tokens of their own: "require(" opens a block.
    line = line.replace("(", " ( ").replace(")", " ) ")
    return [token.strip('"`') for token in line.split()]


def _parse_require(args: list[str], line_number: int) -> Requirement:
    if len(args) != 2:
        raise ManifestParseError(line_number, "usage: require module/path v1.2.3")
    return Requirement(path=args[0], version=args[1])


def _parse_replace(args: list[str], line_number: int) -> Replacement:
    if "=>" not in args:
        raise ManifestParseError(line_number, "usage: replace module/path [v1.2.3] => other/module v1.4")
    arrow = args.index("=>")
    old, new = args[:arrow], args[arrow + 1 :]
    if len(old) not in (1, 2) or len(new) not in (1, 2):
        raise ManifestParseError(line_number, "usage: replace module/path [v1.2.3] => other/module v1.4")
    return Replacement(
        old_path=old[0],
        old_version=old[1] if len(old) == 2 else "",
        new_path=new[0],
        new_version=new[1] if len(new) == 2 else "",
    )


def parse_go_mod(text: str) -> GoModFile:
    """Parse go.mod ``text``.

    Raises:
        ManifestParseError: On an unknown directive, a malformed require or
            replace line, or an unterminated block.
    """
    mod = GoModFile()
    block: str | None = None
    block_start = 0

    def apply(directive: str, args: list[str], line_number: int) -> None:
        if directive == "require":
            mod.require.append(_parse_require(args, line_number))
        elif directive == "replace":
            mod.replace.append(_parse_replace(args, line_number))
        elif directive == "module" and args:
            mod.module = args[0]

    for line_number, raw in enumerate(text.splitlines(), start=1):
        tokens = _tokens(raw)
        if not tokens:
            continue

        if block is not None:
            if tokens == [")"]:
                block = None
                continue
            apply(block, tokens, line_number)
            continue

        directive, args = tokens[0], tokens[1:]
        if directive not in _KNOWN_DIRECTIVES:
            raise ManifestParseError(line_number, f"unknown directive: {directive}")
        if args == ["(", ")"]:
            continue
        if args == ["("]:
            block, block_start = directive, line_number
            continue
        apply(directive, args, line_number)

    if block is not None:
        raise ManifestParseError(block_start, f"unterminated {block} block")

    return mod
