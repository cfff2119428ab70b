"""
Scan Typst sources for package imports.

Only string-literal imports count as package references::

    #import "@preview/cetz:0.3.2": canvas
    #{ import "@preview/tablex:0.0.8" }

Strings that are not well formed ``@namespace/name:version`` specifiers
(relative file imports, typos) are ignored.

Typst switches between markup and code. In markup a ``"`` is plain text
and ``https://`` starts a link, while in code they open a string and a
comment. The lexer below keeps a stack of open modes so each character is
read the way Typst would read it:

* ``#{``, ``#(``, ``#name(`` and ``[`` open code blocks, argument lists
  and content blocks;
* ``#import``, ``#let`` and the other statement keywords open code that
  runs to the end of the line or a ``;``.
"""

from __future__ import annotations

import re
from pathlib import Path

from typst_embed.logging import get_logger
from typst_embed.packages.models import PackageSpec

logger = get_logger("scanner")

SOURCE_SUFFIX = ".typ"

_COMMENTS_AND_RAW = r"""
    | (?P<line_comment>//[^\n]*)
    | (?P<block_comment>/\*.*?\*/)
    | (?P<raw>```.*?```|`[^`\n]*`)
"""

_MARKUP_PATTERN = re.compile(
    r"""
    (?P<escape>\\.)
    | (?P<link>https?://[^\s\]\)]*)
    """
    + _COMMENTS_AND_RAW
    + r"""
    | (?P<hash_import>\#import\b)
    | (?P<hash_statement>\#(?:let|set|show|include|if|for|while|context|return)\b)
    | (?P<hash_block>\#\{)
    | (?P<hash_call>\#(?:[^\W\d][\w-]*(?:\.[^\W\d][\w-]*)*)?\()
    | (?P<open_content>\[)
    | (?P<close_content>\])
    """,
    re.DOTALL | re.VERBOSE,
)

_CODE_PATTERN = re.compile(
    r"""
    (?P<string>"(?:[^"\\\n]|\\.)*")
    """
    + _COMMENTS_AND_RAW
    + r"""
    | (?P<keyword>\bimport\b)
    | (?P<open>[{(\[])
    | (?P<close>[})\]])
    | (?P<end>[\n;])
    """,
    re.DOTALL | re.VERBOSE,
)

# Stack entries. MARKUP is the file itself and is never popped.
MARKUP, CONTENT, BLOCK, ARGS, STATEMENT = "markup", "content", "block", "args", "statement"
_MARKUP_MODES = {MARKUP, CONTENT}
_OPENERS = {"{": BLOCK, "(": ARGS, "[": CONTENT}
_CLOSERS = {"}": BLOCK, ")": ARGS, "]": CONTENT}


def _close(stack: list[str], kind: str) -> None:
    while len(stack) > 1 and stack[-1] == STATEMENT:
        stack.pop()
    if len(stack) > 1 and stack[-1] == kind:
        stack.pop()


def parse_packages_from_source(content: str) -> list[PackageSpec]:
    """Extract package imports from Typst source text, in source order."""
    packages: list[PackageSpec] = []
    stack = [MARKUP]
    import_end: int | None = None
    pos = 0

    while True:
        pattern = _MARKUP_PATTERN if stack[-1] in _MARKUP_MODES else _CODE_PATTERN
        match = pattern.search(content, pos)
        if match is None:
            break
        pos = match.end()
        kind = match.lastgroup
        token = match.group()

        if kind == "string" and import_end is not None:
            if not content[import_end:match.start()].strip():
                spec = PackageSpec.parse(token[1:-1])
                if spec is not None:
                    packages.append(spec)
        import_end = None

        if kind == "keyword":
            import_end = pos
        elif kind == "hash_import":
            stack.append(STATEMENT)
            import_end = pos
        elif kind == "hash_statement":
            stack.append(STATEMENT)
        elif kind == "hash_block":
            stack.append(BLOCK)
        elif kind == "hash_call":
            stack.append(ARGS)
        elif kind in ("open", "open_content"):
            stack.append(_OPENERS[token])
        elif kind in ("close", "close_content"):
            _close(stack, _CLOSERS[token])
        elif kind == "end" and stack[-1] == STATEMENT:
            stack.pop()

    return packages


def iter_source_files(directory: Path) -> list[Path]:
    """All ``.typ`` files under *directory*, sorted for stable logs."""
    if not directory.is_dir():
        return []
    return sorted(
        p for p in directory.rglob(f"*{SOURCE_SUFFIX}") if p.is_file()
    )


def extract_packages(directory: Path) -> set[PackageSpec]:
    """Collect every package referenced by sources under *directory*.

    Unreadable files are skipped with a warning so one bad file does not
    block resolution of the rest.
    """
    packages: set[PackageSpec] = set()

    for path in iter_source_files(directory):
        try:
            content = path.read_text(encoding="utf-8-sig")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Failed to parse %s: %s", path, e)
            continue
        packages.update(parse_packages_from_source(content))

    return packages
