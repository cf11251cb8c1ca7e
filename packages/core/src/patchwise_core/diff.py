"""Split a multi-file unified diff into per-file fragments.

A fragment is the unit of caching: its exact text is fingerprinted, so the
segmenter must be byte-faithful: every line of a file block, headers included,
ends up in exactly one fragment, and joining the fragments with newlines gives
back the original diff.

Block boundaries are recognised in two ways:

- ``diff <args>`` lines (``diff --git a/x b/x``, ``diff -ruN old/x new/x``)
  always open a new block.
- A ``--- <path>`` line opens a new block only for plain unified diffs, i.e.
  when the open block already has its own ``---`` header or has started its
  hunks. The ``---``/``+++`` pair that follows a ``diff --git`` line belongs to
  that block.

Hunk headers are parsed for their line counts so that a removed line whose text
happens to start with ``-- `` (SQL or Lua comments) is read as hunk content,
not as the next file's header.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

logger = logging.getLogger(__name__)

_DEV_NULL = "/dev/null"
_HUNK_RE = re.compile(r"^@@ -\d+(?:,(\d+))? \+\d+(?:,(\d+))? @@")
_GIT_HEADER_RE = re.compile(r"^diff --git (\"?a/.+?\"?) (\"?b/.+\"?)$")
_HUNK_CONTENT_PREFIXES = (" ", "+", "-", "\\")

# Diff tools prefix the two sides of a comparison with these directories.
_SIDE_PREFIXES = ("a/", "b/")


@dataclass(frozen=True)
class DiffFragment:
    """One file's share of a pull-request diff."""

    path: str
    raw_text: str


def normalize_path(path: str) -> str:
    """Reduce a diff header path to the repository-relative file path.

    Strips the timestamp that ``diff -u`` appends after a tab, surrounding
    quotes, the ``a/``/``b/`` side prefix and any leading ``./`` or ``/``.
    """
    path = path.split("\t", 1)[0].strip()
    if len(path) >= 2 and path[0] == '"' and path[-1] == '"':
        path = path[1:-1]
    for prefix in _SIDE_PREFIXES:
        if path.startswith(prefix):
            path = path[len(prefix) :]
            break
    while path.startswith("./"):
        path = path[2:]
    return path.lstrip("/")


def _header_path(line: str) -> str:
    """Return the raw path of a ``---``/``+++`` header line, without timestamp."""
    return line[4:].split("\t", 1)[0].strip()


def _git_header_path(line: str) -> str | None:
    """Return the new-side path of a ``diff --git`` line.

    When both sides name the same file (the common case) the line is split down
    the middle, which stays correct for paths containing spaces.
    """
    rest = line[len("diff --git ") :]
    half = len(rest) // 2
    if len(rest) % 2 == 1 and rest[half] == " ":
        old, new = rest[:half], rest[half + 1 :]
        if normalize_path(old) == normalize_path(new):
            return new
    match = _GIT_HEADER_RE.match(line)
    if match:
        return match.group(2)
    return None


def _is_hunk_content(line: str) -> bool:
    # Some editors strip the single space of blank context lines.
    return line == "" or line.startswith(_HUNK_CONTENT_PREFIXES)


class _Block:
    """Lines and header facts accumulated for one file block."""

    def __init__(self, first_line: str):
        self.lines = [first_line]
        self.git_path: str | None = None
        self.old_path: str | None = None
        self.new_path: str | None = None
        self.rename_to: str | None = None
        self.saw_old_header = False
        self.saw_hunk = False

    @property
    def path(self) -> str:
        # The new side names the file as it exists after the PR; deleted files
        # only have an old side.
        for candidate in (self.new_path, self.old_path):
            if candidate and candidate != _DEV_NULL:
                return normalize_path(candidate)
        if self.rename_to:
            return normalize_path(self.rename_to)
        if self.git_path:
            return normalize_path(self.git_path)
        return self.lines[0].strip()

    def add(self, line: str) -> tuple[int, int]:
        """Append a header-region line; return hunk line budgets if it opens a hunk."""
        self.lines.append(line)
        if line.startswith("--- "):
            self.old_path = _header_path(line)
            self.saw_old_header = True
        elif line.startswith("+++ ") and not self.saw_hunk:
            self.new_path = _header_path(line)
        elif line.startswith("rename to "):
            self.rename_to = line[len("rename to ") :]
        else:
            match = _HUNK_RE.match(line)
            if match:
                self.saw_hunk = True
                old_count = int(match.group(1)) if match.group(1) is not None else 1
                new_count = int(match.group(2)) if match.group(2) is not None else 1
                return old_count, new_count
        return 0, 0

    def opens_new_block(self) -> bool:
        """Whether a ``---`` line seen outside a hunk belongs to a new file."""
        return self.saw_old_header or self.saw_hunk


def _scan_blocks(diff_text: str) -> list[_Block]:
    blocks: list[_Block] = []
    current: _Block | None = None
    old_left = new_left = 0
    dropped = 0

    for line in diff_text.split("\n"):
        if (old_left > 0 or new_left > 0) and _is_hunk_content(line):
            if line.startswith("-"):
                old_left -= 1
            elif line.startswith("+"):
                new_left -= 1
            elif not line.startswith("\\"):
                old_left -= 1
                new_left -= 1
            current.lines.append(line)
            continue
        old_left = new_left = 0

        if line.startswith("diff "):
            current = _Block(line)
            if line.startswith("diff --git "):
                current.git_path = _git_header_path(line)
            blocks.append(current)
            continue

        if line.startswith("--- ") and (current is None or current.opens_new_block()):
            current = _Block(line)
            current.old_path = _header_path(line)
            current.saw_old_header = True
            blocks.append(current)
            continue

        if current is None:
            dropped += 1
            continue

        old_left, new_left = current.add(line)

    if dropped and blocks:
        logger.debug("Dropped %d preamble line(s) before the first file header", dropped)
    return blocks


def split_diff(diff_text: str) -> list[DiffFragment]:
    """Return one fragment per file touched by ``diff_text``, in diff order.

    If the same path opens more than one block, the later block's text replaces
    the earlier one (keeping the earlier position) and a warning is logged.
    """
    if not diff_text:
        return []

    fragments: dict[str, DiffFragment] = {}
    for block in _scan_blocks(diff_text):
        path = block.path
        if path in fragments:
            logger.warning("Diff contains more than one block for %s; keeping the last one", path)
        fragments[path] = DiffFragment(path=path, raw_text="\n".join(block.lines))
    return list(fragments.values())


def join_fragments(fragments: list[DiffFragment]) -> str:
    """Concatenate fragments back into one diff, preserving their order."""
    return "\n".join(f.raw_text for f in fragments)
