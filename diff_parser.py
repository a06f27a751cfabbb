"""Parser for per-file unified diff patches using unidiff library."""

import logging
import re
from dataclasses import dataclass, field
from typing import Literal

from unidiff import PatchSet
from unidiff.errors import UnidiffParseError

logger = logging.getLogger(__name__)

FileStatus = Literal[
    "added", "modified", "removed", "renamed", "copied", "changed", "unchanged"
]
LineKind = Literal["added", "context", "removed"]

# Dependency lock files (yarn.lock, package-lock.json, pnpm-lock.yaml, ...)
LOCKFILE_MARKER = "lock"
REVIEWABLE_EXTENSIONS = ("js", "jsx", "ts", "tsx", "vue")

_REVIEWABLE_PATTERN = re.compile(
    r"\.(" + "|".join(REVIEWABLE_EXTENSIONS) + r")$"
)
_HEADER_PREFIXES = ("diff --git ", "--- ")


class UnparseableDiff(ValueError):
    """A patch could not be turned into hunks."""


@dataclass(frozen=True)
class ChangedFile:
    """A file changed in a Pull Request."""

    path: str
    status: FileStatus
    patch: str | None = None  # absent for binary or very large diffs
    previous_path: str | None = None  # set for renames

    @property
    def new_file_line_count(self) -> int:
        """Highest new-file line number the patch reaches (0 without one)."""
        if not self.patch:
            return 0
        try:
            hunks = parse_patch(self.patch, self.path)
        except UnparseableDiff:
            return 0
        return max(
            (
                line.new_line_number
                for hunk in hunks
                for line in hunk.lines
                if line.new_line_number is not None
            ),
            default=0,
        )


@dataclass(frozen=True)
class DiffLine:
    """One body line of a hunk."""

    kind: LineKind
    content: str
    new_line_number: int | None  # None for removed lines
    old_line_number: int | None  # None for added lines
    position: int  # GitHub diff position (1-based, counted from first hunk)


@dataclass
class DiffHunk:
    """A contiguous block of a patch with its own line offsets."""

    new_start: int
    new_length: int
    lines: list[DiffLine] = field(default_factory=list)


@dataclass
class PatchPositions:
    """Maps new-file line numbers to their place in the diff for one file."""

    path: str
    # Maps line number (in new file) -> position in diff (1-based)
    line_to_position: dict[int, int] = field(default_factory=dict)

    @property
    def addressable_lines(self) -> set[int]:
        """Lines that can receive review comments."""
        return set(self.line_to_position)

    def is_addressable(self, line_number: int) -> bool:
        return line_number in self.line_to_position

    def position_for(self, line_number: int) -> int | None:
        return self.line_to_position.get(line_number)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------
def _with_file_headers(patch: str, path: str) -> str:
    """GitHub's per-file patches start at the first hunk; unidiff needs headers."""
    if patch.lstrip().startswith(_HEADER_PREFIXES):
        return patch
    return f"--- a/{path}\n+++ b/{path}\n{patch}"


def parse_patch(patch: str, path: str = "file") -> list[DiffHunk]:
    """
    Parse one file's unified diff patch into hunks.

    Args:
        patch: Patch text, with or without ``---``/``+++`` file headers
        path: File path, used only to synthesise missing headers

    Returns:
        List of DiffHunk objects in patch order

    Raises:
        UnparseableDiff: If the patch is malformed or contains no hunks
    """
    if not patch or not patch.strip():
        raise UnparseableDiff(f"{path}: empty patch")

    try:
        patch_set = PatchSet.from_string(_with_file_headers(patch, path))
    except UnidiffParseError as e:
        raise UnparseableDiff(f"{path}: {e}") from e

    hunks: list[DiffHunk] = []
    position = 0  # Position counter across all hunks

    for patched_file in patch_set:
        for index, hunk in enumerate(patched_file):
            # Every hunk header after the first occupies a position
            if index > 0:
                position += 1

            diff_hunk = DiffHunk(
                new_start=hunk.target_start, new_length=hunk.target_length
            )
            for line in hunk:
                position += 1
                content = line.value.rstrip("\n")

                if line.is_added:
                    kind: LineKind = "added"
                elif line.is_context:
                    kind = "context"
                elif line.is_removed:
                    kind = "removed"
                else:
                    continue  # "\ No newline at end of file"

                diff_hunk.lines.append(
                    DiffLine(
                        kind=kind,
                        content=content,
                        new_line_number=line.target_line_no,
                        old_line_number=line.source_line_no,
                        position=position,
                    )
                )
            hunks.append(diff_hunk)

    if not hunks:
        raise UnparseableDiff(f"{path}: no hunks found")
    return hunks


def build_positions(patch: str, path: str = "file") -> PatchPositions:
    """
    Build the addressable-line lookup for one file's patch.

    GitHub's review API accepts either:
    - position: 1-based offset within the diff (legacy)
    - line + side: actual line number with LEFT/RIGHT (modern)

    Comments are posted with line + side; the position mapping is kept
    alongside so either addressing mode can be used. Only lines present
    on the right-hand side of some hunk (added or context) can be
    commented on.

    Raises:
        UnparseableDiff: If the patch cannot be parsed
    """
    positions = PatchPositions(path=path)
    for hunk in parse_patch(patch, path):
        for line in hunk.lines:
            if line.kind != "removed" and line.new_line_number is not None:
                positions.line_to_position[line.new_line_number] = line.position
    return positions


# ---------------------------------------------------------------------------
# Filtering
# ---------------------------------------------------------------------------
def skip_reason(file: ChangedFile, max_patch_chars: int) -> str | None:
    """Return why *file* is not reviewable, or None if it should be reviewed.

    Rules are checked in order; the first match wins.
    """
    if file.status == "removed":
        return "removed"
    if LOCKFILE_MARKER in file.path:
        return "lock file"
    if not _REVIEWABLE_PATTERN.search(file.path):
        return "unsupported extension"
    if not file.patch:
        return "no patch"
    if len(file.patch) > max_patch_chars:
        return "patch too large"
    return None


def filter_files(files: list[ChangedFile], max_patch_chars: int) -> list[ChangedFile]:
    """Filter out files that shouldn't be reviewed."""
    result = []

    for file in files:
        reason = skip_reason(file, max_patch_chars)
        if reason is None:
            result.append(file)
        elif reason == "patch too large":
            logger.info(
                "⚠️ %s changed too much (%d chars > %d), skipping AI review",
                file.path,
                len(file.patch or ""),
                max_patch_chars,
            )
        else:
            logger.debug("Skipping %s: %s", file.path, reason)

    return result
