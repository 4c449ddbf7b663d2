"""
Bounded filesystem primitives.

Shared by the reasoning loop's action executor and the standalone MCP tools
(read_file, grep, glob, list_files). Every traversal here is depth- or
count-bounded so a single call cannot stall the server.
"""

import fnmatch
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .config import (
    GREP_MAX_DEPTH,
    MAX_LINE_DISPLAY_LENGTH,
    MAX_SEARCH_MATCHES,
    SEARCH_LINE_TRUNCATE,
)
from .errors import InvalidGlobPattern, InvalidRegexPattern
from .profiling import profile_latency
from .sandbox import PathSandbox


BINARY_EXTENSIONS = frozenset({
    "exe", "dll", "so", "dylib", "bin", "obj", "o", "a", "lib", "png", "jpg", "jpeg", "gif",
    "bmp", "ico", "webp", "svg", "mp3", "mp4", "avi", "mov", "mkv", "flac", "wav", "zip",
    "tar", "gz", "bz2", "xz", "7z", "rar", "pdf", "doc", "docx", "xls", "xlsx", "ppt", "pptx",
    "woff", "woff2", "ttf", "otf", "eot", "pyc", "pyo", "class", "jar",
})

TREE_BRANCH = "├── "
TREE_LAST = "└── "
TREE_PIPE = "│   "
TREE_SPACE = "    "


@dataclass
class TreeListing:
    """Result from build_directory_tree()."""
    path: str
    text: str
    dir_count: int = 0
    file_count: int = 0

    def __str__(self) -> str:
        return self.text


@dataclass
class GrepMatch:
    """A single matching line."""
    file: str
    line: int
    text: str

    def to_context_line(self) -> str:
        return f"{self.file}:{self.line}: {self.text}"


@dataclass
class GrepResult:
    """Result from grep_tree()."""
    pattern: str
    matches: list[GrepMatch] = field(default_factory=list)
    files_searched: int = 0
    max_matches: int = MAX_SEARCH_MATCHES

    @property
    def truncated(self) -> bool:
        return len(self.matches) >= self.max_matches

    @property
    def files_matched(self) -> int:
        return len({m.file for m in self.matches})

    def __str__(self) -> str:
        if not self.matches:
            return f"No matches found for pattern: {self.pattern}"

        # Group consecutive matches by file
        output: list[str] = []
        current_file: Optional[str] = None
        for m in self.matches:
            if m.file != current_file:
                if current_file is not None:
                    output.append("")
                output.append(f"{m.file}:")
                current_file = m.file
            output.append(f"  {m.line:6}: {m.text.strip()}")
        return "\n".join(output)


@dataclass
class FileLines:
    """Result from read_lines()."""
    path: str
    lines: list[str]
    total_lines: int
    start_line: int
    end_line: int

    @property
    def is_partial(self) -> bool:
        return self.start_line > 1 or self.end_line < self.total_lines

    def __str__(self) -> str:
        output = []
        for i, line in enumerate(self.lines):
            output.append(f"{self.start_line + i:6}\t{line}")
        return "\n".join(output)


def truncate_line(line: str, max_length: int) -> str:
    if len(line) <= max_length:
        return line
    return f"{line[:max_length]}..."


def split_lines(content: str) -> list[str]:
    """Split on newlines, dropping a trailing empty line and stray carriage returns."""
    lines = content.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


def is_hidden(name: str) -> bool:
    return name.startswith(".") and name not in (".", "..")


def is_likely_binary(path: Path) -> bool:
    return path.suffix.lstrip(".").lower() in BINARY_EXTENSIONS


def compile_regex(pattern: str, case_insensitive: bool = False) -> re.Pattern:
    """Compile a search pattern, raising InvalidRegexPattern on bad syntax."""
    flags = re.IGNORECASE if case_insensitive else 0
    try:
        return re.compile(pattern, flags)
    except re.error as e:
        raise InvalidRegexPattern(str(e)) from e


def cap_content(content: str, max_chars: int) -> tuple[str, bool]:
    """Cut content at max_chars, appending a note with the full size."""
    if len(content) <= max_chars:
        return content, False
    capped = f"{content[:max_chars]}...\n\n[Truncated - {len(content)} total characters]"
    return capped, True


# =============================================================================
# DIRECTORY TREE
# =============================================================================

@profile_latency("build_directory_tree")
def build_directory_tree(path: Path, max_depth: int) -> TreeListing:
    """
    Render an indented tree of ``path``.

    Directories come before files, both alphabetical. Hidden entries are
    skipped, as are directories that cannot be read. Entries at depth 0 through
    ``max_depth`` are shown.
    """
    listing = TreeListing(path=str(path), text="")
    lines: list[str] = []
    _build_tree(path, lines, "", 0, max_depth, listing)
    listing.text = "".join(f"{line}\n" for line in lines)
    return listing


def _build_tree(
    path: Path,
    lines: list[str],
    prefix: str,
    depth: int,
    max_depth: int,
    listing: TreeListing,
) -> None:
    if depth > max_depth:
        return

    try:
        entries = [entry for entry in path.iterdir() if not is_hidden(entry.name)]
    except OSError:
        return

    items = []
    for entry in entries:
        try:
            items.append((not entry.is_dir(), entry.name, entry))
        except OSError:
            continue
    items.sort(key=lambda item: (item[0], item[1]))

    for index, (is_file, name, entry) in enumerate(items):
        is_last = index == len(items) - 1
        connector = TREE_LAST if is_last else TREE_BRANCH

        if is_file:
            listing.file_count += 1
            lines.append(f"{prefix}{connector}{name}")
            continue

        listing.dir_count += 1
        lines.append(f"{prefix}{connector}{name}/")
        if depth < max_depth:
            child_prefix = prefix + (TREE_SPACE if is_last else TREE_PIPE)
            _build_tree(entry, lines, child_prefix, depth + 1, max_depth, listing)


# =============================================================================
# READ
# =============================================================================

def read_text(path: Path) -> str:
    """Read a whole file as UTF-8 (raises on undecodable content)."""
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def read_lines(
    path: Path,
    offset: int = 1,
    limit: int = 2000,
    max_line_length: int = MAX_LINE_DISPLAY_LENGTH,
) -> FileLines:
    """
    Read a 1-based line window of a file.

    Lines longer than ``max_line_length`` are cut and marked ``[truncated]``.
    """
    all_lines = split_lines(read_text(path))
    total_lines = len(all_lines)

    start_index = min(max(offset, 1) - 1, total_lines)
    end_index = min(start_index + max(limit, 1), total_lines)

    lines = []
    for line in all_lines[start_index:end_index]:
        if len(line) > max_line_length:
            line = f"{line[:max_line_length]}... [truncated]"
        lines.append(line)

    return FileLines(
        path=str(path),
        lines=lines,
        total_lines=total_lines,
        start_line=start_index + 1,
        end_line=end_index,
    )


# =============================================================================
# GREP
# =============================================================================

def _iter_search_files(base: Path, max_depth: int):
    """Yield files under ``base`` in sorted order, bounded by depth."""
    if base.is_file():
        yield base
        return

    for dirpath, dirnames, filenames in os.walk(base, followlinks=False):
        current = Path(dirpath)
        depth = len(current.relative_to(base).parts)

        dirnames[:] = sorted(d for d in dirnames if not is_hidden(d))
        if depth + 1 >= max_depth:
            dirnames[:] = []

        if depth + 1 > max_depth:
            continue

        for name in sorted(filenames):
            if is_hidden(name):
                continue
            file_path = current / name
            if file_path.is_file() and not is_likely_binary(file_path):
                yield file_path


@profile_latency("grep_tree")
def grep_tree(
    base: Path,
    regex: re.Pattern,
    glob: Optional[str] = None,
    max_matches: int = MAX_SEARCH_MATCHES,
    max_depth: int = GREP_MAX_DEPTH,
    max_files: Optional[int] = None,
    line_truncate: int = SEARCH_LINE_TRUNCATE,
    sandbox: Optional[PathSandbox] = None,
) -> GrepResult:
    """
    Scan files under ``base`` line by line for ``regex``.

    Stops once ``max_matches`` lines matched across all files, or after
    ``max_files`` files were searched. ``glob`` filters by file name. Files
    that cannot be decoded as UTF-8 are skipped.
    """
    result = GrepResult(pattern=regex.pattern, max_matches=max_matches)

    for file_path in _iter_search_files(base, max_depth):
        if len(result.matches) >= max_matches:
            break
        if max_files is not None and result.files_searched >= max_files:
            break
        if glob and not fnmatch.fnmatch(file_path.name, glob):
            continue
        if sandbox is not None and not sandbox.is_allowed(file_path.resolve()):
            continue

        try:
            content = read_text(file_path)
        except (OSError, UnicodeDecodeError):
            continue

        result.files_searched += 1
        for line_index, line in enumerate(split_lines(content)):
            if regex.search(line):
                result.matches.append(GrepMatch(
                    file=str(file_path),
                    line=line_index + 1,
                    text=truncate_line(line, line_truncate),
                ))
                if len(result.matches) >= max_matches:
                    break

    return result


# =============================================================================
# GLOB
# =============================================================================

def glob_paths(
    base: Path,
    pattern: str,
    max_results: int = MAX_SEARCH_MATCHES,
    sandbox: Optional[PathSandbox] = None,
) -> list[Path]:
    """
    Match ``pattern`` relative to ``base``.

    Hidden paths and matches that resolve outside the sandbox are dropped.
    Candidates are sorted before filtering, so the first ``max_results`` paths are kept.
    """
    try:
        candidates = sorted(base.glob(pattern))
        matches: list[Path] = []
        for candidate in candidates:
            try:
                relative = candidate.relative_to(base)
            except ValueError:
                relative = candidate
            if any(is_hidden(part) for part in relative.parts):
                continue
            if sandbox is not None and not sandbox.is_allowed(candidate.resolve()):
                continue
            matches.append(candidate)
            if len(matches) >= max_results:
                break
    except (ValueError, NotImplementedError) as e:
        raise InvalidGlobPattern(str(e)) from e

    return matches
