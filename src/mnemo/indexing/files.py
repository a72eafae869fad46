"""Memory file discovery and file entries.

Only regular ``.md`` files are indexed. Symlinks are skipped both as files
and as directories, so a link can never pull content from outside the
configured roots.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from mnemo.indexing.chunker import hash_text
from mnemo.types import GetResult

logger = logging.getLogger(__name__)

_MEMORY_SUFFIX = ".md"


@dataclass(frozen=True)
class FileEntry:
    """A memory file observed during a sync pass.

    Attributes:
        path: Absolute POSIX path; the key stored in the index.
        abs_path: Path used to read the file.
        mtime: Modification time in epoch milliseconds.
        size: Size in bytes.
        hash: sha256 of the decoded content.
    """

    path: str
    abs_path: Path
    mtime: int
    size: int
    hash: str


def resolve_extra_paths(workspace_dir: Path | None, extra_paths: list[str]) -> list[Path]:
    """Resolve *extra_paths* against *workspace_dir*, dropping blanks and duplicates."""
    resolved: list[Path] = []
    for raw in extra_paths:
        value = raw.strip()
        if not value:
            continue
        candidate = Path(value).expanduser()
        if not candidate.is_absolute() and workspace_dir is not None:
            candidate = workspace_dir / candidate
        candidate = Path(os.path.abspath(candidate))
        if candidate not in resolved:
            resolved.append(candidate)
    return resolved


def _walk(directory: Path, found: list[Path]) -> None:
    try:
        entries = sorted(os.scandir(directory), key=lambda e: e.name)
    except OSError as exc:
        logger.debug("skipping unreadable directory %s: %s", directory, exc)
        return
    for entry in entries:
        if entry.is_symlink():
            continue
        if entry.is_dir(follow_symlinks=False):
            _walk(Path(entry.path), found)
        elif entry.is_file(follow_symlinks=False) and entry.name.endswith(_MEMORY_SUFFIX):
            found.append(Path(entry.path))


def list_memory_files(
    memory_dir: Path,
    extra_paths: list[str] | None = None,
    workspace_dir: Path | None = None,
) -> list[Path]:
    """Return every ``.md`` file under *memory_dir* and the extra paths.

    Missing roots are ignored. Duplicates are removed, first occurrence wins.
    """
    found: list[Path] = []
    if memory_dir.is_dir() and not memory_dir.is_symlink():
        _walk(memory_dir, found)

    for root in resolve_extra_paths(workspace_dir, extra_paths or []):
        if root.is_symlink():
            continue
        if root.is_dir():
            _walk(root, found)
        elif root.is_file() and root.name.endswith(_MEMORY_SUFFIX):
            found.append(root)

    return list(dict.fromkeys(found))


def build_file_entry(abs_path: Path) -> FileEntry | None:
    """Stat and hash *abs_path*. Returns None if the file vanished meanwhile."""
    try:
        stat = abs_path.stat()
        content = abs_path.read_text(encoding="utf-8", errors="replace")
    except FileNotFoundError:
        return None
    return FileEntry(
        path=Path(os.path.abspath(abs_path)).as_posix(),
        abs_path=abs_path,
        mtime=int(stat.st_mtime * 1000),
        size=stat.st_size,
        hash=hash_text(content),
    )


def read_slice(path: str | Path, from_line: int | None = None, line_count: int | None = None) -> GetResult:
    """Read *path* and return lines ``from_line .. from_line + line_count - 1``.

    Lines are 1-indexed. Without arguments the whole file is returned.

    Raises:
        FileNotFoundError: If *path* does not exist.
    """
    target = Path(path).expanduser()
    content = target.read_text(encoding="utf-8", errors="replace")
    if from_line is None and line_count is None:
        return GetResult(path=str(path), text=content)

    lines = content.split("\n")
    start = max(1, from_line or 1)
    count = line_count if line_count is not None else len(lines)
    selected = lines[start - 1 : start - 1 + max(0, count)]
    return GetResult(path=str(path), text="\n".join(selected))
