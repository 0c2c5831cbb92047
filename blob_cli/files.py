"""Local file discovery and remote key naming."""

from __future__ import annotations

import logging
import mimetypes
import os
from dataclasses import dataclass, field
from pathlib import Path, PurePath
from typing import Iterator, Optional, Protocol, Sequence

from .exceptions import PathNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"


# ---------------------------------------------------------------------------
# Filesystem binding
# ---------------------------------------------------------------------------

class FileSystem(Protocol):
    def resolve(self, path: str) -> str: ...
    def exists(self, path: str) -> bool: ...
    def is_dir(self, path: str) -> bool: ...
    def is_file(self, path: str) -> bool: ...
    def list_dir(self, path: str) -> list[str]: ...
    def join(self, base: str, *parts: str) -> str: ...
    def dirname(self, path: str) -> str: ...
    def read_bytes(self, path: str) -> bytes: ...
    def write_bytes(self, path: str, data: bytes) -> None: ...
    def make_dirs(self, path: str) -> None: ...


class LocalFileSystem:
    """FileSystem backed by the operating system."""

    def resolve(self, path: str) -> str:
        return str(Path(path).expanduser().resolve())

    def exists(self, path: str) -> bool:
        return os.path.exists(path)

    def is_dir(self, path: str) -> bool:
        return os.path.isdir(path)

    def is_file(self, path: str) -> bool:
        return os.path.isfile(path)

    def list_dir(self, path: str) -> list[str]:
        return os.listdir(path)

    def join(self, base: str, *parts: str) -> str:
        return os.path.join(base, *parts)

    def dirname(self, path: str) -> str:
        return os.path.dirname(path)

    def read_bytes(self, path: str) -> bytes:
        return Path(path).read_bytes()

    def write_bytes(self, path: str, data: bytes) -> None:
        Path(path).write_bytes(data)

    def make_dirs(self, path: str) -> None:
        os.makedirs(path, exist_ok=True)


# ---------------------------------------------------------------------------
# Path enumeration
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DiscoveredFile:
    """A file to upload. ``root`` is the directory argument it came from."""

    path: str
    root: Optional[str] = None


@dataclass
class Discovery:
    files: list[DiscoveredFile] = field(default_factory=list)
    missing: list[PathNotFoundError] = field(default_factory=list)

    @property
    def from_directory(self) -> bool:
        return any(f.root is not None for f in self.files)


def walk_tree(fs: FileSystem, root: str) -> Iterator[str]:
    """Yield every regular file beneath ``root``, depth-first, sorted by name."""
    for name in sorted(fs.list_dir(root)):
        child = fs.join(root, name)
        if fs.is_dir(child):
            yield from walk_tree(fs, child)
        elif fs.is_file(child):
            yield child
        else:
            logger.debug(f"Skipping non-regular file: {child}")


def discover_files(
    paths: Sequence[str], fs: Optional[FileSystem] = None
) -> Discovery:
    """Expand user-supplied paths into a flat, ordered list of files.

    Missing paths are recorded in ``Discovery.missing`` and skipped.
    """
    fs = fs or LocalFileSystem()
    discovery = Discovery()

    for raw in paths:
        absolute = fs.resolve(raw)
        if not fs.exists(absolute):
            error = PathNotFoundError(absolute)
            logger.error(error.message)
            discovery.missing.append(error)
            continue

        if fs.is_dir(absolute):
            found = [DiscoveredFile(path=f, root=absolute) for f in walk_tree(fs, absolute)]
            if not found:
                logger.warning(f"Directory is empty (no files found): {absolute}")
            discovery.files.extend(found)
        else:
            discovery.files.append(DiscoveredFile(path=absolute))

    return discovery


# ---------------------------------------------------------------------------
# Naming
# ---------------------------------------------------------------------------

def make_key(
    file: DiscoveredFile,
    override: Optional[str] = None,
    single_file: bool = False,
) -> str:
    """
    Compute the remote key for a discovered file.

    Example:
        root   = /data/exports
        file   = /data/exports/subdir/report.csv
        result = subdir/report.csv

    The override is only honoured for a lone file argument; directory
    uploads always use the relative path.
    """
    if file.root is not None:
        # Forward slashes for blob keys, even on Windows
        return PurePath(file.path).relative_to(file.root).as_posix()
    if override and single_file:
        return override
    return PurePath(file.path).name


def guess_content_type(path: str) -> str:
    guess, _ = mimetypes.guess_type(path)
    return guess or DEFAULT_CONTENT_TYPE
