"""
File system access used during evaluation.

Evaluation reaches the disk only through the FileSystem protocol, so tests
and hosts can supply their own implementation. Paths use "/" as separator;
backslashes in condition paths are treated as separators too.
"""

import logging
import os
import posixpath
import stat as stat_module
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Protocol, Sequence

from .errors import EvaluationError
from .games import GHOST_EXTENSION, GameType

logger = logging.getLogger("loot_conditions.filesystem")


class FileKind(Enum):
    FILE = "file"
    DIRECTORY = "directory"


@dataclass(frozen=True)
class FileStat:
    kind: FileKind
    size: int

    @property
    def is_file(self) -> bool:
        return self.kind == FileKind.FILE

    @property
    def is_dir(self) -> bool:
        return self.kind == FileKind.DIRECTORY


class FileSystem(Protocol):
    """Capability interface for the file operations evaluation needs."""

    def list_dir(self, path: str) -> List[str]:
        """Returns the entry names of a directory. Raises OSError on failure."""
        ...

    def stat(self, path: str) -> Optional[FileStat]:
        """Returns the kind and size of a path, or None if it does not exist."""
        ...

    def read_bytes(self, path: str, limit: Optional[int] = None) -> bytes:
        """Reads a file, or at most `limit` bytes of it. Raises OSError on failure."""
        ...

    def is_readable(self, path: str) -> bool:
        ...


class LocalFileSystem:
    """FileSystem backed by the operating system."""

    def list_dir(self, path: str) -> List[str]:
        return os.listdir(path)

    def stat(self, path: str) -> Optional[FileStat]:
        try:
            result = os.stat(path)
        except (OSError, ValueError):
            return None

        if stat_module.S_ISDIR(result.st_mode):
            return FileStat(FileKind.DIRECTORY, result.st_size)
        return FileStat(FileKind.FILE, result.st_size)

    def read_bytes(self, path: str, limit: Optional[int] = None) -> bytes:
        with open(path, "rb") as f:
            if limit is None:
                return f.read()
            return f.read(limit)

    def is_readable(self, path: str) -> bool:
        try:
            if os.path.isdir(path):
                os.listdir(path)
            else:
                with open(path, "rb"):
                    pass
        except OSError:
            return False
        return True


def split_relative_path(path: str) -> List[str]:
    """Splits a condition path into components, dropping empty and "." parts."""
    return [part for part in path.replace("\\", "/").split("/") if part not in ("", ".")]


def find_entry(fs: FileSystem, directory: str, name: str) -> Optional[str]:
    """Finds a directory entry whose name equals `name` case-insensitively."""
    try:
        entries = fs.list_dir(directory)
    except OSError:
        return None

    folded = name.casefold()
    for entry in sorted(entries):
        if entry.casefold() == folded:
            return entry
    return None


def resolve_case_insensitive(fs: FileSystem, base: str, relative: str) -> Optional[str]:
    """
    Resolves a relative path under `base`, matching each component
    case-insensitively.

    Returns the path as it exists on disk, or None if nothing matches.
    """
    if fs.stat(base) is None:
        return None

    parts = split_relative_path(relative)
    exact = posixpath.join(base, *parts)
    if fs.stat(exact) is not None:
        return exact

    current = base
    for part in parts:
        if part == "..":
            current = posixpath.join(current, part)
            continue

        candidate = posixpath.join(current, part)
        if fs.stat(candidate) is not None:
            current = candidate
            continue

        entry = find_entry(fs, current, part)
        if entry is None:
            return None
        current = posixpath.join(current, entry)

    return current


def resolve_path(
    fs: FileSystem,
    game: GameType,
    data_paths: Sequence[str],
    relative: str,
) -> Optional[str]:
    """
    Resolves a condition path against the data paths in order.

    Plugins that are not found are looked up again with a ghost extension.
    """
    is_plugin = game.is_plugin_name(relative)
    for data_path in data_paths:
        resolved = resolve_case_insensitive(fs, data_path, relative)
        if resolved is not None:
            return resolved

        if is_plugin:
            resolved = resolve_case_insensitive(
                fs, data_path, relative + GHOST_EXTENSION
            )
            if resolved is not None:
                logger.debug(
                    "resolved_ghosted_plugin",
                    extra={"path": relative, "resolved": resolved},
                )
                return resolved

    return None


def list_directory(
    fs: FileSystem,
    data_paths: Sequence[str],
    relative: str,
) -> List[str]:
    """
    Lists the entry names of a directory under every data path.

    A directory that is missing or not a directory contributes nothing. A
    data path that exists but cannot be listed is an error; other listing
    failures contribute nothing.
    """
    names: List[str] = []
    is_root = not split_relative_path(relative)

    for data_path in data_paths:
        directory = resolve_case_insensitive(fs, data_path, relative)
        if directory is None:
            continue

        info = fs.stat(directory)
        if info is None or not info.is_dir:
            continue

        try:
            names.extend(fs.list_dir(directory))
        except OSError as error:
            if is_root:
                raise EvaluationError(
                    f'An error was encountered while accessing the path "{directory}": {error}',
                    path=directory,
                ) from error
            logger.debug(
                "directory_unlistable",
                extra={"path": directory, "error": str(error)},
            )

    return names


def read_file(fs: FileSystem, path: str, limit: Optional[int] = None) -> bytes:
    """Reads an existing file, raising EvaluationError if that fails."""
    try:
        return fs.read_bytes(path, limit)
    except OSError as error:
        raise EvaluationError(
            f'An error was encountered while reading the file "{path}": {error}',
            path=path,
        ) from error
