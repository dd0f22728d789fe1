"""
Shared fixtures for condition interpreter tests.

MemoryFileSystem is an in-memory, case-sensitive FileSystem so evaluator
logic can be tested without touching the disk.
"""

import posixpath
import struct
from typing import Dict, List, Optional, Set

import pytest

from loot_conditions import FileKind, FileStat, GameType, Session


class MemoryFileSystem:
    """In-memory FileSystem with injectable listing and read failures."""

    def __init__(self):
        self.files: Dict[str, bytes] = {}
        self.dirs: Set[str] = {"/"}
        self.unlistable: Set[str] = set()
        self.unreadable: Set[str] = set()
        self.reads: List[str] = []

    @staticmethod
    def _norm(path: str) -> str:
        return posixpath.normpath(path)

    def add_dir(self, path: str) -> None:
        path = self._norm(path)
        while path not in self.dirs:
            self.dirs.add(path)
            path = posixpath.dirname(path)

    def add_file(self, path: str, data: bytes = b"") -> None:
        path = self._norm(path)
        self.add_dir(posixpath.dirname(path))
        self.files[path] = data

    def list_dir(self, path: str) -> List[str]:
        path = self._norm(path)
        if path in self.unlistable:
            raise PermissionError(f"Permission denied: '{path}'")
        if path in self.files:
            raise NotADirectoryError(f"Not a directory: '{path}'")
        if path not in self.dirs:
            raise FileNotFoundError(f"No such file or directory: '{path}'")

        children = set()
        for entry in list(self.files) + list(self.dirs):
            if entry != path and posixpath.dirname(entry) == path:
                children.add(posixpath.basename(entry))
        return sorted(children)

    def stat(self, path: str) -> Optional[FileStat]:
        path = self._norm(path)
        if path in self.files:
            return FileStat(FileKind.FILE, len(self.files[path]))
        if path in self.dirs:
            return FileStat(FileKind.DIRECTORY, 0)
        return None

    def read_bytes(self, path: str, limit: Optional[int] = None) -> bytes:
        path = self._norm(path)
        if path in self.unreadable:
            raise PermissionError(f"Permission denied: '{path}'")
        if path not in self.files:
            raise FileNotFoundError(f"No such file or directory: '{path}'")
        self.reads.append(path)
        data = self.files[path]
        return data if limit is None else data[:limit]

    def is_readable(self, path: str) -> bool:
        path = self._norm(path)
        if path in self.unreadable or path in self.unlistable:
            return False
        return path in self.files or path in self.dirs


def build_plugin(
    description: Optional[str] = None,
    master: bool = False,
    header_size: int = 24,
) -> bytes:
    """Builds a minimal TES4-style plugin containing only its header record."""
    hedr = struct.pack("<fII", 1.7, 0, 0x800)
    subrecords = b"HEDR" + struct.pack("<H", len(hedr)) + hedr
    author = b"Tester\0"
    subrecords += b"CNAM" + struct.pack("<H", len(author)) + author
    if description is not None:
        snam = description.encode("cp1252") + b"\0"
        subrecords += b"SNAM" + struct.pack("<H", len(snam)) + snam

    flags = 0x1 if master else 0
    header = b"TES4" + struct.pack("<II", len(subrecords), flags)
    header += b"\0" * (header_size - len(header))
    return header + subrecords


def build_morrowind_plugin(description: str = "", master: bool = False) -> bytes:
    """Builds a minimal TES3 plugin containing only its header record."""
    hedr = struct.pack("<fI", 1.3, 1 if master else 0)
    hedr += b"Tester".ljust(32, b"\0")
    hedr += description.encode("cp1252").ljust(256, b"\0")
    hedr += struct.pack("<I", 0)
    subrecords = b"HEDR" + struct.pack("<I", len(hedr)) + hedr
    return b"TES3" + struct.pack("<III", len(subrecords), 0, 0) + subrecords


@pytest.fixture
def fs() -> MemoryFileSystem:
    memory = MemoryFileSystem()
    memory.add_dir("/data")
    return memory


@pytest.fixture
def plugin_bytes():
    return build_plugin


@pytest.fixture
def morrowind_plugin_bytes():
    return build_morrowind_plugin


@pytest.fixture
def session(fs: MemoryFileSystem) -> Session:
    return Session(GameType.SKYRIM_SE, "/data", fs=fs)
