"""
Game state shared by evaluations.

The state holds the facts conditions are evaluated against. Readers take
immutable snapshots under a shared lock; mutators replace whole collections
under an exclusive lock, bump the generation and clear the condition cache
before releasing it. Results computed from a snapshot are written back only
while the generation still matches.
"""

import logging
import os
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, Mapping, Optional, Tuple

from .cache import ConditionCache
from .errors import InvalidArgumentError
from .filesystem import FileSystem, LocalFileSystem
from .games import GameType
from .parser import MAX_CRC

logger = logging.getLogger("loot_conditions.state")


def name_key(name: str) -> str:
    """Case-insensitive lookup key for a plugin or file name."""
    return name.casefold()


class ReadWriteLock:
    """
    Reader-writer lock that lets any number of readers in at once.

    Waiting writers block new readers so that mutations are not starved.
    """

    def __init__(self):
        self._condition = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._waiting_writers = 0

    def acquire_read(self) -> None:
        with self._condition:
            while self._writer or self._waiting_writers:
                self._condition.wait()
            self._readers += 1

    def release_read(self) -> None:
        with self._condition:
            self._readers -= 1
            if self._readers == 0:
                self._condition.notify_all()

    def acquire_write(self) -> None:
        with self._condition:
            self._waiting_writers += 1
            try:
                while self._writer or self._readers:
                    self._condition.wait()
            finally:
                self._waiting_writers -= 1
            self._writer = True

    def release_write(self) -> None:
        with self._condition:
            self._writer = False
            self._condition.notify_all()

    @contextmanager
    def read(self) -> Iterator[None]:
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write(self) -> Iterator[None]:
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()


@dataclass(frozen=True)
class StateSnapshot:
    """Immutable view of the game state at one generation."""

    game: GameType
    data_path: str
    local_data_path: Optional[str]
    additional_data_paths: Tuple[str, ...]
    active_plugins: Tuple[str, ...]
    active_plugin_keys: frozenset
    plugin_versions: Mapping[str, str]
    crc_cache: Mapping[str, int]
    computed_crcs: Mapping[str, int]
    generation: int
    fs: FileSystem

    @property
    def data_paths(self) -> Tuple[str, ...]:
        """Directories searched for files, highest priority first."""
        return self.additional_data_paths + (self.data_path,)


def _require_str(value: object, what: str) -> str:
    if isinstance(value, os.PathLike):
        value = os.fspath(value)
    if not isinstance(value, str):
        raise InvalidArgumentError(f"{what} must be a string, got {type(value).__name__}")
    return value


def _unpack_pair(entry: object, what: str) -> Tuple[object, object]:
    if isinstance(entry, (str, bytes)):
        raise InvalidArgumentError(f"{what} must be a (name, value) pair")
    try:
        name, value = entry  # type: ignore[misc]
    except (TypeError, ValueError):
        raise InvalidArgumentError(f"{what} must be a (name, value) pair") from None
    return name, value


def _reject_bare_string(value: object, what: str) -> None:
    if isinstance(value, (str, bytes, os.PathLike)):
        raise InvalidArgumentError(f"{what} must be a collection, not a single value")


def _parse_crc(value: object, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise InvalidArgumentError(f"Checksum for {name} must be an integer")
    if isinstance(value, str):
        try:
            value = int(value, 16)
        except ValueError:
            raise InvalidArgumentError(
                f"Checksum for {name} is not hexadecimal: {value!r}"
            ) from None
    if not 0 <= value <= MAX_CRC:
        raise InvalidArgumentError(f"Checksum for {name} does not fit in 32 bits")
    return value


class GameState:
    """Mutable game facts, guarded by a reader-writer lock."""

    def __init__(
        self,
        game: GameType,
        data_path: str,
        local_data_path: Optional[str] = None,
        fs: Optional[FileSystem] = None,
    ):
        self.game = game
        self.data_path = _require_str(data_path, "Data path")
        self.local_data_path = (
            None
            if local_data_path is None
            else _require_str(local_data_path, "Local data path")
        )
        self.fs: FileSystem = fs if fs is not None else LocalFileSystem()
        self.condition_cache = ConditionCache()

        self._lock = ReadWriteLock()
        self._generation = 0
        self._additional_data_paths: Tuple[str, ...] = ()
        self._active_plugins: Tuple[str, ...] = ()
        self._active_plugin_keys: frozenset = frozenset()
        self._plugin_versions: Mapping[str, str] = MappingProxyType({})
        self._crc_cache: Mapping[str, int] = MappingProxyType({})
        self._computed_crcs: Dict[str, int] = {}

    @property
    def generation(self) -> int:
        with self._lock.read():
            return self._generation

    def snapshot(self) -> StateSnapshot:
        with self._lock.read():
            return StateSnapshot(
                game=self.game,
                data_path=self.data_path,
                local_data_path=self.local_data_path,
                additional_data_paths=self._additional_data_paths,
                active_plugins=self._active_plugins,
                active_plugin_keys=self._active_plugin_keys,
                plugin_versions=self._plugin_versions,
                crc_cache=self._crc_cache,
                computed_crcs=MappingProxyType(dict(self._computed_crcs)),
                generation=self._generation,
                fs=self.fs,
            )

    # ============================================================
    # Mutators
    # ============================================================

    def _invalidate(self) -> None:
        """Must be called while holding the write lock."""
        self._generation += 1
        self.condition_cache.clear()

    def set_active_plugins(self, names: Iterable[str]) -> None:
        _reject_bare_string(names, "Active plugins")
        unique: Dict[str, str] = {}
        for name in names:
            name = _require_str(name, "Plugin name")
            unique.setdefault(name_key(name), name)
        plugins = tuple(unique.values())
        keys = frozenset(unique)

        with self._lock.write():
            self._active_plugins = plugins
            self._active_plugin_keys = keys
            self._invalidate()

        logger.info("active_plugins_replaced", extra={"count": len(plugins)})

    def set_plugin_versions(self, versions: Iterable[Tuple[str, str]]) -> None:
        entries: Dict[str, str] = {}
        for entry in versions:
            name, version = _unpack_pair(entry, "Plugin version entry")
            entries[name_key(_require_str(name, "Plugin name"))] = _require_str(
                version, "Plugin version"
            )

        with self._lock.write():
            self._plugin_versions = MappingProxyType(entries)
            self._invalidate()

        logger.info("plugin_versions_replaced", extra={"count": len(entries)})

    def set_crc_cache(self, checksums: Iterable[Tuple[str, object]]) -> None:
        entries: Dict[str, int] = {}
        for entry in checksums:
            name, crc = _unpack_pair(entry, "Checksum entry")
            name = _require_str(name, "File name")
            entries[name_key(name)] = _parse_crc(crc, name)

        with self._lock.write():
            self._crc_cache = MappingProxyType(entries)
            self._computed_crcs = {}
            self._invalidate()

        logger.info("checksum_cache_replaced", extra={"count": len(entries)})

    def set_additional_data_paths(self, paths: Iterable[str]) -> None:
        _reject_bare_string(paths, "Additional data paths")
        data_paths = tuple(_require_str(path, "Data path") for path in paths)

        with self._lock.write():
            self._additional_data_paths = data_paths
            self._computed_crcs = {}
            self._invalidate()

        logger.info("additional_data_paths_replaced", extra={"count": len(data_paths)})

    def clear_condition_cache(self) -> None:
        with self._lock.write():
            self._computed_crcs = {}
            self._invalidate()

        logger.debug("condition_cache_cleared")

    # ============================================================
    # Write-back
    # ============================================================

    def store_result(self, condition: str, result: bool, generation: int) -> bool:
        """Caches a result computed from the snapshot of `generation`."""
        with self._lock.read():
            if self._generation != generation:
                logger.debug(
                    "condition_result_discarded",
                    extra={"condition": condition, "generation": generation},
                )
                return False
            self.condition_cache.put(condition, result)
            return True

    def store_computed_crcs(self, crcs: Mapping[str, int], generation: int) -> bool:
        """Memoises checksums computed from the snapshot of `generation`."""
        if not crcs:
            return True

        with self._lock.read():
            if self._generation != generation:
                return False
            # Readers may write back concurrently; dict.update is atomic.
            self._computed_crcs.update(crcs)
            return True
