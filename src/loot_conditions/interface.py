"""
Host boundary.

Plain functions over integer session handles that report outcomes as status
codes instead of raising. The message of the calling thread's most recent
failure is available from last_error_message().

Collections are passed together with their declared size. A None collection
with a non-zero size, a collection with a zero size, or a size that differs
from the collection's length is rejected before any state changes.
"""

import itertools
import logging
import threading
from functools import wraps
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar

from .errors import (
    ConditionError,
    EvaluationError,
    InvalidArgumentError,
    ParseError,
)
from .filesystem import FileSystem
from .games import GameType
from .parser import parse as parse_condition
from .session import Session

logger = logging.getLogger("loot_conditions.interface")

# Status codes
OK = 0
RESULT_FALSE = 0
RESULT_TRUE = 1
ERROR_INVALID_ARGS = -1
ERROR_PARSING_ERROR = -2
ERROR_PE_PARSING_ERROR = -3
ERROR_IO_ERROR = -4
ERROR_PANICKED = -5
ERROR_POISONED_THREAD_LOCK = -6
ERROR_TEXT_ENCODE_FAIL = -7

# Game ids
GAME_TES4 = GameType.OBLIVION.value
GAME_TES5 = GameType.SKYRIM.value
GAME_TES5SE = GameType.SKYRIM_SE.value
GAME_TES5VR = GameType.SKYRIM_VR.value
GAME_FO3 = GameType.FALLOUT3.value
GAME_FNV = GameType.FALLOUT_NV.value
GAME_FO4 = GameType.FALLOUT4.value
GAME_FO4VR = GameType.FALLOUT4_VR.value
GAME_TES3 = GameType.MORROWIND.value

_sessions: Dict[int, Session] = {}
_sessions_lock = threading.Lock()
_handles = itertools.count(1)

_thread_state = threading.local()

F = TypeVar("F", bound=Callable[..., int])


def last_error_message() -> Optional[str]:
    """Returns the calling thread's most recent failure message, if any."""
    return getattr(_thread_state, "message", None)


def _error(code: int, message: str) -> int:
    _thread_state.message = message
    return code


def _status_for(error: ConditionError) -> int:
    if isinstance(error, ParseError):
        return ERROR_PARSING_ERROR
    if isinstance(error, InvalidArgumentError):
        return ERROR_INVALID_ARGS
    if isinstance(error, EvaluationError):
        return ERROR_IO_ERROR
    return ERROR_PANICKED


def _handle_failure(name: str, error: Exception) -> int:
    if isinstance(error, ConditionError):
        return _error(_status_for(error), str(error))

    logger.error(
        "boundary_call_failed",
        extra={"function": name, "error": str(error)},
        exc_info=error,
    )
    return _error(ERROR_PANICKED, f"{name} failed unexpectedly: {error}")


def _boundary(fn: F) -> F:
    """Converts every failure of a boundary function into a status code."""

    @wraps(fn)
    def wrapper(*args: Any, **kwargs: Any) -> int:
        try:
            return fn(*args, **kwargs)
        except Exception as error:
            return _handle_failure(fn.__name__, error)

    return wrapper  # type: ignore[return-value]


def _text(value: Any, what: str) -> str:
    if value is None:
        raise InvalidArgumentError(f"Null {what} passed")
    if isinstance(value, bytes):
        try:
            return value.decode("utf-8")
        except UnicodeDecodeError:
            raise InvalidArgumentError(f"Non-UTF-8 {what} passed") from None
    if not isinstance(value, str):
        raise InvalidArgumentError(f"{what} must be a string")
    return value


def _condition(value: Any) -> Any:
    if value is None:
        raise InvalidArgumentError("Null condition passed")
    if not isinstance(value, (str, bytes)):
        raise InvalidArgumentError("condition must be a string")
    return value


def _collection(items: Any, count: Any, items_name: str, count_name: str) -> List[Any]:
    if isinstance(count, bool) or not isinstance(count, int) or count < 0:
        raise InvalidArgumentError(f"{count_name} must be a non-negative integer")

    if items is None:
        if count != 0:
            raise InvalidArgumentError(
                f"Null {items_name} pointer passed but {count_name} is non-zero"
            )
        return []
    if count == 0:
        raise InvalidArgumentError(
            f"Non-null {items_name} pointer passed but {count_name} is zero"
        )
    if isinstance(items, (str, bytes)):
        raise InvalidArgumentError(f"{items_name} must be a collection")

    entries = list(items)
    if count != len(entries):
        raise InvalidArgumentError(
            f"{count_name} is {count} but {len(entries)} {items_name} were passed"
        )
    return entries


def _pair(entry: Any, what: str) -> Tuple[Any, Any]:
    if not isinstance(entry, (tuple, list)) or len(entry) != 2:
        raise InvalidArgumentError(f"Each {what} entry must be a pair")
    return entry[0], entry[1]


def _session(handle: Any) -> Session:
    session = None
    if isinstance(handle, int) and not isinstance(handle, bool):
        with _sessions_lock:
            session = _sessions.get(handle)
    if session is None:
        raise InvalidArgumentError(f"Invalid session handle passed: {handle!r}")
    return session


# ============================================================
# Sessions
# ============================================================


def create_session(
    game_id: int,
    data_path: Any,
    local_data_path: Any = None,
    fs: Optional[FileSystem] = None,
) -> Tuple[int, Optional[int]]:
    """
    Creates a session.

    Returns:
        (status, handle); the handle is None unless status is OK
    """
    try:
        if isinstance(game_id, bool) or not isinstance(game_id, int):
            raise InvalidArgumentError("Invalid game specified")
        game = GameType.from_id(game_id)
        data_path = _text(data_path, "data_path")
        if local_data_path is not None:
            local_data_path = _text(local_data_path, "local_data_path")

        session = Session(game, data_path, local_data_path, fs)
    except Exception as error:
        return _handle_failure("create_session", error), None

    with _sessions_lock:
        handle = next(_handles)
        _sessions[handle] = session

    logger.debug("session_handle_created", extra={"handle": handle})
    return OK, handle


@_boundary
def destroy_session(handle: Any) -> int:
    """Destroys a session. Unknown and already destroyed handles are rejected."""
    session = None
    if isinstance(handle, int) and not isinstance(handle, bool):
        with _sessions_lock:
            session = _sessions.pop(handle, None)
    if session is None:
        raise InvalidArgumentError(f"Invalid session handle passed: {handle!r}")

    logger.debug("session_handle_destroyed", extra={"handle": handle})
    return OK


# ============================================================
# Conditions
# ============================================================


@_boundary
def parse(condition: Any) -> int:
    """Checks that a condition parses."""
    parse_condition(_condition(condition))
    return OK


@_boundary
def evaluate(condition: Any, handle: Any) -> int:
    """Evaluates a condition; returns RESULT_TRUE, RESULT_FALSE or an error."""
    condition = _condition(condition)
    session = _session(handle)
    return RESULT_TRUE if session.evaluate(condition) else RESULT_FALSE


# ============================================================
# State
# ============================================================


@_boundary
def set_active_plugins(handle: Any, plugin_names: Any, num_plugins: int) -> int:
    session = _session(handle)
    names = [
        _text(name, "plugin name")
        for name in _collection(plugin_names, num_plugins, "plugin_names", "num_plugins")
    ]
    session.set_active_plugins(names)
    return OK


@_boundary
def set_plugin_versions(handle: Any, plugin_versions: Any, num_plugins: int) -> int:
    """Replaces version overrides with (plugin name, version) pairs."""
    session = _session(handle)
    pairs = []
    for entry in _collection(plugin_versions, num_plugins, "plugin_versions", "num_plugins"):
        name, version = _pair(entry, "plugin_versions")
        pairs.append((_text(name, "plugin name"), _text(version, "version")))
    session.set_plugin_versions(pairs)
    return OK


@_boundary
def set_checksum_cache(handle: Any, entries: Any, num_entries: int) -> int:
    """Replaces cached checksums with (file name, CRC-32) pairs."""
    session = _session(handle)
    pairs = []
    for entry in _collection(entries, num_entries, "entries", "num_entries"):
        name, crc = _pair(entry, "entries")
        pairs.append((_text(name, "plugin name"), crc))
    session.set_crc_cache(pairs)
    return OK


@_boundary
def set_additional_data_paths(handle: Any, paths: Any, num_paths: int) -> int:
    session = _session(handle)
    data_paths = [
        _text(path, "data path")
        for path in _collection(paths, num_paths, "paths", "num_paths")
    ]
    session.set_additional_data_paths(data_paths)
    return OK


@_boundary
def clear_condition_cache(handle: Any) -> int:
    _session(handle).clear_condition_cache()
    return OK
