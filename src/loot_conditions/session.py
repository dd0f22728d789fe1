"""
Interpreter session.

A Session owns one game state, its condition cache and its error record.
Conditions are parsed, evaluated against a snapshot of the state and their
results cached by exact text until the state next changes.
"""

import logging
from typing import Any, Iterable, Mapping, Optional, Tuple, Union

from .ast import AstNode
from .cache import CacheInfo
from .config import SessionConfig, parse_session_config
from .errors import ConditionError, EvaluationError, ParseError
from .evaluator import EvaluationContext, Evaluator
from .filesystem import FileSystem
from .games import GameType
from .parser import decode_condition, parse
from .state import GameState

logger = logging.getLogger("loot_conditions.session")

Condition = Union[str, bytes]


def _pairs(entries: Union[Mapping[str, Any], Iterable[Tuple[str, Any]]]):
    if isinstance(entries, Mapping):
        return list(entries.items())
    return list(entries)


class Session:
    """Condition interpreter bound to one game installation."""

    def __init__(
        self,
        game: Union[GameType, int],
        data_path: str,
        local_data_path: Optional[str] = None,
        fs: Optional[FileSystem] = None,
    ):
        if not isinstance(game, GameType):
            game = GameType.from_id(game)

        self._state = GameState(game, data_path, local_data_path, fs)
        self._last_error: Optional[str] = None

        logger.info(
            "session_created",
            extra={"game": game.name, "data_path": self._state.data_path},
        )

    @classmethod
    def from_config(
        cls,
        config: Union[SessionConfig, Mapping[str, Any]],
        fs: Optional[FileSystem] = None,
    ) -> "Session":
        """Creates a session populated from a configuration."""
        if not isinstance(config, SessionConfig):
            config = parse_session_config(dict(config))

        session = cls(config.game, config.data_path, config.local_data_path, fs)
        if config.additional_data_paths:
            session.set_additional_data_paths(config.additional_data_paths)
        if config.active_plugins:
            session.set_active_plugins(config.active_plugins)
        if config.plugin_versions:
            session.set_plugin_versions(config.plugin_versions)
        if config.checksums:
            session.set_crc_cache(config.checksums)
        return session

    @property
    def game(self) -> GameType:
        return self._state.game

    @property
    def data_path(self) -> str:
        return self._state.data_path

    @property
    def local_data_path(self) -> Optional[str]:
        return self._state.local_data_path

    @property
    def state(self) -> GameState:
        return self._state

    def last_error(self) -> Optional[str]:
        """Returns the message of this session's most recent failure."""
        return self._last_error

    def _fail(self, error: ConditionError) -> None:
        self._last_error = str(error)

    # ============================================================
    # Conditions
    # ============================================================

    def parse(self, condition: Condition) -> AstNode:
        """Parses a condition without evaluating it."""
        try:
            return parse(condition)
        except ParseError as error:
            self._fail(error)
            raise

    def evaluate(self, condition: Condition) -> bool:
        """
        Evaluates a condition, using the cached result when there is one.

        Raises:
            ParseError: If the condition is malformed
            EvaluationError: If the environment prevents an answer
        """
        try:
            text = decode_condition(condition)
        except ParseError as error:
            self._fail(error)
            raise

        cached = self._state.condition_cache.get(text)
        if cached is not None:
            return cached

        ast = self.parse(text)
        snapshot = self._state.snapshot()
        context = EvaluationContext(snapshot=snapshot, source=text)

        try:
            result = Evaluator(context).evaluate(ast)
        except EvaluationError as error:
            self._fail(error)
            raise

        self._state.store_computed_crcs(context.computed_crcs, snapshot.generation)
        self._state.store_result(text, result, snapshot.generation)
        return result

    def cache_info(self) -> CacheInfo:
        return self._state.condition_cache.info()

    # ============================================================
    # State
    # ============================================================

    def set_active_plugins(self, names: Iterable[str]) -> None:
        """Replaces the set of active plugins."""
        try:
            self._state.set_active_plugins(names)
        except ConditionError as error:
            self._fail(error)
            raise

    def set_plugin_versions(
        self, versions: Union[Mapping[str, str], Iterable[Tuple[str, str]]]
    ) -> None:
        """Replaces the plugin version overrides."""
        try:
            self._state.set_plugin_versions(_pairs(versions))
        except ConditionError as error:
            self._fail(error)
            raise

    def set_crc_cache(
        self, checksums: Union[Mapping[str, Any], Iterable[Tuple[str, Any]]]
    ) -> None:
        """Replaces the cached checksums, given as integers or hex strings."""
        try:
            self._state.set_crc_cache(_pairs(checksums))
        except ConditionError as error:
            self._fail(error)
            raise

    def set_additional_data_paths(self, paths: Iterable[str]) -> None:
        """Replaces the data paths searched before the main data path."""
        try:
            self._state.set_additional_data_paths(paths)
        except ConditionError as error:
            self._fail(error)
            raise

    def clear_condition_cache(self) -> None:
        self._state.clear_condition_cache()
