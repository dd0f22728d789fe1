"""
Session configuration.

A session can be described by a YAML or JSON document:

    game: SkyrimSE
    dataPath: /games/skyrim/Data
    activePlugins: [Skyrim.esm, Update.esm]
    pluginVersions: {Blank.esp: "1.0"}
    checksums: {Blank.esp: "DEADBEEF"}

Quote checksums in YAML: an unquoted all-digit value is read as decimal.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from loot_conditions.errors import InvalidArgumentError
from loot_conditions.games import GameType
from loot_conditions.parser import MAX_CRC

logger = logging.getLogger("loot_conditions.config")


class SessionConfig(BaseModel):
    """Configuration for creating a Session."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True, frozen=True)

    # Game id (0-8) or name, e.g. "SkyrimSE" or "skyrim_se"
    game: GameType

    data_path: str = Field(alias="dataPath")

    local_data_path: str | None = Field(default=None, alias="localDataPath")

    # Searched before data_path, in order
    additional_data_paths: list[str] = Field(
        default_factory=list, alias="additionalDataPaths"
    )

    active_plugins: list[str] = Field(default_factory=list, alias="activePlugins")

    plugin_versions: dict[str, str] = Field(
        default_factory=dict, alias="pluginVersions"
    )

    # CRC-32 values as hexadecimal strings or integers
    checksums: dict[str, int] = Field(default_factory=dict)

    @field_validator("game", mode="before")
    @classmethod
    def _coerce_game(cls, value: Any) -> Any:
        if isinstance(value, GameType):
            return value
        if isinstance(value, bool):
            raise ValueError("game must be a game id or name")
        if isinstance(value, int):
            try:
                return GameType(value)
            except ValueError:
                raise ValueError(f"unknown game id {value}") from None
        if isinstance(value, str):
            try:
                return GameType.from_name(value)
            except InvalidArgumentError as error:
                raise ValueError(error.message) from None
        return value

    @field_validator("checksums", mode="before")
    @classmethod
    def _coerce_checksums(cls, value: Any) -> Any:
        if not isinstance(value, dict):
            return value

        checksums: dict[str, int] = {}
        for name, crc in value.items():
            if isinstance(crc, bool):
                raise ValueError(f"checksum for {name} must be hexadecimal")
            if isinstance(crc, str):
                try:
                    crc = int(crc, 16)
                except ValueError:
                    raise ValueError(
                        f"checksum for {name} is not hexadecimal: {crc!r}"
                    ) from None
            if isinstance(crc, int) and not 0 <= crc <= MAX_CRC:
                raise ValueError(f"checksum for {name} does not fit in 32 bits")
            checksums[name] = crc
        return checksums


def parse_session_config(data: Any) -> SessionConfig:
    """Validates a mapping as a SessionConfig."""
    if isinstance(data, SessionConfig):
        return data
    if not isinstance(data, dict):
        raise InvalidArgumentError(
            f"Session configuration must be a mapping, got {type(data).__name__}"
        )
    try:
        return SessionConfig.model_validate(data)
    except ValidationError as error:
        raise InvalidArgumentError(f"Invalid session configuration: {error}") from error


def load_session_config(path: str | Path) -> SessionConfig:
    """
    Loads a session configuration from a .yaml, .yml or .json file.

    Raises:
        InvalidArgumentError: If the file type is unsupported or the content
            is not a valid configuration
        OSError: If the file cannot be read
    """
    path = Path(path)
    ext = path.suffix.lower()
    if ext not in (".yaml", ".yml", ".json"):
        raise InvalidArgumentError(f"Unsupported configuration file type: {path.name}")

    content = path.read_text(encoding="utf-8")
    try:
        if ext == ".json":
            data = json.loads(content)
        else:
            data = yaml.safe_load(content)
    except (json.JSONDecodeError, yaml.YAMLError) as error:
        raise InvalidArgumentError(
            f"Failed to parse configuration file {path}: {error}"
        ) from error

    config = parse_session_config(data)
    logger.debug(
        "session_config_loaded",
        extra={"config_path": str(path), "game": config.game.name},
    )
    return config
