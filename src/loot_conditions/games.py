"""Supported game titles and the plugin-format traits that vary between them."""

from enum import Enum

from .errors import InvalidArgumentError

GHOST_EXTENSION = ".ghost"


class GameType(Enum):
    """Game titles, valued by their stable numeric id."""

    OBLIVION = 0
    SKYRIM = 1
    SKYRIM_SE = 2
    SKYRIM_VR = 3
    FALLOUT3 = 4
    FALLOUT_NV = 5
    FALLOUT4 = 6
    FALLOUT4_VR = 7
    MORROWIND = 8

    @classmethod
    def from_id(cls, game_id: int) -> "GameType":
        try:
            return cls(game_id)
        except ValueError:
            raise InvalidArgumentError(f"Unknown game id: {game_id}") from None

    @classmethod
    def from_name(cls, name: str) -> "GameType":
        """
        Looks up a game by name, ignoring case and separators, so that
        "SkyrimSE", "skyrim_se" and "Skyrim SE" are all accepted.
        """
        key = "".join(ch for ch in name.upper() if ch.isalnum())
        for member in cls:
            if member.name.replace("_", "") == key:
                return member
        raise InvalidArgumentError(f"Unknown game: {name}")

    @property
    def supports_light_plugins(self) -> bool:
        return self in (
            GameType.SKYRIM_SE,
            GameType.SKYRIM_VR,
            GameType.FALLOUT4,
            GameType.FALLOUT4_VR,
        )

    @property
    def plugin_extensions(self) -> tuple:
        if self.supports_light_plugins:
            return (".esp", ".esm", ".esl")
        return (".esp", ".esm")

    @property
    def record_header_size(self) -> int:
        """Size in bytes of the header of the plugin's first record."""
        if self == GameType.MORROWIND:
            return 16
        if self == GameType.OBLIVION:
            return 20
        return 24

    def is_plugin_name(self, name: str) -> bool:
        """True for unghosted plugin file names, compared case-insensitively."""
        return name.lower().endswith(self.plugin_extensions)

    def is_ghosted_plugin_name(self, name: str) -> bool:
        lowered = name.lower()
        if not lowered.endswith(GHOST_EXTENSION):
            return False
        return self.is_plugin_name(lowered[: -len(GHOST_EXTENSION)])

    def normalise_file_name(self, name: str) -> str:
        """Strips the ghost extension from ghosted plugin names."""
        if self.is_ghosted_plugin_name(name):
            return name[: -len(GHOST_EXTENSION)]
        return name
