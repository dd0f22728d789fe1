"""
Plugin header reader.

Reads the first record of a plugin file to find its master flag and
description. Only the header record is read; plugin contents are never
parsed.
"""

import logging
import re
import struct
from dataclasses import dataclass
from typing import Optional

from .filesystem import FileSystem, read_file
from .games import GameType

logger = logging.getLogger("loot_conditions.plugin")

MASTER_FLAG = 0x1

MORROWIND_HEADER_TYPE = b"TES3"
HEADER_TYPE = b"TES4"

# Morrowind's HEDR: version (4), flags (4), author (32), description (256).
MORROWIND_DESCRIPTION_OFFSET = 40
MORROWIND_DESCRIPTION_SIZE = 256

MAX_HEADER_RECORD_SIZE = 16 * 1024 * 1024

# Version strings commonly embedded in plugin descriptions, tried in order.
VERSION_PATTERNS = (
    re.compile(r"\bversion\s*[:.]?\s*v?(\d[0-9a-z.,+_-]*)", re.IGNORECASE),
    re.compile(r"\b(?:ver|rev)\s*[:.]?\s*(\d[0-9a-z.,+_-]*)", re.IGNORECASE),
    re.compile(r"\bv\.?\s*(\d+(?:[.,]\d+)+[a-z]?)\b", re.IGNORECASE),
    re.compile(r"(?<![\w.])(\d+(?:\.\d+)+[a-z]?)(?![\w.])", re.IGNORECASE),
)


class PluginHeaderError(ValueError):
    """Raised when bytes do not form a plugin header record."""


@dataclass(frozen=True)
class PluginHeader:
    master_flag: bool
    description: Optional[str]


def _decode(raw: bytes) -> str:
    return raw.split(b"\0", 1)[0].decode("cp1252", errors="replace")


def _parse_morrowind_header(data: bytes) -> PluginHeader:
    if len(data) < 16 or data[:4] != MORROWIND_HEADER_TYPE:
        raise PluginHeaderError("missing TES3 header record")

    size, _, flags = struct.unpack_from("<III", data, 4)
    end = min(len(data), 16 + size)
    offset = 16
    description = None

    while offset + 8 <= end:
        sub_type = data[offset : offset + 4]
        (sub_size,) = struct.unpack_from("<I", data, offset + 4)
        body = data[offset + 8 : offset + 8 + sub_size]
        if sub_type == b"HEDR":
            description = _decode(
                body[
                    MORROWIND_DESCRIPTION_OFFSET : MORROWIND_DESCRIPTION_OFFSET
                    + MORROWIND_DESCRIPTION_SIZE
                ]
            )
            break
        offset += 8 + sub_size

    return PluginHeader(master_flag=bool(flags & MASTER_FLAG), description=description)


def _parse_header(data: bytes, header_size: int) -> PluginHeader:
    if len(data) < header_size or data[:4] != HEADER_TYPE:
        raise PluginHeaderError("missing TES4 header record")

    size, flags = struct.unpack_from("<II", data, 4)
    end = min(len(data), header_size + size)
    offset = header_size
    description = None
    size_override = None

    while offset + 6 <= end:
        sub_type = data[offset : offset + 4]
        (sub_size,) = struct.unpack_from("<H", data, offset + 4)
        offset += 6

        # XXXX carries the real size of the following oversized subrecord.
        if sub_type == b"XXXX":
            (size_override,) = struct.unpack_from("<I", data, offset)
            offset += sub_size
            continue
        if size_override is not None:
            sub_size, size_override = size_override, None

        if sub_type == b"SNAM":
            description = _decode(data[offset : offset + sub_size])
            break
        offset += sub_size

    return PluginHeader(master_flag=bool(flags & MASTER_FLAG), description=description)


def parse_plugin_header(data: bytes, game: GameType) -> PluginHeader:
    """Parses the header record at the start of a plugin's bytes."""
    try:
        if game == GameType.MORROWIND:
            return _parse_morrowind_header(data)
        return _parse_header(data, game.record_header_size)
    except struct.error as error:
        raise PluginHeaderError(f"truncated header record: {error}") from error


def read_plugin_header(
    fs: FileSystem, path: str, game: GameType
) -> Optional[PluginHeader]:
    """
    Reads the header of the plugin at `path`.

    Returns None when the file is not a valid plugin. Raises EvaluationError
    if the file cannot be read.
    """
    header_size = game.record_header_size
    start = read_file(fs, path, header_size)
    if len(start) < header_size:
        logger.warning("plugin_header_unreadable", extra={"path": path})
        return None

    (record_size,) = struct.unpack_from("<I", start, 4)
    data = read_file(
        fs, path, header_size + min(record_size, MAX_HEADER_RECORD_SIZE)
    )

    try:
        return parse_plugin_header(data, game)
    except PluginHeaderError as error:
        logger.warning(
            "plugin_header_unreadable", extra={"path": path, "error": str(error)}
        )
        return None


def is_master_file(header: Optional[PluginHeader], name: str, game: GameType) -> bool:
    """
    Decides whether a plugin is a master.

    Morrowind goes by the .esm extension. Games with light plugins treat .esm
    and .esl files as masters regardless of the header flag.
    """
    lowered = game.normalise_file_name(name).lower()
    if game == GameType.MORROWIND:
        return lowered.endswith(".esm")
    if game.supports_light_plugins and lowered.endswith((".esm", ".esl")):
        return True
    return header is not None and header.master_flag


def extract_version(description: Optional[str]) -> Optional[str]:
    """Finds a version string in a plugin description."""
    if not description:
        return None

    for pattern in VERSION_PATTERNS:
        match = pattern.search(description)
        if match:
            return match.group(1).rstrip(".,_-")
    return None
