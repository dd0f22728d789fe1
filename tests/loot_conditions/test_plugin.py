"""
Tests for plugin header parsing, executable versions and game traits.
"""

import struct
from types import SimpleNamespace

import pefile
import pytest

from loot_conditions import GameType, InvalidArgumentError
from loot_conditions.pe import (
    _fixed_file_version,
    _string_product_version,
    parse_executable_versions,
    read_executable_versions,
)
from loot_conditions.plugin import (
    PluginHeader,
    PluginHeaderError,
    extract_version,
    is_master_file,
    parse_plugin_header,
    read_plugin_header,
)


class TestParsePluginHeader:
    """Tests for reading the first record of a plugin."""

    def test_reads_description_and_flag(self, plugin_bytes):
        header = parse_plugin_header(plugin_bytes("A description", master=True), GameType.SKYRIM)
        assert header == PluginHeader(master_flag=True, description="A description")

    def test_plugin_without_description(self, plugin_bytes):
        header = parse_plugin_header(plugin_bytes(), GameType.FALLOUT4)
        assert header.description is None
        assert header.master_flag is False

    def test_oblivion_header_size(self, plugin_bytes):
        data = plugin_bytes("Oblivion plugin", header_size=20)
        assert parse_plugin_header(data, GameType.OBLIVION).description == "Oblivion plugin"

    def test_decodes_windows_1252(self, plugin_bytes):
        header = parse_plugin_header(plugin_bytes("Café – v2"), GameType.SKYRIM)
        assert header.description == "Café – v2"

    def test_morrowind_header(self, morrowind_plugin_bytes):
        header = parse_plugin_header(
            morrowind_plugin_bytes("Tribunal fixes"), GameType.MORROWIND
        )
        assert header.description == "Tribunal fixes"

    def test_oversized_subrecord(self):
        description = b"Long description\0"
        subrecords = b"XXXX" + struct.pack("<HI", 4, len(description))
        subrecords += b"SNAM" + struct.pack("<H", 0) + description
        data = b"TES4" + struct.pack("<II", len(subrecords), 0) + b"\0" * 12 + subrecords
        assert parse_plugin_header(data, GameType.SKYRIM).description == "Long description"

    @pytest.mark.parametrize("data", [b"", b"TES4", b"TES3" + b"\0" * 30, b"x" * 64])
    def test_rejects_invalid_header(self, data):
        with pytest.raises(PluginHeaderError):
            parse_plugin_header(data, GameType.SKYRIM)

    def test_rejects_wrong_format_for_game(self, plugin_bytes):
        with pytest.raises(PluginHeaderError):
            parse_plugin_header(plugin_bytes("desc"), GameType.MORROWIND)

    def test_read_plugin_header_of_truncated_file(self, fs):
        fs.add_file("/data/Blank.esp", b"TES4")
        assert read_plugin_header(fs, "/data/Blank.esp", GameType.SKYRIM) is None

    def test_read_plugin_header_reads_only_header(self, fs, plugin_bytes):
        fs.add_file("/data/Blank.esp", plugin_bytes("desc") + b"GRUP" * 1000)
        header = read_plugin_header(fs, "/data/Blank.esp", GameType.SKYRIM)
        assert header.description == "desc"


class TestIsMasterFile:
    @pytest.mark.parametrize(
        "name,game,flag,expected",
        [
            ("Blank.esp", GameType.SKYRIM, True, True),
            ("Blank.esm", GameType.SKYRIM, False, False),
            ("Blank.esm", GameType.SKYRIM_SE, False, True),
            ("Blank.esl", GameType.FALLOUT4, False, True),
            ("Blank.esm.ghost", GameType.FALLOUT4_VR, False, True),
            ("Blank.esp", GameType.FALLOUT4, False, False),
            ("Blank.esm", GameType.MORROWIND, False, True),
            ("Blank.esp", GameType.MORROWIND, True, False),
        ],
    )
    def test_is_master_file(self, name, game, flag, expected):
        header = PluginHeader(master_flag=flag, description=None)
        assert is_master_file(header, name, game) is expected


class TestExtractVersion:
    @pytest.mark.parametrize(
        "description,expected",
        [
            ("Version: 1.2.3", "1.2.3"),
            ("A mod. version 2.0b", "2.0b"),
            ("Rev 14", "14"),
            ("Updated to v1.5 with fixes", "1.5"),
            ("Compatible with 2.0.1 and later.", "2.0.1"),
            ("Version 3.1.", "3.1"),
            ("No version here", None),
            ("", None),
            (None, None),
        ],
    )
    def test_extract_version(self, description, expected):
        assert extract_version(description) == expected


class TestExecutableVersions:
    """Tests for version resources, using stand-ins for parsed PE objects."""

    def test_fixed_file_version(self):
        info = SimpleNamespace(FileVersionMS=(1 << 16) | 9, FileVersionLS=(32 << 16) | 0)
        pe = SimpleNamespace(VS_FIXEDFILEINFO=[info])
        assert _fixed_file_version(pe) == "1.9.32.0"

    def test_missing_fixed_file_version(self):
        assert _fixed_file_version(SimpleNamespace()) is None

    def test_string_product_version(self):
        table = SimpleNamespace(entries={b"ProductVersion": b" 1.9.32 ", b"FileVersion": b"1"})
        var_info = SimpleNamespace(Key=b"VarFileInfo")
        string_info = SimpleNamespace(Key=b"StringFileInfo", StringTable=[table])
        pe = SimpleNamespace(FileInfo=[[var_info, string_info]])
        assert _string_product_version(pe) == "1.9.32"

    def test_uses_first_table_with_product_version(self):
        first = SimpleNamespace(entries={b"FileVersion": b"1"})
        second = SimpleNamespace(entries={b"ProductVersion": b"2.0"})
        string_info = SimpleNamespace(Key=b"StringFileInfo", StringTable=[first, second])
        pe = SimpleNamespace(FileInfo=[[string_info]])
        assert _string_product_version(pe) == "2.0"

    def test_missing_string_product_version(self):
        assert _string_product_version(SimpleNamespace(FileInfo=None)) is None

    def test_rejects_non_executable(self):
        with pytest.raises(pefile.PEFormatError):
            parse_executable_versions(b"plain text, not an executable")

    def test_read_non_executable_returns_none(self, fs):
        fs.add_file("/data/readme.exe", b"plain text")
        assert read_executable_versions(fs, "/data/readme.exe") is None


class TestGameType:
    def test_from_id(self):
        assert GameType.from_id(0) == GameType.OBLIVION
        assert GameType.from_id(8) == GameType.MORROWIND

    def test_from_unknown_id(self):
        with pytest.raises(InvalidArgumentError, match="Unknown game id: 9"):
            GameType.from_id(9)

    def test_from_unknown_name(self):
        with pytest.raises(InvalidArgumentError, match="Unknown game"):
            GameType.from_name("Starfield")

    def test_plugin_names(self):
        assert GameType.SKYRIM_SE.is_plugin_name("Blank.ESL")
        assert not GameType.SKYRIM.is_plugin_name("Blank.esl")
        assert not GameType.SKYRIM.is_plugin_name("Blank.esp.ghost")
        assert GameType.SKYRIM.is_ghosted_plugin_name("Blank.esp.GHOST")

    def test_normalise_file_name(self):
        assert GameType.FALLOUT3.normalise_file_name("Blank.esm.ghost") == "Blank.esm"
        assert GameType.FALLOUT3.normalise_file_name("readme.txt.ghost") == "readme.txt.ghost"
