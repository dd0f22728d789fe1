"""
Tests for the status-code host boundary.
"""

import threading
import zlib

import pytest

from loot_conditions import interface
from loot_conditions.interface import (
    ERROR_INVALID_ARGS,
    ERROR_IO_ERROR,
    ERROR_PANICKED,
    ERROR_PARSING_ERROR,
    GAME_TES3,
    GAME_TES5SE,
    OK,
    RESULT_FALSE,
    RESULT_TRUE,
)


@pytest.fixture
def handle(fs):
    status, handle = interface.create_session(GAME_TES5SE, "/data", fs=fs)
    assert status == OK
    yield handle
    interface.destroy_session(handle)


def cache_size(handle) -> int:
    return interface._sessions[handle].cache_info().size


class TestSessions:
    """Tests for session creation and destruction."""

    def test_creates_distinct_handles(self, fs):
        first = interface.create_session(GAME_TES5SE, "/data", fs=fs)
        second = interface.create_session(GAME_TES3, b"/data", "/local", fs=fs)
        try:
            assert first[0] == OK and second[0] == OK
            assert first[1] != second[1]
        finally:
            interface.destroy_session(first[1])
            interface.destroy_session(second[1])

    @pytest.mark.parametrize("game_id", [-1, 9, 42, "2", None, True])
    def test_rejects_invalid_game(self, fs, game_id):
        status, handle = interface.create_session(game_id, "/data", fs=fs)
        assert status == ERROR_INVALID_ARGS
        assert handle is None

    def test_rejects_null_data_path(self, fs):
        status, handle = interface.create_session(GAME_TES5SE, None, fs=fs)
        assert status == ERROR_INVALID_ARGS
        assert handle is None
        assert "data_path" in interface.last_error_message()

    def test_rejects_non_utf8_data_path(self, fs):
        status, _ = interface.create_session(GAME_TES5SE, b"/d\xffta", fs=fs)
        assert status == ERROR_INVALID_ARGS

    def test_destroyed_handle_is_rejected(self, fs):
        _, handle = interface.create_session(GAME_TES5SE, "/data", fs=fs)
        assert interface.destroy_session(handle) == OK

        assert interface.destroy_session(handle) == ERROR_INVALID_ARGS
        assert interface.evaluate('file("Blank.esm")', handle) == ERROR_INVALID_ARGS
        assert interface.clear_condition_cache(handle) == ERROR_INVALID_ARGS

    @pytest.mark.parametrize("bad_handle", [None, 0, 10**9, "1", True])
    def test_unknown_handle_is_rejected(self, bad_handle):
        assert interface.evaluate('file("Blank.esm")', bad_handle) == ERROR_INVALID_ARGS
        assert "Invalid session handle" in interface.last_error_message()


class TestConditions:
    """Tests for parse and evaluate."""

    def test_parse_valid_condition(self):
        assert interface.parse('file("Blank.esm") or active("Blank.esm")') == OK

    def test_parse_unterminated_string(self):
        assert interface.parse('file("Blank.') == ERROR_PARSING_ERROR
        assert "unterminated string" in interface.last_error_message()

    def test_parse_null_condition(self):
        assert interface.parse(None) == ERROR_INVALID_ARGS

    def test_parse_non_utf8_condition(self):
        assert interface.parse(b'file("\xff")') == ERROR_PARSING_ERROR
        assert "UTF-8" in interface.last_error_message()

    def test_scenario_file_exists(self, fs, handle):
        fs.add_file("/data/Blank.esm")
        assert interface.evaluate('file("Blank.esm")', handle) == RESULT_TRUE
        assert interface.evaluate('file("missing.esm")', handle) == RESULT_FALSE

    def test_evaluate_accepts_bytes(self, fs, handle):
        fs.add_file("/data/Blank.esm")
        assert interface.evaluate(b'file("Blank.esm")', handle) == RESULT_TRUE

    def test_evaluate_parse_error(self, handle):
        assert interface.evaluate('file("Blank.esm") and', handle) == ERROR_PARSING_ERROR
        assert cache_size(handle) == 0

    def test_evaluate_io_error(self, fs, handle):
        fs.unlistable.add("/data")
        assert interface.evaluate('many("Blank.*")', handle) == ERROR_IO_ERROR
        assert "/data" in interface.last_error_message()
        assert cache_size(handle) == 0

    def test_unexpected_failure_is_reported_as_panic(self, fs, handle, monkeypatch):
        def broken_stat(path):
            raise RuntimeError("disk on fire")

        monkeypatch.setattr(fs, "stat", broken_stat)
        assert interface.evaluate('file("Blank.esm")', handle) == ERROR_PANICKED
        assert "disk on fire" in interface.last_error_message()


class TestState:
    """Tests for state mutations through the boundary."""

    def test_scenario_active_plugins(self, handle):
        assert interface.set_active_plugins(handle, ["Blank.esm"], 1) == OK
        assert interface.evaluate('active("Blank.esm")', handle) == RESULT_TRUE

        assert interface.set_active_plugins(handle, None, 0) == OK
        assert interface.evaluate('active("Blank.esm")', handle) == RESULT_FALSE

    def test_scenario_checksum_cache(self, fs, handle):
        fs.add_file("/data/Blank.esm", b"not the cached contents")
        assert zlib.crc32(b"not the cached contents") != 0xDEADBEEF

        entries = [("Blank.esm", 0xDEADBEEF)]
        assert interface.set_checksum_cache(handle, entries, 1) == OK
        assert interface.evaluate('checksum("Blank.esm", DEADBEEF)', handle) == RESULT_TRUE

        assert interface.set_checksum_cache(handle, None, 0) == OK
        assert interface.evaluate('checksum("Blank.esm", DEADBEEF)', handle) == RESULT_FALSE

    def test_plugin_versions(self, handle):
        assert interface.set_plugin_versions(handle, [("Blank.esp", "2.0")], 1) == OK
        assert interface.evaluate('version("Blank.esp", "1.0", >)', handle) == RESULT_TRUE

    def test_additional_data_paths(self, fs, handle):
        fs.add_file("/extra/Mod.esp")
        assert interface.set_additional_data_paths(handle, ["/extra"], 1) == OK
        assert interface.evaluate('file("Mod.esp")', handle) == RESULT_TRUE

    def test_clear_condition_cache(self, handle):
        interface.evaluate('file("Blank.esm")', handle)
        assert cache_size(handle) == 1
        assert interface.clear_condition_cache(handle) == OK
        assert cache_size(handle) == 0

    @pytest.mark.parametrize(
        "plugins,count,message",
        [
            (["Other.esp"], 0, "Non-null plugin_names pointer passed but num_plugins is zero"),
            (None, 1, "Null plugin_names pointer passed but num_plugins is non-zero"),
            (["Other.esp", "Another.esp"], 1, "num_plugins is 1 but 2"),
            (["Other.esp"], -1, "non-negative"),
            (["Other.esp", None], 2, "Null plugin name"),
            ("Other.esp", 1, "must be a collection"),
        ],
    )
    def test_invalid_collection_leaves_state_unchanged(self, handle, plugins, count, message):
        interface.set_active_plugins(handle, ["Blank.esm"], 1)
        assert interface.evaluate('active("Blank.esm")', handle) == RESULT_TRUE
        generation = interface._sessions[handle].state.generation

        assert interface.set_active_plugins(handle, plugins, count) == ERROR_INVALID_ARGS
        assert message in interface.last_error_message()

        assert interface._sessions[handle].state.generation == generation
        assert cache_size(handle) == 1
        assert interface.evaluate('active("Blank.esm")', handle) == RESULT_TRUE

    def test_rejects_malformed_checksum_entries(self, handle):
        assert interface.set_checksum_cache(handle, [("Blank.esm",)], 1) == ERROR_INVALID_ARGS
        assert interface.set_checksum_cache(handle, [("Blank.esm", "zz")], 1) == ERROR_INVALID_ARGS
        assert interface.set_checksum_cache(handle, None, 2) == ERROR_INVALID_ARGS

    def test_rejects_malformed_version_entries(self, handle):
        assert interface.set_plugin_versions(handle, [("Blank.esp", None)], 1) == ERROR_INVALID_ARGS
        assert interface.set_plugin_versions(handle, None, 0) == OK
        assert interface.set_plugin_versions(handle, [], 0) == ERROR_INVALID_ARGS
        assert interface.set_plugin_versions(handle, [("Blank.esp", "1")], 0) == ERROR_INVALID_ARGS


class TestLastErrorMessage:
    """Tests for per-thread error messages."""

    def test_message_is_per_thread(self, handle):
        assert interface.evaluate('unknown("x")', handle) == ERROR_PARSING_ERROR
        assert "unknown function" in interface.last_error_message()

        seen = []
        thread = threading.Thread(target=lambda: seen.append(interface.last_error_message()))
        thread.start()
        thread.join()
        assert seen == [None]

    def test_session_keeps_its_own_error(self, handle):
        interface.evaluate('unknown("x")', handle)
        assert "unknown function" in interface._sessions[handle].last_error()
