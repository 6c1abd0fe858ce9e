"""Tests for gridcalc.yaml loading and logging configuration."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from gridcalc.config import CONFIG_FILENAME, DEFAULT_CONFIG, configure_logging, load_config
from gridcalc.logging.events import clear_log_dir, set_log_dir


@pytest.fixture(autouse=True)
def _reset_sink():
    clear_log_dir()
    yield
    clear_log_dir()


def _write_config(directory: Path, text: str) -> None:
    (directory / CONFIG_FILENAME).write_text(text)


class TestLoadConfig:
    def test_defaults_without_directory(self):
        assert load_config() == DEFAULT_CONFIG

    def test_defaults_when_file_missing(self, tmp_path):
        assert load_config(tmp_path) == DEFAULT_CONFIG

    def test_defaults_not_shared(self):
        config = load_config()
        config["default_rows"] = 99
        assert DEFAULT_CONFIG["default_rows"] == 20

    def test_file_overrides_defaults(self, tmp_path):
        _write_config(tmp_path, "default_rows: 5\nround_digits: 4\n")
        config = load_config(tmp_path)
        assert config["default_rows"] == 5
        assert config["round_digits"] == 4
        assert config["default_cols"] == 10

    def test_unknown_keys_kept(self, tmp_path):
        _write_config(tmp_path, "theme: dark\n")
        assert load_config(tmp_path)["theme"] == "dark"

    def test_empty_file(self, tmp_path):
        _write_config(tmp_path, "")
        assert load_config(tmp_path) == DEFAULT_CONFIG

    def test_non_mapping_rejected(self, tmp_path):
        _write_config(tmp_path, "- 1\n- 2\n")
        with pytest.raises(ValueError, match="mapping"):
            load_config(tmp_path)

    @pytest.mark.parametrize(
        "text,key",
        [
            ("default_rows: ten\n", "default_rows"),
            ("default_cols: 0\n", "default_cols"),
            ("round_digits: -1\n", "round_digits"),
            ("round_digits: true\n", "round_digits"),
            ("logging_enabled: maybe\n", "logging_enabled"),
        ],
    )
    def test_invalid_values_name_the_key(self, tmp_path, text, key):
        _write_config(tmp_path, text)
        with pytest.raises(ValueError, match=key):
            load_config(tmp_path)

    def test_malformed_yaml(self, tmp_path):
        _write_config(tmp_path, "default_rows: [1, 2\n")
        with pytest.raises(ValueError, match="not valid YAML"):
            load_config(tmp_path)

    def test_invalid_config_event(self, tmp_path):
        set_log_dir(tmp_path)
        _write_config(tmp_path, "default_cols: 0\n")
        with pytest.raises(ValueError):
            load_config(tmp_path)
        data = json.loads((tmp_path / "logs" / "events.ndjson").read_text())
        assert data["level"] == "error"
        assert data["error_code"] == "config_invalid"

    def test_config_loaded_event(self, tmp_path):
        set_log_dir(tmp_path)
        _write_config(tmp_path, "default_rows: 5\n")
        load_config(tmp_path)
        data = json.loads((tmp_path / "logs" / "events.ndjson").read_text())
        assert data["event_type"] == "config_loaded"
        assert data["context"]["keys"] == ["default_rows"]


class TestConfigureLogging:
    def test_enables_sink(self, tmp_path):
        from gridcalc.logging.events import EventType, emit_info

        configure_logging(tmp_path)
        emit_info(EventType.recalc_started, "hello")
        assert (tmp_path / "logs" / "events.ndjson").exists()

    def test_disabled_detaches_sink(self, tmp_path):
        from gridcalc.logging.events import EventType, emit_info

        set_log_dir(tmp_path / "other")
        _write_config(tmp_path, "logging_enabled: false\n")
        configure_logging(tmp_path)
        emit_info(EventType.recalc_started, "dropped")
        assert not (tmp_path / "logs").exists()
        previous = tmp_path / "other" / "logs" / "events.ndjson"
        assert "dropped" not in (previous.read_text() if previous.exists() else "")

    def test_tail_bytes_passed_to_sink(self, tmp_path):
        import gridcalc.logging.events as mod

        config = dict(DEFAULT_CONFIG, logging_tail_bytes=1024)
        configure_logging(tmp_path, config)
        assert mod._sink._tail_bytes == 1024
