"""
Unit tests for configuration loading and validation.

Tests strict YAML validation for history limits and tolerant environment
parsing for the usage logger.
"""

import os
import tempfile
from pathlib import Path

import pytest
import yaml

from llm_usage_guard.config.loader import (
    load_history_config,
    ChannelHistoryConfig,
    HistoryLimitConfig
)
from llm_usage_guard.config.settings import (
    parse_boolean_value,
    parse_positive_int,
    resolve_history_ceiling,
    resolve_log_path,
    resolve_logger_config,
    resolve_state_dir
)


class TestConfigLoading:
    """Test configuration loading and validation."""

    def setup_method(self):
        """Set up test environment."""
        self.temp_dir = tempfile.mkdtemp()

    def teardown_method(self):
        """Clean up test environment."""
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _write_config(self, config_data, filename: str = "config.yaml") -> str:
        """Write configuration data to temporary file."""
        config_path = os.path.join(self.temp_dir, filename)
        with open(config_path, 'w', encoding='utf-8') as f:
            yaml.dump(config_data, f)
        return config_path

    def test_valid_config_loads_correctly(self):
        """Test that a valid configuration loads correctly."""
        config_data = {
            "channels": {
                "Telegram": {
                    "history_limit": 40,
                    "dm_history_limit": 20,
                    "dms": {
                        "12345": 5,
                        "67890": {"history_limit": 8}
                    }
                },
                "slack": {
                    "history_limit": 50
                }
            }
        }

        config = load_history_config(self._write_config(config_data))

        telegram = config.get_channel_config("telegram")
        assert telegram.history_limit == 40
        assert telegram.dm_history_limit == 20
        assert telegram.dms == {"12345": 5, "67890": 8}

        slack = config.get_channel_config("SLACK")
        assert slack.history_limit == 50
        assert slack.dm_history_limit is None
        assert slack.dms == {}

    def test_numeric_peer_ids_become_strings(self):
        """Test unquoted numeric dm ids are looked up as strings."""
        config_path = os.path.join(self.temp_dir, "numeric.yaml")
        Path(config_path).write_text(
            "channels:\n  telegram:\n    dms:\n      12345: 3\n", encoding="utf-8"
        )
        config = load_history_config(config_path)
        assert config.get_channel_config("telegram").dms == {"12345": 3}

    def test_unconfigured_channel_is_none(self):
        config = load_history_config(self._write_config({"channels": {"slack": {}}}))
        assert config.get_channel_config("discord") is None
        assert config.get_channel_config("slack") == ChannelHistoryConfig()

    def test_missing_file_raises_error(self):
        """Test missing configuration file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError, match="History config file not found"):
            load_history_config(os.path.join(self.temp_dir, "nope.yaml"))

    def test_invalid_yaml_raises_error(self):
        """Test invalid YAML raises YAMLError."""
        config_path = os.path.join(self.temp_dir, "bad.yaml")
        Path(config_path).write_text("channels: [unclosed", encoding="utf-8")
        with pytest.raises(yaml.YAMLError, match="Invalid YAML"):
            load_history_config(config_path)

    def test_empty_config_raises_error(self):
        """Test empty configuration file raises ValueError."""
        config_path = os.path.join(self.temp_dir, "empty.yaml")
        Path(config_path).write_text("", encoding="utf-8")
        with pytest.raises(ValueError, match="Configuration file is empty"):
            load_history_config(config_path)

    def test_unknown_top_level_key_raises_error(self):
        """Test unknown top-level keys raise ValueError."""
        with pytest.raises(ValueError, match="Unknown configuration keys"):
            load_history_config(self._write_config({"channels": {}, "budget": {}}))

    def test_unknown_channel_key_raises_error(self):
        """Test typos in channel keys raise ValueError."""
        with pytest.raises(ValueError, match="Unknown keys in channels.slack"):
            load_history_config(self._write_config({"channels": {"slack": {"histroy_limit": 5}}}))

    def test_channel_must_be_dictionary(self):
        with pytest.raises(ValueError, match="Channel 'slack' must be a dictionary"):
            load_history_config(self._write_config({"channels": {"slack": 5}}))

    @pytest.mark.parametrize("value", [0, -3, "ten", 2.5, True])
    def test_invalid_limit_raises_error(self, value):
        """Test non-positive or non-integer limits raise ValueError."""
        with pytest.raises(ValueError, match="must be a positive integer"):
            load_history_config(self._write_config({"channels": {"slack": {"history_limit": value}}}))

    def test_invalid_dm_limit_raises_error(self):
        with pytest.raises(ValueError, match="channels.telegram.dms.42"):
            load_history_config(self._write_config({"channels": {"telegram": {"dms": {"42": 0}}}}))

    def test_dataclass_validation(self):
        """Test direct construction validates limits too."""
        with pytest.raises(ValueError, match="history_limit must be > 0"):
            ChannelHistoryConfig(history_limit=0)
        with pytest.raises(ValueError, match="dm_history_limit must be > 0"):
            ChannelHistoryConfig(dm_history_limit=-1)
        assert HistoryLimitConfig().channels == {}


class TestEnvironmentSettings:
    """Test environment resolution."""

    @pytest.mark.parametrize("raw,expected", [
        ("1", True), ("true", True), (" YES ", True), ("on", True),
        ("0", False), ("false", False), ("No", False), ("off", False),
        ("maybe", None), ("", None), (None, None),
    ])
    def test_parse_boolean_value(self, raw, expected):
        assert parse_boolean_value(raw) is expected

    @pytest.mark.parametrize("raw,expected", [
        ("30", 30), (" 7 ", 7), ("0", None), ("-1", None), ("x", None), ("", None), (None, None),
    ])
    def test_parse_positive_int(self, raw, expected):
        assert parse_positive_int(raw) == expected

    def test_logger_disabled_by_default(self):
        assert resolve_logger_config({}).enabled is False

    def test_logger_enabled(self):
        assert resolve_logger_config({"LLM_USAGE_DEBUG": "1"}).enabled is True

    def test_malformed_switch_is_disabled(self):
        assert resolve_logger_config({"LLM_USAGE_DEBUG": "please"}).enabled is False

    def test_default_log_path_under_state_dir(self):
        env = {"LLM_USAGE_STATE_DIR": "/tmp/state"}
        assert resolve_log_path(env) == Path("/tmp/state/logs/llm_usage.ndjson")

    def test_file_override_wins(self):
        env = {"LLM_USAGE_STATE_DIR": "/tmp/state", "LLM_USAGE_DEBUG_FILE": " /tmp/custom.ndjson "}
        assert resolve_log_path(env) == Path("/tmp/custom.ndjson")

    def test_default_state_dir_in_home(self):
        assert resolve_state_dir({}) == Path.home() / ".llm-usage-guard"

    def test_history_ceiling(self):
        assert resolve_history_ceiling({"LLM_MAX_HISTORY_TURNS": "30"}) == 30
        assert resolve_history_ceiling({}) is None
