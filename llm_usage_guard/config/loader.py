"""
Configuration management and loading.

Loads per-channel history limits from YAML.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

import yaml


@dataclass(frozen=True)
class ChannelHistoryConfig:
    """History limits for one provider/channel."""
    history_limit: Optional[int] = None
    dm_history_limit: Optional[int] = None
    dms: Dict[str, int] = field(default_factory=dict)

    def __post_init__(self):
        """Validate limits are positive when set."""
        if self.history_limit is not None and self.history_limit <= 0:
            raise ValueError("history_limit must be > 0")
        if self.dm_history_limit is not None and self.dm_history_limit <= 0:
            raise ValueError("dm_history_limit must be > 0")
        for peer, limit in self.dms.items():
            if limit <= 0:
                raise ValueError(f"history limit for dm '{peer}' must be > 0")


@dataclass(frozen=True)
class HistoryLimitConfig:
    """History limits keyed by lowercase provider id."""
    channels: Dict[str, ChannelHistoryConfig] = field(default_factory=dict)

    def get_channel_config(self, provider: str) -> Optional[ChannelHistoryConfig]:
        """Get configuration for a provider, or None when not configured."""
        return self.channels.get(provider.lower())


def load_history_config(path: str) -> HistoryLimitConfig:
    """Load and validate history limit configuration from a YAML file.

    Strict validation ensures a typo never silently disables a limit and
    lets history grow unbounded.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated HistoryLimitConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"History config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if not raw_config:
        raise ValueError("Configuration file is empty")
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration root must be a dictionary")

    allowed_top_keys = {'channels'}
    unknown_keys = set(raw_config.keys()) - allowed_top_keys
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    channels_data = raw_config.get('channels') or {}
    if not isinstance(channels_data, dict):
        raise ValueError("'channels' must be a dictionary")

    channels = {}
    for provider, channel_data in channels_data.items():
        if not isinstance(channel_data, dict):
            raise ValueError(f"Channel '{provider}' must be a dictionary")
        key = str(provider).lower()
        channels[key] = _parse_channel_config(channel_data, f"channels.{provider}")

    return HistoryLimitConfig(channels=channels)


def _parse_channel_config(data: Dict, path: str) -> ChannelHistoryConfig:
    """Parse and validate one channel's history limits.

    Args:
        data: Channel configuration data
        path: Path for error messages

    Returns:
        Validated ChannelHistoryConfig

    Raises:
        ValueError: If configuration is invalid
    """
    allowed_keys = {'history_limit', 'dm_history_limit', 'dms'}
    unknown_keys = set(data.keys()) - allowed_keys
    if unknown_keys:
        raise ValueError(f"Unknown keys in {path}: {unknown_keys}")

    history_limit = _parse_limit(data.get('history_limit'), f"{path}.history_limit")
    dm_history_limit = _parse_limit(data.get('dm_history_limit'), f"{path}.dm_history_limit")

    dms_data = data.get('dms') or {}
    if not isinstance(dms_data, dict):
        raise ValueError(f"'dms' in {path} must be a dictionary")

    dms = {}
    for peer, entry in dms_data.items():
        # Both `peer: 5` and `peer: {history_limit: 5}` are accepted
        if isinstance(entry, dict):
            unknown_dm_keys = set(entry.keys()) - {'history_limit'}
            if unknown_dm_keys:
                raise ValueError(f"Unknown keys in {path}.dms.{peer}: {unknown_dm_keys}")
            entry = entry.get('history_limit')
        limit = _parse_limit(entry, f"{path}.dms.{peer}")
        if limit is not None:
            dms[str(peer)] = limit

    return ChannelHistoryConfig(
        history_limit=history_limit,
        dm_history_limit=dm_history_limit,
        dms=dms
    )


def _parse_limit(value, path: str) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValueError(f"'{path}' must be a positive integer")
    return value
