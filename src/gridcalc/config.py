"""Configuration loading from ``gridcalc.yaml``, with defaults."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from gridcalc.logging.events import CONFIG_INVALID, EventType, emit_error, emit_info

CONFIG_FILENAME = "gridcalc.yaml"

DEFAULT_CONFIG: dict[str, Any] = {
    "default_rows": 20,
    "default_cols": 10,
    "round_digits": 10,
    "logging_enabled": True,
    "logging_fsync": False,
    "logging_tail_bytes": 2_097_152,  # 2 MB
}

_INT_KEYS = ("default_rows", "default_cols", "round_digits", "logging_tail_bytes")
_BOOL_KEYS = ("logging_enabled", "logging_fsync")


def _validate(config: dict[str, Any]) -> dict[str, Any]:
    for key in _INT_KEYS:
        value = config.get(key)
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"Config key {key!r} must be an integer, got {value!r}")
    for key in ("default_rows", "default_cols"):
        if config[key] < 1:
            raise ValueError(f"Config key {key!r} must be >= 1, got {config[key]!r}")
    if config["round_digits"] < 0:
        raise ValueError(f"Config key 'round_digits' must be >= 0, got {config['round_digits']!r}")
    for key in _BOOL_KEYS:
        if not isinstance(config.get(key), bool):
            raise ValueError(f"Config key {key!r} must be true or false, got {config.get(key)!r}")
    return config


def load_config(config_dir: Path | None = None) -> dict[str, Any]:
    """Load configuration from ``gridcalc.yaml`` in *config_dir*, with defaults.

    Unknown keys are kept so collaborators can store their own settings.

    Args:
        config_dir: Directory holding ``gridcalc.yaml``.  ``None`` returns
            the defaults.

    Returns:
        Merged configuration dict.

    Raises:
        ValueError: If the file is not valid YAML or not a mapping, or if
            a known key has the wrong type.
    """
    config = dict(DEFAULT_CONFIG)
    if config_dir is None:
        return config
    config_path = Path(config_dir) / CONFIG_FILENAME
    if not config_path.exists():
        return _validate(config)

    try:
        user_config = yaml.safe_load(config_path.read_text()) or {}
        if not isinstance(user_config, dict):
            raise ValueError(f"{config_path} must contain a mapping")
        config.update(user_config)
        _validate(config)
    except (yaml.YAMLError, ValueError) as e:
        emit_error(
            EventType.config_loaded,
            f"Invalid {config_path.name}: {e}",
            {"path": str(config_path)},
            error_code=CONFIG_INVALID,
        )
        if isinstance(e, yaml.YAMLError):
            raise ValueError(f"{config_path} is not valid YAML: {e}") from e
        raise

    emit_info(
        EventType.config_loaded,
        f"Loaded {config_path.name}",
        {"path": str(config_path), "keys": sorted(user_config)},
    )
    return config


def configure_logging(config_dir: Path, config: dict[str, Any] | None = None) -> None:
    """Point the event sink at *config_dir* according to *config*."""
    from gridcalc.logging.events import clear_log_dir, set_log_dir

    config = config if config is not None else load_config(config_dir)
    if not config["logging_enabled"]:
        clear_log_dir()
        return
    set_log_dir(
        config_dir,
        fsync=config["logging_fsync"],
        tail_bytes=config["logging_tail_bytes"],
    )
