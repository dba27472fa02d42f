"""Configuration loading for moviechat.

Sources, lowest priority first, deep-merged section by section:

    1. Model defaults (:mod:`moviechat.config.schema`)
    2. ``$XDG_CONFIG_HOME/moviechat/config.toml`` (or ``~/.config/...``)
    3. ``./moviechat.toml`` in the working directory
    4. The file named by ``$MOVIECHAT_CONFIG``
    5. The CLI ``--config`` file
    6. ``MOVIECHAT_*`` variables for single settings (see ``ENV_SETTINGS``)
    7. Programmatic overrides

After validation the OpenAI key is taken from ``provider.api_key_env``
unless ``provider.api_key`` was given.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from moviechat.core.errors import ConfigError

from .schema import MovieChatConfig

# Environment variable -> (section, key)
ENV_SETTINGS: dict[str, tuple[str, str]] = {
    "MOVIECHAT_DATABASE_URL": ("database", "url"),
    "MOVIECHAT_MODEL": ("agent", "model"),
    "MOVIECHAT_CSV_DIR": ("seed", "csv_dir"),
    "MOVIECHAT_LOG_LEVEL": ("logging", "level"),
    "OPENAI_BASE_URL": ("provider", "base_url"),
}


def _config_files(explicit: str | Path | None) -> list[Path]:
    """Existing config files in merge order."""
    xdg = os.environ.get("XDG_CONFIG_HOME", "")
    user_dir = Path(xdg) if xdg else Path.home() / ".config"
    files = [
        p
        for p in (user_dir / "moviechat" / "config.toml", Path.cwd() / "moviechat.toml")
        if p.is_file()
    ]

    named = os.environ.get("MOVIECHAT_CONFIG")
    if named:
        if not Path(named).is_file():
            msg = f"MOVIECHAT_CONFIG points to non-existent file: {named}"
            raise ConfigError(msg)
        files.append(Path(named))

    if explicit is not None:
        if not Path(explicit).is_file():
            msg = f"Config file not found: {explicit}"
            raise ConfigError(msg)
        files.append(Path(explicit))
    return files


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        msg = f"Invalid TOML in {path}: {e}"
        raise ConfigError(msg) from e
    except OSError as e:
        msg = f"Cannot read config file {path}: {e}"
        raise ConfigError(msg) from e


def _env_settings() -> dict[str, Any]:
    """``MOVIECHAT_*`` variables folded into config-shaped sections."""
    sections: dict[str, Any] = {}
    for var, (section, key) in ENV_SETTINGS.items():
        value = os.environ.get(var)
        if value:
            sections.setdefault(section, {})[key] = value
    return sections


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override into base. Override wins on conflicts."""
    merged = base.copy()
    for key, value in override.items():
        if isinstance(merged.get(key), dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(
    path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> MovieChatConfig:
    """Load and validate configuration.

    Args:
        path: Explicit config file (the CLI ``--config`` option).
        overrides: Merged last, above files and environment.

    Raises:
        ConfigError: On a missing or unreadable file, invalid TOML, or
            values the schema rejects.
    """
    layers = [_read_toml(f) for f in _config_files(path)]
    layers.append(_env_settings())
    layers.append(overrides or {})

    merged: dict[str, Any] = {}
    for layer in layers:
        merged = _deep_merge(merged, layer)

    try:
        config = MovieChatConfig.model_validate(merged)
    except ValidationError as e:
        msg = f"Configuration validation failed: {e}"
        raise ConfigError(msg) from e

    provider = config.provider
    if provider.api_key is None and provider.api_key_env:
        provider.api_key = os.environ.get(provider.api_key_env)
    return config
