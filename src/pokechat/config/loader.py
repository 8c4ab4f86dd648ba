"""Build a :class:`PokechatConfig` from layered TOML files.

Layers, lowest priority first:

1. model defaults from :mod:`pokechat.config.schema`
2. ``$XDG_CONFIG_HOME/pokechat/config.toml`` (``~/.config`` without XDG)
3. ``pokechat.toml`` in the working directory
4. the file named by ``$POKECHAT_CONFIG``
5. an explicit path (``pokechat --config``)
6. programmatic overrides

Tables merge key by key. Any other value replaces the lower layer's, so a
keyword list in ``[routing]`` replaces the built-in family rather than
extending it. Top-level tables must name a known section.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from pokechat.core.errors import ConfigError

from .schema import PokechatConfig

CONFIG_ENV_VAR = "POKECHAT_CONFIG"
PROJECT_FILE = "pokechat.toml"


def config_search_path() -> list[Path]:
    """Config files that apply without an explicit path, lowest priority first.

    Raises:
        ConfigError: If ``$POKECHAT_CONFIG`` names a missing file.
    """
    config_home = os.environ.get("XDG_CONFIG_HOME") or Path.home() / ".config"
    candidates = [
        Path(config_home) / "pokechat" / "config.toml",
        Path.cwd() / PROJECT_FILE,
    ]
    found = [p for p in candidates if p.is_file()]

    named = os.environ.get(CONFIG_ENV_VAR)
    if named:
        found.append(_require_file(Path(named), f"${CONFIG_ENV_VAR}"))
    return found


def _require_file(path: Path, origin: str) -> Path:
    if not path.is_file():
        msg = f"Config file from {origin} not found: {path}"
        raise ConfigError(msg)
    return path


def _check_sections(table: dict[str, Any], origin: str) -> None:
    unknown = sorted(set(table) - set(PokechatConfig.model_fields))
    if unknown:
        msg = f"Unknown config section(s) in {origin}: {', '.join(unknown)}"
        raise ConfigError(msg)


def _read_layer(path: Path) -> dict[str, Any]:
    try:
        table = tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as e:
        msg = f"Invalid TOML in {path}: {e}"
        raise ConfigError(msg) from e
    except (OSError, UnicodeDecodeError) as e:
        msg = f"Cannot read config file {path}: {e}"
        raise ConfigError(msg) from e
    _check_sections(table, str(path))
    return table


def _merge_tables(lower: dict[str, Any], upper: dict[str, Any]) -> dict[str, Any]:
    """Overlay *upper* on *lower* without mutating either."""
    result = dict(lower)
    for key, value in upper.items():
        below = result.get(key)
        if isinstance(below, dict) and isinstance(value, dict):
            result[key] = _merge_tables(below, value)
        else:
            result[key] = value
    return result


def _normalize_keywords(words: list[str]) -> list[str]:
    """Lowercase, trim and de-duplicate, keeping first-seen order."""
    return [w for w in dict.fromkeys(w.strip().lower() for w in words) if w]


def _resolve_api_key(config: PokechatConfig) -> None:
    """Resolve the backend API key from its environment variable (in-place)."""
    backend = config.backend
    if backend.api_key is None and backend.api_key_env:
        backend.api_key = os.environ.get(backend.api_key_env)
    if backend.api_key and ("\n" in backend.api_key or "\r" in backend.api_key):
        msg = "Backend API key contains line breaks - check your environment"
        raise ConfigError(msg)


def load_config(
    path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> PokechatConfig:
    """Load, merge and validate every config layer.

    Raises:
        ConfigError: On a missing file, invalid TOML, an unknown section,
            or a value the schema rejects.
    """
    files = config_search_path()
    if path is not None:
        files.append(_require_file(Path(path), "explicit path"))

    merged: dict[str, Any] = {}
    for file in files:
        merged = _merge_tables(merged, _read_layer(file))
    if overrides:
        _check_sections(overrides, "overrides")
        merged = _merge_tables(merged, overrides)

    try:
        config = PokechatConfig.model_validate(merged)
    except ValidationError as e:
        msg = f"Invalid configuration: {e}"
        raise ConfigError(msg) from e

    routing = config.routing
    routing.comparison_keywords = _normalize_keywords(routing.comparison_keywords)
    routing.lookup_keywords = _normalize_keywords(routing.lookup_keywords)
    _resolve_api_key(config)
    return config
