"""Application configuration loader.

Loads centralized configuration from data/config/app_config_v1.yaml
with fallback to built-in defaults.

Usage:
    from progression.config.app_config import load_app_config, get_db_path

    config = load_app_config()
    db_path = get_db_path(config)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog
import yaml

logger = structlog.get_logger(__name__)

# Config file path (relative to project root)
CONFIG_FILE = Path("data/config/app_config_v1.yaml")

# Environment override for the SQLite file
DB_PATH_ENV = "PROGRESSION_DB_PATH"

PASS_RULES = ("terminal", "average")


@dataclass
class ProgressionConfig:
    """Rules applied when a level is finalized."""

    pass_mark: int = 10
    pass_rule: str = "terminal"  # "terminal" | "average"
    recovery_enabled: bool = True
    auto_finalize: bool = True
    lock_timeout_seconds: float = 5.0


@dataclass
class AppConfig:
    """Application-wide configuration."""

    progression: ProgressionConfig = field(default_factory=ProgressionConfig)
    paths: dict[str, str] = field(default_factory=dict)


# Module-level cache
_cached_config: AppConfig | None = None


def _get_defaults() -> dict[str, Any]:
    """Get default configuration values."""
    return {
        "progression": {
            "pass_mark": 10,
            "pass_rule": "terminal",
            "recovery_enabled": True,
            "auto_finalize": True,
            "lock_timeout_seconds": 5.0,
        },
        "paths": {
            "db_path": "db/progression.db",
            "catalog_path": "data/config/catalog_v1.yaml",
        },
    }


def _parse_config(data: dict[str, Any]) -> AppConfig:
    """Parse configuration dictionary into AppConfig object."""
    defaults = _get_defaults()
    prog_data = {**defaults["progression"], **(data.get("progression") or {})}

    pass_rule = str(prog_data["pass_rule"]).lower()
    if pass_rule not in PASS_RULES:
        logger.warning("invalid_pass_rule", pass_rule=pass_rule, fallback="terminal")
        pass_rule = "terminal"

    progression = ProgressionConfig(
        pass_mark=int(prog_data["pass_mark"]),
        pass_rule=pass_rule,
        recovery_enabled=bool(prog_data["recovery_enabled"]),
        auto_finalize=bool(prog_data["auto_finalize"]),
        lock_timeout_seconds=float(prog_data["lock_timeout_seconds"]),
    )

    paths = {**defaults["paths"], **(data.get("paths") or {})}

    return AppConfig(progression=progression, paths=paths)


def load_app_config(force_reload: bool = False) -> AppConfig:
    """Load application config with fallback to defaults.

    Args:
        force_reload: If True, ignore cached config and reload from file.

    Returns:
        AppConfig object with all settings.
    """
    global _cached_config

    if _cached_config is not None and not force_reload:
        return _cached_config

    data: dict[str, Any]

    if CONFIG_FILE.exists():
        logger.debug("loading_app_config", source=str(CONFIG_FILE))
        data = yaml.safe_load(CONFIG_FILE.read_text(encoding="utf-8")) or {}
    else:
        logger.info("using_default_config")
        data = _get_defaults()

    _cached_config = _parse_config(data)
    return _cached_config


def get_db_path(config: AppConfig | None = None) -> Path:
    """Resolve the database file, honoring the PROGRESSION_DB_PATH override."""
    override = os.environ.get(DB_PATH_ENV)
    if override:
        return Path(override)
    config = config or load_app_config()
    return Path(config.paths.get("db_path", "db/progression.db"))


def get_catalog_path(config: AppConfig | None = None) -> Path:
    """Resolve the reference catalog file."""
    config = config or load_app_config()
    return Path(config.paths.get("catalog_path", "data/config/catalog_v1.yaml"))


def clear_config_cache() -> None:
    """Clear the configuration cache.

    Useful for testing or when config is modified at runtime.
    """
    global _cached_config
    _cached_config = None
