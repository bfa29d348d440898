"""Loader for the engine configuration.

Defaults live in ``config/defaults.yaml`` under the ``engine`` key. An
optional override file (``Config.engine_config_path``) is deep-merged on
top, so deployments only list the keys they change.
"""

from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from trendpulse.config import EngineConfig
from trendpulse.core.config import get_config
from trendpulse.core.exceptions import ConfigError, ConfigNotFoundError, ConfigValidationError
from trendpulse.core.logging import get_logger

logger = get_logger(__name__)

# Base config directory (project root/config)
_CONFIG_BASE_DIR = Path(__file__).parent.parent.parent / "config"


@lru_cache(maxsize=1)
def load_defaults() -> dict[str, Any]:
    """Load global defaults from config/defaults.yaml.

    Raises:
        ConfigError: If the file doesn't exist or is invalid YAML.
    """
    return _load_yaml_file(_CONFIG_BASE_DIR / "defaults.yaml", "defaults")


def _load_yaml_file(path: Path, name: str) -> dict[str, Any]:
    """Load a YAML file from disk.

    Args:
        path: Path to the YAML file.
        name: Human-readable name for error messages.

    Returns:
        Parsed YAML content as dictionary.

    Raises:
        ConfigError: If file doesn't exist or parsing fails.
    """
    if not path.exists():
        logger.error("Config file not found", name=name, path=str(path))
        raise ConfigError(f"Config file not found: {path}", config_path=str(path))

    try:
        with open(path, encoding="utf-8") as f:
            content = yaml.safe_load(f)

        if not isinstance(content, dict):
            raise ConfigError(
                f"Config file must contain a YAML object: {path}", config_path=str(path)
            )

        logger.debug("Loaded config file", name=name, path=str(path))
        return content

    except yaml.YAMLError as e:
        logger.error("YAML parsing failed", name=name, path=str(path), error=str(e))
        raise ConfigError(f"Invalid YAML in {path}: {e}", config_path=str(path)) from e


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def build_engine_config(
    defaults: dict[str, Any],
    overrides: dict[str, Any] | None = None,
    source: str = "defaults",
) -> EngineConfig:
    """Validate raw engine settings into an EngineConfig.

    Args:
        defaults: Parsed defaults document (must contain ``engine``)
        overrides: Optional document whose ``engine`` section is merged on top
        source: Description of where the data came from, for errors

    Raises:
        ConfigNotFoundError: If the defaults have no ``engine`` section
        ConfigValidationError: If the merged settings are invalid
    """
    engine = defaults.get("engine")
    if not isinstance(engine, dict):
        raise ConfigNotFoundError("engine", config_path=source)

    if overrides:
        engine = _deep_merge(engine, overrides.get("engine", {}) or {})

    try:
        return EngineConfig.model_validate(engine)
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(p) for p in first["loc"]) or "engine"
        raise ConfigValidationError(
            field=field,
            value=first.get("input"),
            reason=first["msg"],
            config_path=source,
        ) from e


@lru_cache(maxsize=1)
def load_engine_config() -> EngineConfig:
    """Load the engine configuration (defaults plus optional override file).

    Returns:
        Validated EngineConfig, cached for the process lifetime.
    """
    override_path = get_config().engine_config_path
    overrides = None
    source = str(_CONFIG_BASE_DIR / "defaults.yaml")
    if override_path:
        overrides = _load_yaml_file(Path(override_path), "engine override")
        source = override_path

    config = build_engine_config(load_defaults(), overrides, source=source)
    logger.info(
        "Engine config loaded",
        source=source,
        surge_z_threshold=config.spike.surge_z_threshold,
        similarity_threshold=config.clustering.similarity_threshold,
    )
    return config


def clear_global_config_cache() -> None:
    """Clear cached configuration so the next load re-reads the files."""
    load_defaults.cache_clear()
    load_engine_config.cache_clear()
    logger.info("Global config cache cleared")


__all__ = [
    "build_engine_config",
    "clear_global_config_cache",
    "load_defaults",
    "load_engine_config",
]
