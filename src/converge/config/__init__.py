"""Configuration module: load and validate engine settings."""

from typing import Dict, Any, Optional
from pydantic import ValidationError
from ..utils.errors import ConfigError
from ..utils.logging import get_logger
from .manager import load_config, _deep_merge
from .models import EngineSettings, RetrySettings, StateSettings, ProviderSettings, LockMode
from .paths import get_user_config_path, get_project_config_path, get_defaults_path

logger = get_logger("config")


def load_settings(config_path: Optional[str] = None, overrides: Optional[Dict[str, Any]] = None) -> EngineSettings:
    """
    Load and validate engine settings.
    
    Args:
        config_path: Optional extra YAML file layered over defaults/user/project
        overrides: Values from CLI flags; None entries are ignored
        
    Returns:
        EngineSettings
        
    Raises:
        ConfigError: If the merged configuration is invalid
    """
    config = load_config(config_path)
    
    if overrides:
        _deep_merge(config, _drop_none(overrides))
    
    try:
        settings = EngineSettings(**config)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}")
    
    logger.debug(
        f"Settings: parallelism={settings.parallelism}, "
        f"state={settings.state.path}, lock={settings.state.lock}"
    )
    return settings


def _drop_none(values: Dict[str, Any]) -> Dict[str, Any]:
    """Remove unset CLI values, recursing into nested sections."""
    cleaned = {}
    for key, value in values.items():
        if isinstance(value, dict):
            nested = _drop_none(value)
            if nested:
                cleaned[key] = nested
        elif value is not None:
            cleaned[key] = value
    return cleaned


__all__ = [
    "load_settings",
    "load_config",
    "EngineSettings",
    "RetrySettings",
    "StateSettings",
    "ProviderSettings",
    "LockMode",
    "get_user_config_path",
    "get_project_config_path",
    "get_defaults_path",
]
