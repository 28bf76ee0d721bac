from .loader import load_app_config, load_yaml_config, parse_app_config
from .models import AppConfig, CommandSpec, LoggingSettings, PoolSettings, StopSettings

__all__ = [
    "AppConfig",
    "CommandSpec",
    "LoggingSettings",
    "PoolSettings",
    "StopSettings",
    "load_app_config",
    "load_yaml_config",
    "parse_app_config",
]
