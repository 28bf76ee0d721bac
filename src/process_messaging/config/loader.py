from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import ValidationError

from process_messaging.config.models import AppConfig
from process_messaging.errors import ConfigurationError


def load_yaml_config(path: Path) -> dict[str, object]:
    # YAML loader; returns a raw mapping for validation.
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML in {path}: {exc}") from exc
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigurationError("Config root must be a mapping")
    return raw


def parse_app_config(raw: dict[str, object]) -> AppConfig:
    try:
        return AppConfig.model_validate(raw)
    except ValidationError as exc:
        raise ConfigurationError(str(exc)) from exc


def load_app_config(path: Path) -> AppConfig:
    return parse_app_config(load_yaml_config(path))
