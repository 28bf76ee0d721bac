from __future__ import annotations

import signal as signals
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Config models map YAML sections onto typed settings for the pool and its children.


class StopSettings(BaseModel):
    # Graceful stop: `signal` first, forced kill once `timeout` seconds have passed.
    model_config = ConfigDict(extra="forbid")
    timeout: float = Field(default=10.0, ge=0)
    signal: int | None = None

    @field_validator("signal", mode="before")
    @classmethod
    def _resolve_signal(cls, value: Any) -> int | None:
        # Accept "SIGTERM", "TERM" or a plain number.
        if value is None or isinstance(value, int):
            return value
        if isinstance(value, str):
            name = value.upper()
            if not name.startswith("SIG"):
                name = f"SIG{name}"
            try:
                return int(signals.Signals[name])
            except KeyError as exc:
                raise ValueError(f"unknown signal name: {value}") from exc
        raise ValueError("signal must be a signal name or number")


class PoolSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")
    concurrency: int = Field(default=1, gt=0)
    poll_interval: float = Field(default=0.3, gt=0)
    stop: StopSettings = Field(default_factory=StopSettings)


class LogExporterSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")
    kind: Literal["stdout", "jsonl"]
    settings: dict[str, Any] = Field(default_factory=dict)


class LoggingSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")
    exporters: list[LogExporterSettings] = Field(default_factory=list)


class CommandSpec(BaseModel):
    # One command line to run as a child; `replicas` copies are queued.
    model_config = ConfigDict(extra="forbid")
    argv: list[str] = Field(min_length=1)
    tag: str | None = None
    cwd: str | None = None
    env: dict[str, str] | None = None
    replicas: int = Field(default=1, ge=1)
    restart_on_failure: bool = False
    max_restarts: int = Field(default=3, ge=0)


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    pool: PoolSettings = Field(default_factory=PoolSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    codec: Literal["pickle", "json"] = "pickle"
    commands: list[CommandSpec] = Field(default_factory=list)
