from __future__ import annotations

import json
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, TextIO

from process_messaging.errors import ConfigurationError
from process_messaging.observability.domain.logging import LogMessage


class LogSink(Protocol):
    # Anything with emit(); close() is optional.
    def emit(self, message: LogMessage) -> None: ...


class StdoutLogSink:
    # One JSON object per line on a text stream (stdout by default).
    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream

    def emit(self, message: LogMessage) -> None:
        stream = self._stream or sys.stdout
        stream.write(_render(message) + "\n")
        stream.flush()


class JsonlLogSink:
    # File-backed structured log sink; appends one record per line.
    def __init__(self, path: Path) -> None:
        self._path = path
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._file = self._path.open("a", encoding="utf-8")

    def emit(self, message: LogMessage) -> None:
        self._file.write(_render(message) + "\n")
        self._file.flush()

    def close(self) -> None:
        self._file.close()


class MemoryLogSink:
    # Keeps records in memory; used for diagnostics and tests.
    def __init__(self) -> None:
        self.records: list[LogMessage] = []

    def emit(self, message: LogMessage) -> None:
        self.records.append(message)

    def messages(self) -> list[str]:
        return [record.message for record in self.records]


@dataclass(slots=True)
class FanoutLogSink:
    sinks: list[object]

    def emit(self, message: LogMessage) -> None:
        for sink in list(self.sinks):
            emit = getattr(sink, "emit", None)
            if not callable(emit):
                continue
            try:
                emit(message)
            except Exception:
                continue

    def close(self) -> None:
        close_log_sink_list(self.sinks)


def build_log_sink(settings: dict[str, object] | None) -> object | None:
    # Resolve {"exporters": [{"kind": "stdout" | "jsonl", "settings": {...}}]} into one sink.
    if settings is None:
        return None
    exporters = settings.get("exporters", [])
    if not isinstance(exporters, list):
        raise ConfigurationError("logging.exporters must be a list")
    sinks: list[object] = []
    for exporter in exporters:
        if not isinstance(exporter, dict):
            raise ConfigurationError("logging.exporters entries must be mappings")
        kind = exporter.get("kind")
        if kind == "stdout":
            sinks.append(StdoutLogSink())
            continue
        if kind != "jsonl":
            raise ConfigurationError(f"Unsupported log exporter kind: {kind!r}")
        exporter_settings = exporter.get("settings", {})
        path = exporter_settings.get("path") if isinstance(exporter_settings, dict) else None
        if not isinstance(path, str) or not path:
            raise ConfigurationError("jsonl exporter settings.path must be a non-empty string")
        sinks.append(JsonlLogSink(Path(path)))
    if not sinks:
        return None
    if len(sinks) == 1:
        return sinks[0]
    return FanoutLogSink(sinks=sinks)


def emit_log(sink: object | None, *, level: str, message: str, fields: dict[str, object]) -> None:
    # Sink failures never propagate into the caller's control flow.
    emit = getattr(sink, "emit", None)
    if not callable(emit):
        return
    try:
        emit(LogMessage(level=level, message=message, fields=dict(fields)))
    except Exception:
        return


def close_log_sink(sink: object | None) -> None:
    close = getattr(sink, "close", None)
    if callable(close):
        try:
            close()
        except Exception:
            return


def close_log_sink_list(sinks: list[object]) -> None:
    for sink in list(sinks):
        close_log_sink(sink)


def _render(message: LogMessage) -> str:
    return json.dumps(message.to_dict(), separators=(",", ":"), ensure_ascii=False, default=str)
