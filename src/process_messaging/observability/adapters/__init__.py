from process_messaging.observability.adapters.logging import (
    FanoutLogSink,
    JsonlLogSink,
    LogSink,
    MemoryLogSink,
    StdoutLogSink,
    build_log_sink,
    close_log_sink,
    emit_log,
)

__all__ = [
    "FanoutLogSink",
    "JsonlLogSink",
    "LogSink",
    "MemoryLogSink",
    "StdoutLogSink",
    "build_log_sink",
    "close_log_sink",
    "emit_log",
]
