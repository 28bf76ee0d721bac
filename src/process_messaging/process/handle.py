from __future__ import annotations

from collections.abc import Callable

from process_messaging.routing.router import Stream

ChunkCallback = Callable[[Stream, bytes], None]


class ProcessHandle:
    # Port for one child process driven by the pool (start/poll/stop/restart).
    tag: str | None = None

    def start(self, on_chunk: ChunkCallback | None = None) -> None:
        raise NotImplementedError("ProcessHandle.start must be implemented")

    def stop(self, timeout: float = 10.0, signal: int | None = None) -> None:
        raise NotImplementedError("ProcessHandle.stop must be implemented")

    def is_running(self) -> bool:
        raise NotImplementedError("ProcessHandle.is_running must be implemented")

    def is_terminated(self) -> bool:
        raise NotImplementedError("ProcessHandle.is_terminated must be implemented")

    def restart(self) -> ProcessHandle:
        raise NotImplementedError("ProcessHandle.restart must be implemented")

    def is_started(self) -> bool:
        # A handle that is neither running nor terminated has not been started yet.
        return self.is_running() or self.is_terminated()
