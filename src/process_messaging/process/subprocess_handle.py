from __future__ import annotations

import queue
import shlex
import signal as signals
import subprocess
import threading
import time
from collections.abc import Mapping, Sequence
from typing import IO

from process_messaging.messaging.codec import Codec
from process_messaging.process.handle import ChunkCallback, ProcessHandle
from process_messaging.routing.router import Handler, MessageRouter, RawObserver, Stream

_READ_SIZE = 65536


class MessagingProcess(ProcessHandle):
    # Subprocess whose stdout/stderr carry codec lines, routed to handlers on the polling thread.
    def __init__(
        self,
        command: Sequence[str] | str,
        *,
        cwd: str | None = None,
        env: Mapping[str, str] | None = None,
        tag: str | None = None,
        codec: Codec | None = None,
    ) -> None:
        self.command = shlex.split(command) if isinstance(command, str) else list(command)
        if not self.command:
            raise ValueError("MessagingProcess.command must not be empty")
        self.cwd = cwd
        self.env = dict(env) if env is not None else None
        self.router = MessageRouter(tag=tag, codec=codec)
        self._popen: subprocess.Popen[bytes] | None = None
        self._chunks: queue.SimpleQueue[tuple[Stream, bytes | None]] = queue.SimpleQueue()
        self._open_streams = 0
        self._on_chunk: ChunkCallback | None = None
        self._kill_timer: threading.Timer | None = None
        self._lock = threading.RLock()

    @property
    def tag(self) -> str | None:
        return self.router.tag

    @tag.setter
    def tag(self, value: str | None) -> None:
        self.router.tag = value

    @property
    def codec(self) -> Codec:
        return self.router.codec

    @property
    def pid(self) -> int | None:
        return self._popen.pid if self._popen is not None else None

    @property
    def exit_code(self) -> int | None:
        if self._popen is None:
            return None
        return self._popen.poll()

    def on_message(self, handler: Handler | None) -> None:
        self.router.on_message(handler)

    def on_echo(self, handler: Handler | None) -> None:
        self.router.on_output(handler)

    def on_exception(self, handler: Handler | None) -> None:
        self.router.on_exception(handler)

    def on_raw(self, observer: RawObserver | None) -> None:
        self.router.on_raw(observer)

    def start(self, on_chunk: ChunkCallback | None = None) -> None:
        with self._lock:
            if self._popen is not None:
                raise RuntimeError(f"Process '{self.tag or self.command[0]}' is already started")
            self._on_chunk = on_chunk
            self._popen = subprocess.Popen(  # noqa: S603 - command is supplied by the controller
                self.command,
                cwd=self.cwd,
                env=self.env,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
            self._open_streams = 2
            for stream, pipe in ((Stream.STDOUT, self._popen.stdout), (Stream.STDERR, self._popen.stderr)):
                reader = threading.Thread(
                    target=self._pump,
                    args=(stream, pipe),
                    name=f"process-messaging-{stream.value}-{self._popen.pid}",
                    daemon=True,
                )
                reader.start()

    def is_running(self) -> bool:
        return self._popen is not None and not self.is_terminated()

    def is_terminated(self) -> bool:
        # Terminated means exited and every emitted message has been dispatched.
        with self._lock:
            if self._popen is None:
                return False
            self._drain()
            if self._popen.poll() is None:
                return False
            if self._kill_timer is not None:
                self._kill_timer.cancel()
            return self._open_streams == 0

    def is_successful(self) -> bool:
        return self.is_terminated() and self.exit_code == 0

    def wait(self, timeout: float | None = None, *, poll_interval: float = 0.05) -> int | None:
        if self._popen is None:
            raise RuntimeError("Process must be started before wait()")
        deadline = None if timeout is None else time.monotonic() + timeout
        while not self.is_terminated():
            if deadline is not None and time.monotonic() >= deadline:
                raise subprocess.TimeoutExpired(self.command, timeout)
            time.sleep(poll_interval)
        return self.exit_code

    def run(self, on_chunk: ChunkCallback | None = None) -> int | None:
        self.start(on_chunk)
        return self.wait()

    def stop(self, timeout: float = 10.0, signal: int | None = None) -> None:
        # Fire-and-forget: signal now, SIGKILL once the timeout elapses.
        with self._lock:
            if self._popen is None or self._popen.poll() is not None or self._kill_timer is not None:
                return
            try:
                self._popen.send_signal(signal if signal is not None else signals.SIGTERM)
            except ProcessLookupError:
                return
            self._kill_timer = threading.Timer(max(timeout, 0.0), self._kill)
            self._kill_timer.daemon = True
            self._kill_timer.start()

    def restart(self) -> MessagingProcess:
        clone = MessagingProcess(self.command, cwd=self.cwd, env=self.env, tag=self.tag, codec=self.codec)
        handlers = self.router.handlers()
        clone.router.on_output(handlers["on_output"])
        clone.router.on_message(handlers["on_message"])
        clone.router.on_exception(handlers["on_exception"])
        clone.router.on_raw(handlers["on_raw"])
        clone.start(self._on_chunk)
        return clone

    def _pump(self, stream: Stream, pipe: IO[bytes]) -> None:
        try:
            for chunk in iter(lambda: pipe.read1(_READ_SIZE), b""):
                self._chunks.put((stream, chunk))
        finally:
            pipe.close()
            self._chunks.put((stream, None))

    def _drain(self) -> None:
        while True:
            try:
                stream, chunk = self._chunks.get_nowait()
            except queue.Empty:
                return
            if chunk is None:
                self._open_streams -= 1
                self.router.flush(stream)
                continue
            if self._on_chunk is not None:
                self._on_chunk(stream, chunk)
            self.router.feed(stream, chunk)

    def _kill(self) -> None:
        popen = self._popen
        if popen is None or popen.poll() is not None:
            return
        try:
            popen.kill()
        except ProcessLookupError:
            return
