from __future__ import annotations

import io
import pprint
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import TextIO

from process_messaging.messaging.codec import Codec, default_codec
from process_messaging.messaging.envelope import ExceptionEnvelope
from process_messaging.messaging.message import Message


@dataclass(frozen=True, slots=True)
class MessagingOptions:
    # Child-side switches, scoped to one ChildMessaging instance.
    encode_messages: bool = True
    capture_echo: bool = True
    capture_exceptions: bool = True


class EchoWriter(io.TextIOBase):
    # Stand-in for sys.stdout: every completed line becomes one Echo message.
    def __init__(self, messaging: ChildMessaging) -> None:
        super().__init__()
        self._messaging = messaging
        self._buffer = ""

    def writable(self) -> bool:
        return True

    def write(self, text: str) -> int:
        if not text:
            return 0
        self._buffer += text
        head, sep, tail = self._buffer.rpartition("\n")
        if sep:
            self._buffer = tail
            for line in head.split("\n"):
                self._messaging.echo(line + "\n")
        return len(text)

    def flush(self) -> None:
        if self._buffer:
            rest, self._buffer = self._buffer, ""
            self._messaging.echo(rest)


class ChildMessaging:
    # Child side of the protocol: writes codec lines on stdout/stderr for the controller.
    def __init__(
        self,
        options: MessagingOptions | None = None,
        *,
        codec: Codec | None = None,
        stdout: TextIO | None = None,
        stderr: TextIO | None = None,
    ) -> None:
        self.options = options or MessagingOptions()
        self.codec = codec or default_codec()
        self._stdout = stdout or sys.stdout
        self._stderr = stderr or sys.stderr
        self._echo_writer: EchoWriter | None = None
        self._saved_stdout: TextIO | None = None
        self._saved_excepthook = None
        self._installed = False

    def send(self, value: object) -> None:
        self._write(Message.application(value), self._stdout)

    def echo(self, text: str) -> None:
        if text:
            self._write(Message.echo(text), self._stdout)

    def send_exception(self, error: BaseException | ExceptionEnvelope, *, exit_code: int | None = 1) -> None:
        self._write(Message.exception(error), self._stderr)
        if exit_code is not None:
            raise SystemExit(exit_code)

    def install(self) -> None:
        if self._installed:
            return
        if self.options.capture_echo:
            self._saved_stdout = sys.stdout
            self._echo_writer = EchoWriter(self)
            sys.stdout = self._echo_writer
        if self.options.capture_exceptions:
            self._saved_excepthook = sys.excepthook
            sys.excepthook = self._excepthook
        self._installed = True

    def uninstall(self) -> None:
        if not self._installed:
            return
        if self._echo_writer is not None:
            self._echo_writer.flush()
            sys.stdout = self._saved_stdout
            self._echo_writer = None
            self._saved_stdout = None
        if self._saved_excepthook is not None:
            sys.excepthook = self._saved_excepthook
            self._saved_excepthook = None
        self._installed = False

    @contextmanager
    def capture(self) -> Iterator[ChildMessaging]:
        self.install()
        try:
            yield self
        finally:
            self.uninstall()

    def _excepthook(self, kind, error, tb) -> None:
        # The interpreter exits with status 1 after the hook returns.
        if self._echo_writer is not None:
            self._echo_writer.flush()
        if error.__traceback__ is None:
            error = error.with_traceback(tb)
        self._write(Message.exception(error), self._stderr)

    def _write(self, message: Message, stream: TextIO) -> None:
        if self.options.encode_messages:
            data = self.codec.encode(message)
        else:
            data = pprint.pformat(message.export())
        stream.write(data + "\n")
        stream.flush()
