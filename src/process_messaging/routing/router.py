from __future__ import annotations

import codecs
import sys
from collections.abc import Callable
from enum import Enum
from threading import RLock

from process_messaging.errors import DecodingError, ProtocolError
from process_messaging.messaging.codec import Codec, default_codec
from process_messaging.messaging.envelope import ChildFailure
from process_messaging.messaging.message import Message, MessageType

Handler = Callable[[object], None]
RawObserver = Callable[["Stream", bytes | str], None]


class Stream(Enum):
    # Origin stream of a raw chunk.
    STDOUT = "out"
    STDERR = "err"


class MessageRouter:
    # Reassembles lines per stream, decodes them and dispatches by (stream, type).
    def __init__(
        self,
        *,
        tag: str | None = None,
        codec: Codec | None = None,
        on_output: Handler | None = None,
        on_message: Handler | None = None,
        on_exception: Handler | None = None,
        on_raw: RawObserver | None = None,
    ) -> None:
        self.tag = tag
        self.codec = codec or default_codec()
        self._on_output = on_output or self._default_output
        self._on_message = on_message or _ignore
        self._on_exception = on_exception or self._default_exception
        self._on_raw = on_raw
        self._pending: dict[Stream, str] = {Stream.STDOUT: "", Stream.STDERR: ""}
        # Per-stream byte decoders keep a multi-byte character split across chunks intact.
        self._decoders = {stream: _utf8_decoder() for stream in Stream}
        self._lock = RLock()

    def on_output(self, handler: Handler | None) -> None:
        self._on_output = handler or self._default_output

    def on_message(self, handler: Handler | None) -> None:
        self._on_message = handler or _ignore

    def on_exception(self, handler: Handler | None) -> None:
        self._on_exception = handler or self._default_exception

    def on_raw(self, observer: RawObserver | None) -> None:
        self._on_raw = observer

    def handlers(self) -> dict[str, object]:
        # Explicitly registered handlers, used to carry them over to a restarted process.
        return {
            "on_output": None if self._on_output == self._default_output else self._on_output,
            "on_message": None if self._on_message is _ignore else self._on_message,
            "on_exception": None if self._on_exception == self._default_exception else self._on_exception,
            "on_raw": self._on_raw,
        }

    def feed(self, stream: Stream, chunk: bytes | str) -> None:
        # Raw observer sees the untouched chunk before any decoding can fail.
        with self._lock:
            if self._on_raw is not None:
                self._on_raw(stream, chunk)
            if isinstance(chunk, (bytes, bytearray)):
                text = self._decoders[stream].decode(bytes(chunk))
            else:
                text = chunk
            buffered = self._pending[stream] + text
            lines = buffered.split("\n")
            # The last piece has no terminating newline yet; keep it for the next chunk.
            self._pending[stream] = lines.pop()
            self._dispatch_lines(stream, lines)

    def flush(self, stream: Stream | None = None) -> None:
        # Process buffered partial lines (end of stream).
        with self._lock:
            streams = [stream] if stream is not None else list(Stream)
            for current in streams:
                rest = self._pending[current] + self._decoders[current].decode(b"", final=True)
                self._decoders[current].reset()
                self._pending[current] = ""
                if rest:
                    self._dispatch_lines(current, [rest])

    def has_pending(self) -> bool:
        with self._lock:
            return any(self._pending.values()) or any(decoder.getstate()[0] for decoder in self._decoders.values())

    def dispatch(self, stream: Stream, message: Message) -> None:
        if stream is Stream.STDERR:
            self._on_exception(message.payload)
            return
        match message.type:
            case MessageType.ECHO:
                self._on_output(message.payload)
            case MessageType.APPLICATION:
                self._on_message(message.payload)
            case MessageType.EXCEPTION:
                self._on_exception(message.payload)
            case _:
                raise ProtocolError(f"Process received unknown message type: {message.type!r}")

    def _dispatch_lines(self, stream: Stream, lines: list[str]) -> None:
        for raw_line in lines:
            line = raw_line.strip()
            if not line:
                continue
            self.dispatch(stream, self._decode(line, lines))

    def _decode(self, line: str, context: list[str]) -> Message:
        try:
            message = self.codec.decode(line)
        except DecodingError as exc:
            raise DecodingError(
                exc.reason,
                line=line,
                context=context,
                tag=self.tag,
                codec=type(self.codec).__name__,
            ) from exc
        if not isinstance(message, Message):
            raise DecodingError(
                f"codec returned {type(message).__name__}, expected Message",
                line=line,
                context=context,
                tag=self.tag,
                codec=type(self.codec).__name__,
            )
        return message

    def _default_output(self, payload: object) -> None:
        label = self.tag or "Process"
        sys.stdout.write(f"| {label} | {payload}")
        sys.stdout.flush()

    def _default_exception(self, payload: object) -> None:
        raise ChildFailure.from_payload(payload, tag=self.tag)


def _utf8_decoder() -> codecs.IncrementalDecoder:
    return codecs.getincrementaldecoder("utf-8")(errors="replace")


def _ignore(payload: object) -> None:
    _ = payload
