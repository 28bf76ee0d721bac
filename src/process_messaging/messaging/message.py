from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from process_messaging.messaging.envelope import ExceptionEnvelope


class MessageType(Enum):
    # Closed set of message kinds; values are the wire tags.
    ECHO = "echo"
    APPLICATION = "message"
    EXCEPTION = "exception"

    @classmethod
    def from_tag(cls, tag: object) -> MessageType | None:
        if not isinstance(tag, str):
            return None
        try:
            return cls(tag)
        except ValueError:
            return None


@dataclass(frozen=True, slots=True)
class Message:
    # One typed message emitted by a child; the type fixes the payload shape.
    type: MessageType
    payload: object

    def __post_init__(self) -> None:
        if not isinstance(self.type, MessageType):
            raise ValueError(f"Message.type must be a MessageType, got {self.type!r}")
        if self.type is MessageType.ECHO and not isinstance(self.payload, str):
            raise ValueError("Echo message payload must be text")
        if self.type is MessageType.EXCEPTION and not isinstance(self.payload, ExceptionEnvelope):
            raise ValueError("Exception message payload must be an ExceptionEnvelope")

    @classmethod
    def echo(cls, text: str) -> Message:
        return cls(MessageType.ECHO, text)

    @classmethod
    def application(cls, value: object) -> Message:
        return cls(MessageType.APPLICATION, value)

    @classmethod
    def exception(cls, error: BaseException | ExceptionEnvelope) -> Message:
        return cls(MessageType.EXCEPTION, ExceptionEnvelope.capture(error))

    def export(self) -> dict[str, object]:
        # Human-readable form used when messages are written without a codec.
        return {"type": self.type.value, "payload": self.payload}
