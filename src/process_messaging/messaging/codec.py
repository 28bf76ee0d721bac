from __future__ import annotations

import base64
import binascii
import json
import pickle

from process_messaging.errors import DecodingError
from process_messaging.messaging.envelope import ExceptionEnvelope
from process_messaging.messaging.message import Message, MessageType


class Codec:
    # Port: converts one Message to a single newline-free text line and back.
    name = "codec"

    def encode(self, message: Message) -> str:
        raise NotImplementedError("Codec.encode must be implemented")

    def decode(self, line: str) -> Message:
        raise NotImplementedError("Codec.decode must be implemented")


class PickleCodec(Codec):
    # Native pickle bytes made line-safe with base64.
    name = "pickle"

    def __init__(self, *, protocol: int = pickle.HIGHEST_PROTOCOL) -> None:
        self._protocol = protocol

    def encode(self, message: Message) -> str:
        raw = pickle.dumps((message.type.value, message.payload), protocol=self._protocol)
        return base64.b64encode(raw).decode("ascii")

    def decode(self, line: str) -> Message:
        try:
            raw = base64.b64decode(line.encode("ascii"), validate=True)
        except (binascii.Error, ValueError, UnicodeEncodeError) as exc:
            raise DecodingError(f"{exc} (decode error)") from exc
        try:
            decoded = pickle.loads(raw)
        except Exception as exc:  # noqa: BLE001 - unpickling can fail with arbitrary error types
            raise DecodingError(f"{exc} (unserialize error)") from exc
        if not isinstance(decoded, tuple) or len(decoded) != 2:
            raise DecodingError("decoded value is not a (type, payload) pair")
        return _build_message(decoded[0], decoded[1], lambda payload: payload)


class JsonCodec(Codec):
    # Plain JSON line; ensure_ascii escapes newlines and control bytes.
    name = "json"

    def encode(self, message: Message) -> str:
        payload = message.payload
        if message.type is MessageType.EXCEPTION:
            payload = message.payload.to_dict()
        return json.dumps(
            {"type": message.type.value, "payload": payload},
            ensure_ascii=True,
            separators=(",", ":"),
        )

    def decode(self, line: str) -> Message:
        try:
            decoded = json.loads(line)
        except json.JSONDecodeError as exc:
            raise DecodingError(f"{exc} (decode error)") from exc
        if not isinstance(decoded, dict) or set(decoded) != {"type", "payload"}:
            raise DecodingError("decoded value must be an object with 'type' and 'payload'")
        return _build_message(decoded["type"], decoded["payload"], ExceptionEnvelope.from_dict)


def default_codec() -> Codec:
    return PickleCodec()


def codec_by_name(name: str) -> Codec:
    if name == PickleCodec.name:
        return PickleCodec()
    if name == JsonCodec.name:
        return JsonCodec()
    raise ValueError(f"Unknown codec '{name}'")


def _build_message(tag: object, payload: object, load_envelope) -> Message:
    message_type = MessageType.from_tag(tag)
    if message_type is None:
        raise DecodingError(f"unrecognized message type: {tag!r}")
    if message_type is MessageType.EXCEPTION:
        payload = load_envelope(payload)
    try:
        return Message(message_type, payload)
    except ValueError as exc:
        raise DecodingError(str(exc)) from exc
