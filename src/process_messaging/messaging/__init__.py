# Messaging package: the typed message, its wire codecs and the exception envelope.

from process_messaging.messaging.codec import Codec, JsonCodec, PickleCodec, codec_by_name, default_codec
from process_messaging.messaging.envelope import ChildFailure, ExceptionEnvelope, StackFrame, TypeTag
from process_messaging.messaging.message import Message, MessageType

__all__ = [
    "ChildFailure",
    "Codec",
    "ExceptionEnvelope",
    "JsonCodec",
    "Message",
    "MessageType",
    "PickleCodec",
    "StackFrame",
    "TypeTag",
    "codec_by_name",
    "default_codec",
]
