# Process messaging: a bounded pool of child processes that report back over their standard streams.

from process_messaging.child.runtime import ChildMessaging, MessagingOptions
from process_messaging.errors import ConfigurationError, DecodingError, MessagingError, ProtocolError
from process_messaging.messaging.codec import Codec, JsonCodec, PickleCodec, default_codec
from process_messaging.messaging.envelope import ChildFailure, ExceptionEnvelope, StackFrame
from process_messaging.messaging.message import Message, MessageType
from process_messaging.pool.scheduler import PoolState, ProcessPool, SlotState
from process_messaging.pool.work_source import WorkSource
from process_messaging.process.handle import ProcessHandle
from process_messaging.process.subprocess_handle import MessagingProcess
from process_messaging.routing.router import MessageRouter, Stream

__all__ = [
    "ChildFailure",
    "ChildMessaging",
    "Codec",
    "ConfigurationError",
    "DecodingError",
    "ExceptionEnvelope",
    "JsonCodec",
    "Message",
    "MessageRouter",
    "MessageType",
    "MessagingError",
    "MessagingOptions",
    "MessagingProcess",
    "PickleCodec",
    "PoolState",
    "ProcessHandle",
    "ProcessPool",
    "ProtocolError",
    "SlotState",
    "StackFrame",
    "Stream",
    "WorkSource",
    "default_codec",
]
