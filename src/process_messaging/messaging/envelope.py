from __future__ import annotations

import builtins
import inspect
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import CodeType, FrameType, TracebackType

from process_messaging.errors import DecodingError

_ARRAY_TYPES = (list, tuple, dict, set, frozenset)
ARRAY_TAG = "array"


class TypeTag(str):
    # A string that is already an argument summary, not a live argument.
    __slots__ = ()


def summarize_value(value: object) -> TypeTag:
    # Coarse type tag for one argument; the value itself is never retained.
    if isinstance(value, TypeTag):
        return value
    if isinstance(value, _ARRAY_TYPES):
        return TypeTag(ARRAY_TAG)
    return TypeTag(type(value).__name__)


def summarize_args(values: Iterable[object]) -> tuple[TypeTag, ...]:
    return tuple(summarize_value(value) for value in values)


@dataclass(frozen=True, slots=True)
class StackFrame:
    # One call-stack entry with arguments reduced to type tags.
    function: str
    file: str
    line: int
    cls: str | None = None
    arg_summary: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not all(isinstance(tag, str) for tag in self.arg_summary):
            raise ValueError("StackFrame.arg_summary entries must be type tags (strings)")
        object.__setattr__(self, "arg_summary", tuple(TypeTag(tag) for tag in self.arg_summary))

    @classmethod
    def from_frame(cls, frame: FrameType, line: int) -> StackFrame:
        code = frame.f_code
        return cls(
            function=code.co_name,
            file=code.co_filename,
            line=line,
            cls=_owner_name(code),
            arg_summary=summarize_args(frame.f_locals.get(name) for name in _parameter_names(code)),
        )

    def to_dict(self) -> dict[str, object]:
        return {
            "function": self.function,
            "class": self.cls,
            "file": self.file,
            "line": self.line,
            "args": list(self.arg_summary),
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, object]) -> StackFrame:
        function = _require(raw, "function", str)
        file = _require(raw, "file", str)
        line = _require(raw, "line", int)
        owner = raw.get("class")
        if owner is not None and not isinstance(owner, str):
            raise DecodingError("stack frame 'class' must be a string or null")
        args = raw.get("args", [])
        if not isinstance(args, list) or not all(isinstance(tag, str) for tag in args):
            raise DecodingError("stack frame 'args' must be a list of type tags")
        return cls(function=function, file=file, line=line, cls=owner, arg_summary=tuple(args))


@dataclass(frozen=True, slots=True)
class ExceptionEnvelope:
    # Transportable snapshot of an error: scalars plus summarized frames, no live references.
    source_type: str
    description: str
    file: str = ""
    line: int = 0
    code: int = 0
    frames: tuple[StackFrame, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "frames", tuple(self.frames))

    @classmethod
    def capture(cls, error: BaseException | ExceptionEnvelope) -> ExceptionEnvelope:
        if isinstance(error, ExceptionEnvelope):
            return error
        if isinstance(error, ChildFailure):
            return error.envelope
        source_type = _type_name(type(error))
        frames = tuple(_walk_frames(error.__traceback__))
        innermost = frames[-1] if frames else None
        return cls(
            source_type=source_type,
            description=f"({source_type}) {error}",
            file=innermost.file if innermost else "",
            line=innermost.line if innermost else 0,
            code=_error_code(error),
            frames=frames,
        )

    def to_dict(self) -> dict[str, object]:
        return {
            "class": self.source_type,
            "message": self.description,
            "file": self.file,
            "line": self.line,
            "code": self.code,
            "trace": [frame.to_dict() for frame in self.frames],
        }

    @classmethod
    def from_dict(cls, raw: object) -> ExceptionEnvelope:
        if not isinstance(raw, Mapping):
            raise DecodingError("exception envelope must be a mapping")
        trace = raw.get("trace", [])
        if not isinstance(trace, list) or not all(isinstance(item, Mapping) for item in trace):
            raise DecodingError("exception envelope 'trace' must be a list of mappings")
        return cls(
            source_type=_require(raw, "class", str),
            description=_require(raw, "message", str),
            file=_require(raw, "file", str),
            line=_require(raw, "line", int),
            code=_require(raw, "code", int),
            frames=tuple(StackFrame.from_dict(item) for item in trace),
        )


class ChildFailure(Exception):
    # Error reported by a child process, rebuilt from its envelope on the controller side.
    def __init__(self, envelope: ExceptionEnvelope, *, tag: str | None = None) -> None:
        super().__init__(envelope.description)
        self.envelope = envelope
        self.tag = tag

    @classmethod
    def from_payload(cls, payload: object, *, tag: str | None = None) -> ChildFailure:
        if isinstance(payload, ExceptionEnvelope):
            return cls(payload, tag=tag)
        if isinstance(payload, BaseException):
            return cls(ExceptionEnvelope.capture(payload), tag=tag)
        source_type = _type_name(type(payload))
        return cls(
            ExceptionEnvelope(source_type=source_type, description=f"({source_type}) {payload}"),
            tag=tag,
        )

    @property
    def source_type(self) -> str:
        return self.envelope.source_type

    @property
    def description(self) -> str:
        return self.envelope.description

    @property
    def file(self) -> str:
        return self.envelope.file

    @property
    def line(self) -> int:
        return self.envelope.line

    @property
    def code(self) -> int:
        return self.envelope.code

    @property
    def frames(self) -> tuple[StackFrame, ...]:
        return self.envelope.frames

    def __reduce__(self):
        return (_rebuild_child_failure, (self.envelope, self.tag))


def _rebuild_child_failure(envelope: ExceptionEnvelope, tag: str | None) -> ChildFailure:
    return ChildFailure(envelope, tag=tag)


def _walk_frames(tb: TracebackType | None) -> Iterable[StackFrame]:
    while tb is not None:
        yield StackFrame.from_frame(tb.tb_frame, tb.tb_lineno)
        tb = tb.tb_next


def _parameter_names(code: CodeType) -> tuple[str, ...]:
    count = code.co_argcount + code.co_kwonlyargcount
    if code.co_flags & inspect.CO_VARARGS:
        count += 1
    if code.co_flags & inspect.CO_VARKEYWORDS:
        count += 1
    return code.co_varnames[:count]


def _owner_name(code: CodeType) -> str | None:
    # Methods carry their class in the qualified name: "Owner.method".
    qualname = getattr(code, "co_qualname", code.co_name)
    owner, _, _ = qualname.rpartition(".")
    if not owner or owner.endswith("<locals>"):
        return None
    return owner.rpartition(".")[2]


def _type_name(kind: type) -> str:
    if kind.__module__ == builtins.__name__:
        return kind.__qualname__
    return f"{kind.__module__}.{kind.__qualname__}"


def _error_code(error: BaseException) -> int:
    for attribute in ("errno", "code"):
        value = getattr(error, attribute, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return 0


def _require(raw: Mapping[str, object], key: str, kind: type):
    value = raw.get(key)
    if not isinstance(value, kind) or (kind is int and isinstance(value, bool)):
        raise DecodingError(f"field '{key}' must be of type {kind.__name__}")
    return value
