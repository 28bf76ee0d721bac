from __future__ import annotations

import io
import pickle
import threading

import pytest

# Exception envelopes must survive a process boundary without live references.
from process_messaging.errors import DecodingError
from process_messaging.messaging.codec import JsonCodec, PickleCodec
from process_messaging.messaging.envelope import (
    ChildFailure,
    ExceptionEnvelope,
    StackFrame,
    summarize_args,
    summarize_value,
)
from process_messaging.messaging.message import Message


class Worker:
    def process(self, handle, rows, callback, *extra, **options):
        raise RuntimeError(f"cannot process {len(rows)} rows")


def _raise_from_worker() -> BaseException:
    lock = threading.Lock()
    try:
        Worker().process(io.StringIO("open"), [1, 2, 3], lambda: lock, 7, flag=True)
    except RuntimeError as exc:
        return exc
    raise AssertionError("Worker.process did not raise")


def test_summarize_value_uses_coarse_tags() -> None:
    assert summarize_value([1]) == "array"
    assert summarize_value({"a": 1}) == "array"
    assert summarize_value((1,)) == "array"
    assert summarize_value(3) == "int"
    assert summarize_value("x") == "str"
    assert summarize_value(None) == "NoneType"
    assert summarize_value(Worker()) == "Worker"


def test_capture_copies_scalar_fields() -> None:
    error = _raise_from_worker()
    envelope = ExceptionEnvelope.capture(error)
    assert envelope.source_type == "RuntimeError"
    assert envelope.description == "(RuntimeError) cannot process 3 rows"
    assert envelope.file == __file__
    assert envelope.line > 0
    assert envelope.code == 0


def test_capture_summarizes_frame_arguments() -> None:
    # Frames keep only type tags; open handles, closures and locks are not referenced.
    envelope = ExceptionEnvelope.capture(_raise_from_worker())
    frame = envelope.frames[-1]
    assert frame.function == "process"
    assert frame.cls == "Worker"
    assert frame.arg_summary == ("Worker", "StringIO", "array", "function", "array", "array")
    assert all(isinstance(tag, str) for f in envelope.frames for tag in f.arg_summary)


def test_module_level_frames_have_no_class() -> None:
    envelope = ExceptionEnvelope.capture(_raise_from_worker())
    assert envelope.frames[0].function == "_raise_from_worker"
    assert envelope.frames[0].cls is None


def test_capture_of_unraised_error_has_no_frames() -> None:
    envelope = ExceptionEnvelope.capture(ValueError("never raised"))
    assert envelope.frames == ()
    assert envelope.file == ""
    assert envelope.line == 0


def test_capture_uses_numeric_error_codes() -> None:
    assert ExceptionEnvelope.capture(OSError(2, "No such file")).code == 2
    assert ExceptionEnvelope.capture(SystemExit(3)).code == 3


def test_capture_qualifies_non_builtin_types() -> None:
    class JobError(Exception):
        pass

    envelope = ExceptionEnvelope.capture(JobError("bad"))
    assert envelope.source_type.endswith("JobError")
    assert envelope.source_type != "JobError"
    assert envelope.description.endswith(" bad")


def test_capture_is_idempotent() -> None:
    envelope = ExceptionEnvelope.capture(_raise_from_worker())
    assert ExceptionEnvelope.capture(envelope) is envelope
    assert ExceptionEnvelope.capture(ChildFailure(envelope)) is envelope


def test_envelope_is_picklable_even_when_error_referenced_unpicklable_objects() -> None:
    envelope = ExceptionEnvelope.capture(_raise_from_worker())
    assert pickle.loads(pickle.dumps(envelope)) == envelope


@pytest.mark.parametrize("codec", [PickleCodec(), JsonCodec()], ids=["pickle", "json"])
def test_reencoding_twice_yields_identical_lines(codec) -> None:
    envelope = ExceptionEnvelope.capture(_raise_from_worker())
    first = codec.encode(Message.exception(envelope))
    decoded = codec.decode(first).payload
    second = codec.encode(Message.exception(decoded))
    assert first == second
    assert decoded.frames == envelope.frames


def test_dict_round_trip_and_validation() -> None:
    envelope = ExceptionEnvelope.capture(_raise_from_worker())
    assert ExceptionEnvelope.from_dict(envelope.to_dict()) == envelope
    with pytest.raises(DecodingError):
        ExceptionEnvelope.from_dict({"class": "X", "message": "m", "file": "f", "line": "1", "code": 0})
    with pytest.raises(DecodingError):
        ExceptionEnvelope.from_dict(["not", "a", "mapping"])


def test_stack_frame_rejects_live_argument_values() -> None:
    with pytest.raises(ValueError):
        StackFrame(function="f", file="x.py", line=1, arg_summary=(object(),))  # type: ignore[arg-type]


def test_summarize_args_preserves_order() -> None:
    assert summarize_args([1, "a", [], Worker()]) == ("int", "str", "array", "Worker")


def test_resummarizing_frame_arguments_keeps_tags() -> None:
    frame = ExceptionEnvelope.capture(_raise_from_worker()).frames[-1]
    expected = ("Worker", "StringIO", "array", "function", "array", "array")
    once = summarize_args(frame.arg_summary)
    assert once == expected
    assert summarize_args(once) == expected
    assert summarize_value(summarize_value([1])) == "array"


@pytest.mark.parametrize("codec", [PickleCodec(), JsonCodec()])
def test_decoded_frames_keep_tags_when_resummarized(codec) -> None:
    envelope = ExceptionEnvelope.capture(_raise_from_worker())
    decoded = codec.decode(codec.encode(Message.exception(envelope))).payload
    for frame in decoded.frames:
        assert summarize_args(frame.arg_summary) == frame.arg_summary


def test_child_failure_exposes_envelope_fields() -> None:
    envelope = ExceptionEnvelope.capture(_raise_from_worker())
    failure = ChildFailure(envelope, tag="worker-1")
    assert str(failure) == envelope.description
    assert failure.source_type == "RuntimeError"
    assert failure.file == envelope.file
    assert failure.line == envelope.line
    assert failure.code == 0
    assert failure.frames == envelope.frames
    assert failure.tag == "worker-1"


def test_child_failure_survives_pickling() -> None:
    failure = ChildFailure(ExceptionEnvelope("ValueError", "(ValueError) x"), tag="t")
    restored = pickle.loads(pickle.dumps(failure))
    assert restored.envelope == failure.envelope
    assert restored.tag == "t"


def test_child_failure_from_non_envelope_payload() -> None:
    # Anything reaching the exception channel becomes a ChildFailure.
    failure = ChildFailure.from_payload("plain text on stderr", tag="p")
    assert failure.source_type == "str"
    assert "plain text on stderr" in failure.description
