from __future__ import annotations

import pytest

# WorkSource is pulled one item at a time, with no look-ahead.
from process_messaging.errors import ConfigurationError
from process_messaging.pool.work_source import WorkSource
from process_messaging.process.handle import ProcessHandle


class _Handle(ProcessHandle):
    def __init__(self, name: str) -> None:
        self.tag = name


def test_pull_returns_items_then_reports_exhaustion() -> None:
    a, b = _Handle("a"), _Handle("b")
    source = WorkSource([a, b])
    assert source.pull() is a
    assert not source.exhausted
    assert source.pull() is b
    assert not source.exhausted
    assert source.pull() is None
    assert source.exhausted
    assert source.pull() is None
    assert source.pulled == 2


def test_generator_is_consumed_lazily() -> None:
    produced: list[str] = []

    def generate():
        for name in ("a", "b", "c"):
            produced.append(name)
            yield _Handle(name)

    source = WorkSource(generate())
    assert produced == []
    source.pull()
    assert produced == ["a"]


def test_non_handle_item_is_configuration_error() -> None:
    source = WorkSource(["not a handle"])
    with pytest.raises(ConfigurationError):
        source.pull()


def test_factory_is_invoked_again_after_reset() -> None:
    calls: list[int] = []

    def factory():
        calls.append(1)
        return [_Handle("x")]

    source = WorkSource.of(factory)
    assert source.pull() is not None
    assert source.pull() is None
    source.reset()
    assert not source.exhausted
    assert source.pull() is not None
    assert len(calls) == 2


def test_plain_iterable_resumes_after_reset() -> None:
    a, b = _Handle("a"), _Handle("b")
    source = WorkSource(iter([a, b]))
    assert source.pull() is a
    source.reset()
    assert source.pull() is b


def test_factory_returning_none_is_empty() -> None:
    source = WorkSource(factory=lambda: None)
    assert source.pull() is None
    assert source.exhausted


def test_factory_returning_non_iterable_is_rejected() -> None:
    with pytest.raises(ConfigurationError):
        WorkSource(factory=lambda: 42).pull()  # type: ignore[arg-type, return-value]


def test_of_accepts_existing_source_and_none() -> None:
    source = WorkSource([])
    assert WorkSource.of(source) is source
    assert WorkSource.of(None).pull() is None
    with pytest.raises(ConfigurationError):
        WorkSource.of(42)
    with pytest.raises(ConfigurationError):
        WorkSource([], factory=list)
