from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from threading import RLock

from process_messaging.errors import ConfigurationError
from process_messaging.observability.adapters.logging import emit_log
from process_messaging.pool.work_source import WorkSource
from process_messaging.process.handle import ProcessHandle

StartedHook = Callable[[ProcessHandle], None]
FinishedHook = Callable[[ProcessHandle], "ProcessHandle | None"]

DEFAULT_POLL_INTERVAL = 0.3


class SlotState(Enum):
    EMPTY = "empty"
    STARTING = "starting"
    RUNNING = "running"
    TERMINATED = "terminated"


class PoolState(Enum):
    STOPPED = "stopped"
    RUNNING = "running"
    FINISHING = "finishing"


@dataclass(slots=True)
class Slot:
    # One concurrency unit; holds at most one handle.
    index: int
    handle: ProcessHandle | None = None
    state: SlotState = SlotState.EMPTY
    starts: int = 0

    def clear(self) -> None:
        self.handle = None
        self.state = SlotState.EMPTY


@dataclass(frozen=True, slots=True)
class SlotSnapshot:
    index: int
    state: SlotState
    handle: ProcessHandle | None
    starts: int


class ProcessPool:
    # Runs at most `concurrency` child processes, pulling new ones lazily as slots free up.
    def __init__(
        self,
        source: object = None,
        *,
        concurrency: int = 1,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        log_sink: object | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._source = WorkSource.of(source)
        self._concurrency = _validate_concurrency(concurrency)
        self._poll_interval = _validate_poll_interval(poll_interval)
        self._log_sink = log_sink
        self._sleep = sleep
        self._slots: list[Slot] = []
        self._state = PoolState.STOPPED
        self._finishing = False
        self._on_started: StartedHook | None = None
        self._on_finished: FinishedHook | None = None
        self._lock = RLock()

    @property
    def state(self) -> PoolState:
        return self._state

    @property
    def concurrency(self) -> int:
        return self._concurrency

    @property
    def poll_interval(self) -> float:
        return self._poll_interval

    @property
    def source(self) -> WorkSource:
        return self._source

    @property
    def process_count(self) -> int:
        with self._lock:
            return self._occupied()

    def is_running(self) -> bool:
        return self._state is not PoolState.STOPPED

    def active_handles(self) -> list[ProcessHandle]:
        with self._lock:
            return [slot.handle for slot in self._slots if slot.handle is not None]

    def slots(self) -> tuple[SlotSnapshot, ...]:
        with self._lock:
            return tuple(
                SlotSnapshot(index=slot.index, state=slot.state, handle=slot.handle, starts=slot.starts)
                for slot in self._slots
            )

    def set_source(self, source: object) -> None:
        with self._lock:
            if self._state is not PoolState.STOPPED:
                raise ConfigurationError("Work source cannot be replaced while the pool is running")
            self._source = WorkSource.of(source)

    def configure(self, concurrency: int | None = None, *, poll_interval: float | None = None) -> None:
        # Takes effect on the next scheduling step.
        with self._lock:
            if concurrency is not None:
                self._concurrency = _validate_concurrency(concurrency)
            if poll_interval is not None:
                self._poll_interval = _validate_poll_interval(poll_interval)
            self._log("pool.configured", concurrency=self._concurrency, poll_interval=self._poll_interval)

    def on_process_started(self, hook: StartedHook | None) -> None:
        self._on_started = hook

    def on_process_finished(self, hook: FinishedHook | None) -> None:
        # Hook may return a replacement handle (e.g. `handle.restart()`) to keep the slot busy.
        self._on_finished = hook

    def start(self) -> None:
        with self._lock:
            if self._state is not PoolState.STOPPED:
                raise ConfigurationError(f"Pool cannot start from state '{self._state.value}'")
            self._source.reset()
            self._finishing = False
            self._state = PoolState.RUNNING
            self._log("pool.started", concurrency=self._concurrency)
            self._fill()

    def tick(self) -> PoolState:
        # One non-blocking scheduling step: reap, refill, settle.
        with self._lock:
            if self._state is PoolState.STOPPED:
                return self._state
            self._reap()
            if not self._finishing:
                self._fill()
            if (self._finishing or self._source.exhausted) and self._occupied() == 0:
                self._state = PoolState.STOPPED
                self._log("pool.stopped", started=self._source.pulled)
            return self._state

    def wait(self) -> None:
        while self.tick() is not PoolState.STOPPED:
            self._sleep(self._poll_interval)

    def run(self) -> None:
        self.start()
        self.wait()

    def finish(self) -> None:
        # No new slot fills; running children are left to complete.
        with self._lock:
            if self._state is PoolState.STOPPED or self._finishing:
                return
            self._finishing = True
            self._state = PoolState.FINISHING
            self._log("pool.finishing", active=self._occupied())

    def stop(self, timeout: float = 10.0, signal: int | None = None) -> None:
        # Requests termination of every occupied slot; tick()/wait() observe the drain.
        # No liveness polling here: it dispatches queued messages, and handlers may raise.
        with self._lock:
            self.finish()
            handles = [slot.handle for slot in self._slots if slot.handle is not None]
            self._log("pool.stop_requested", active=len(handles), timeout=timeout, signal=signal)
            for handle in handles:
                handle.stop(timeout, signal)

    def _reap(self) -> None:
        for slot in self._slots:
            handle = slot.handle
            if handle is None or not handle.is_terminated():
                continue
            slot.state = SlotState.TERMINATED
            self._log("pool.slot_finished", slot=slot.index, tag=handle.tag)
            try:
                replacement = self._on_finished(handle) if self._on_finished is not None else None
            except BaseException:
                slot.clear()
                raise
            if replacement is None:
                slot.clear()
                continue
            if not isinstance(replacement, ProcessHandle):
                slot.clear()
                raise ConfigurationError(
                    "on_process_finished() hook must return a ProcessHandle or None, "
                    f"got {type(replacement).__name__}"
                )
            self._restart(slot, replacement)

    def _restart(self, slot: Slot, replacement: ProcessHandle) -> None:
        others = self._occupied() - 1
        if self._finishing or others >= self._concurrency:
            reason = "finishing" if self._finishing else "concurrency"
            slot.clear()
            replacement.stop()
            self._log("pool.restart_rejected", slot=slot.index, tag=replacement.tag, reason=reason)
            return
        self._launch(slot, replacement)
        self._log("pool.slot_restarted", slot=slot.index, tag=replacement.tag)

    def _fill(self) -> None:
        while len(self._slots) < self._concurrency:
            self._slots.append(Slot(index=len(self._slots)))
        occupied = self._occupied()
        for slot in self._slots[: self._concurrency]:
            if occupied >= self._concurrency:
                return
            if slot.handle is not None:
                continue
            handle = self._source.pull()
            if handle is None:
                return
            self._launch(slot, handle)
            occupied += 1
            self._log("pool.slot_started", slot=slot.index, tag=handle.tag)
            if self._on_started is not None:
                self._on_started(handle)

    def _launch(self, slot: Slot, handle: ProcessHandle) -> None:
        slot.handle = handle
        slot.state = SlotState.STARTING
        try:
            if not handle.is_started():
                handle.start()
        except BaseException:
            slot.clear()
            raise
        slot.state = SlotState.RUNNING
        slot.starts += 1

    def _occupied(self) -> int:
        return sum(1 for slot in self._slots if slot.handle is not None)

    def _log(self, message: str, **fields: object) -> None:
        emit_log(self._log_sink, level="info", message=message, fields=fields)


def _validate_concurrency(value: object) -> int:
    if not isinstance(value, int) or isinstance(value, bool) or value < 1:
        raise ConfigurationError(f"Concurrency limit must be an integer greater than 0, got {value!r}")
    return value


def _validate_poll_interval(value: object) -> float:
    if not isinstance(value, (int, float)) or isinstance(value, bool) or value <= 0:
        raise ConfigurationError(f"Poll interval must be a positive number of seconds, got {value!r}")
    return float(value)
