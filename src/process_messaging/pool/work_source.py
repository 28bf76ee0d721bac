from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator

from process_messaging.errors import ConfigurationError
from process_messaging.process.handle import ProcessHandle


class WorkSource:
    # Lazy pull-based supplier of process handles; never looks ahead.
    def __init__(
        self,
        items: Iterable[ProcessHandle] | None = None,
        *,
        factory: Callable[[], Iterable[ProcessHandle]] | None = None,
    ) -> None:
        if items is not None and factory is not None:
            raise ConfigurationError("WorkSource takes either items or a factory, not both")
        self._items = items
        self._factory = factory
        self._iterator: Iterator[object] | None = None
        self._exhausted = False
        self._pulled = 0

    @classmethod
    def of(cls, source: object) -> WorkSource:
        # Accepts a WorkSource, an iterable of handles or a zero-argument factory.
        if source is None:
            return cls(())
        if isinstance(source, WorkSource):
            return source
        if isinstance(source, Iterable):
            return cls(source)
        if callable(source):
            return cls(factory=source)
        raise ConfigurationError(f"Unsupported work source: {type(source).__name__}")

    @property
    def exhausted(self) -> bool:
        return self._exhausted

    @property
    def pulled(self) -> int:
        return self._pulled

    def reset(self) -> None:
        # Factory sources start over; plain iterables resume where they stopped.
        if self._factory is None:
            return
        self._iterator = None
        self._exhausted = False

    def pull(self) -> ProcessHandle | None:
        if self._exhausted:
            return None
        if self._iterator is None:
            self._iterator = iter(self._open())
        try:
            item = next(self._iterator)
        except StopIteration:
            self._exhausted = True
            return None
        if not isinstance(item, ProcessHandle):
            raise ConfigurationError(
                f"Work source must yield ProcessHandle instances, got {type(item).__name__}"
            )
        self._pulled += 1
        return item

    def _open(self) -> Iterable[object]:
        if self._factory is not None:
            produced = self._factory()
            if produced is None:
                return ()
            if not isinstance(produced, Iterable):
                raise ConfigurationError("Work source factory must return an iterable of handles")
            return produced
        return self._items if self._items is not None else ()
