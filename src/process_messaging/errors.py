from __future__ import annotations

from collections.abc import Sequence


class MessagingError(RuntimeError):
    # Base error for wire-level failures between a child and its controller.
    pass


class DecodingError(MessagingError):
    # Malformed or unexpected wire content; surfaced synchronously, never retried.
    def __init__(
        self,
        reason: str,
        *,
        line: str | None = None,
        context: Sequence[str] = (),
        tag: str | None = None,
        codec: str | None = None,
    ) -> None:
        self.reason = reason
        self.line = line
        self.context = tuple(context)
        self.tag = tag
        self.codec = codec
        super().__init__(self._render())

    def _render(self) -> str:
        if self.line is None and not self.context:
            return self.reason
        where = f" in '{self.tag}'" if self.tag else ""
        using = f" with {self.codec}" if self.codec else ""
        text = f"Error decoding process message{where}{using}: {self.reason}"
        if self.context:
            text += "\nBuffer contents: " + "\n".join(self.context)
        return text


class ProtocolError(MessagingError):
    # Structurally valid message whose type the router does not handle.
    pass


class ConfigurationError(ValueError):
    # Invalid pool configuration or misuse of a hook contract (fail fast).
    pass
