from process_messaging.observability.domain.logging import LogMessage

__all__ = ["LogMessage"]
