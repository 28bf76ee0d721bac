# Routing package: turns raw child stream chunks into dispatched messages.

from process_messaging.routing.router import MessageRouter, Stream

__all__ = ["MessageRouter", "Stream"]
