# Child package: helpers used inside a child process to talk to its controller.

from process_messaging.child.runtime import ChildMessaging, EchoWriter, MessagingOptions

__all__ = ["ChildMessaging", "EchoWriter", "MessagingOptions"]
