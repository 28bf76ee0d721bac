# Process package: the process-handle port and its subprocess implementation.

from process_messaging.process.handle import ChunkCallback, ProcessHandle
from process_messaging.process.subprocess_handle import MessagingProcess

__all__ = ["ChunkCallback", "MessagingProcess", "ProcessHandle"]
