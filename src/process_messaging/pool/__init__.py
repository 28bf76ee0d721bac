# Pool package: bounded scheduling of child processes pulled from a work source.

from process_messaging.pool.scheduler import PoolState, ProcessPool, Slot, SlotSnapshot, SlotState
from process_messaging.pool.work_source import WorkSource

__all__ = ["PoolState", "ProcessPool", "Slot", "SlotSnapshot", "SlotState", "WorkSource"]
