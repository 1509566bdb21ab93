"""
Deferred settlement
"""

from x402_armory.queue.base import JobState, SettleJob, SettlementQueue
from x402_armory.queue.memory import MemorySettlementQueue
from x402_armory.queue.worker import SettlementWorker

__all__ = [
    "JobState",
    "SettleJob",
    "SettlementQueue",
    "MemorySettlementQueue",
    "SettlementWorker",
]
