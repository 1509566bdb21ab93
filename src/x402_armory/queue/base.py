"""
Settlement queue interface
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum

from x402_armory.nonce import NonceKey
from x402_armory.types import AnyPaymentPayload, AnyPaymentRequirements, SettleResponse


class JobState(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class SettleJob:
    """A verified payment whose nonce is reserved, waiting to be submitted"""

    id: str
    payload: AnyPaymentPayload
    requirements: AnyPaymentRequirements
    nonce_key: NonceKey
    created_at: float
    retries: int = 0
    available_at: float = 0.0
    state: JobState = JobState.PENDING
    last_error: str | None = None
    result: SettleResponse | None = field(default=None, repr=False)


class SettlementQueue(ABC):
    """
    Abstract base class for deferred settlement queues.

    A job moves pending -> processing -> completed, or back to pending on a
    retryable failure until ``max_retries`` failures have been recorded,
    after which it is failed.
    """

    @abstractmethod
    async def enqueue(
        self,
        payload: AnyPaymentPayload,
        requirements: AnyPaymentRequirements,
        nonce_key: NonceKey,
    ) -> SettleJob:
        """Add a job and return it with its assigned id"""
        pass

    @abstractmethod
    async def dequeue(self) -> SettleJob | None:
        """Move the oldest ready pending job to processing"""
        pass

    @abstractmethod
    async def complete(self, job_id: str, result: SettleResponse) -> SettleJob:
        """Record the outcome of a processing job.

        An unsuccessful result is recorded through ``fail``.
        """
        pass

    @abstractmethod
    async def fail(self, job_id: str, error_reason: str, retryable: bool = True) -> SettleJob:
        """Record a failed attempt; requeue while retries remain"""
        pass

    @abstractmethod
    async def get_job(self, job_id: str) -> SettleJob | None:
        pass

    @abstractmethod
    async def size(self) -> int:
        """Number of pending jobs"""
        pass

    @abstractmethod
    async def close(self) -> None:
        pass
