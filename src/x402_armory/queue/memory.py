"""
In-memory settlement queue for single-instance deployments
"""

import logging
import threading
import time
import uuid
from collections import deque
from typing import Callable

from x402_armory.exceptions import SettlementQueueError
from x402_armory.nonce import NonceKey
from x402_armory.queue.base import JobState, SettleJob, SettlementQueue
from x402_armory.types import AnyPaymentPayload, AnyPaymentRequirements, SettleResponse

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 3


class MemorySettlementQueue(SettlementQueue):
    """Settlement queue backed by a deque and dicts guarded by a lock"""

    def __init__(
        self,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay: float = 0.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Args:
            max_retries: Failed attempts after which a job is failed for good
            retry_delay: Seconds a requeued job waits before it is ready again
            clock: Time source
        """
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self._max_retries = max_retries
        self._retry_delay = retry_delay
        self._clock = clock
        self._pending: deque[SettleJob] = deque()
        self._jobs: dict[str, SettleJob] = {}
        self._lock = threading.Lock()
        self._closed = False

    async def enqueue(
        self,
        payload: AnyPaymentPayload,
        requirements: AnyPaymentRequirements,
        nonce_key: NonceKey,
    ) -> SettleJob:
        now = self._clock()
        job = SettleJob(
            id=f"job_{int(now * 1000)}_{uuid.uuid4().hex}",
            payload=payload,
            requirements=requirements,
            nonce_key=nonce_key,
            created_at=now,
            available_at=now,
        )
        with self._lock:
            self._check_open()
            self._pending.append(job)
            self._jobs[job.id] = job
        logger.info("Queued settlement job %s for nonce %s", job.id, nonce_key.nonce)
        return job

    async def dequeue(self) -> SettleJob | None:
        now = self._clock()
        with self._lock:
            self._check_open()
            for job in self._pending:
                if job.available_at <= now:
                    self._pending.remove(job)
                    job.state = JobState.PROCESSING
                    return job
        return None

    async def complete(self, job_id: str, result: SettleResponse) -> SettleJob:
        if not result.success:
            return await self.fail(job_id, result.error_reason or "unknown")
        with self._lock:
            self._check_open()
            job = self._processing(job_id)
            job.state = JobState.COMPLETED
            job.result = result
        logger.info("Settlement job %s completed: tx=%s", job_id, result.transaction)
        return job

    async def fail(self, job_id: str, error_reason: str, retryable: bool = True) -> SettleJob:
        with self._lock:
            self._check_open()
            job = self._processing(job_id)
            job.retries += 1
            job.last_error = error_reason
            if retryable and job.retries < self._max_retries:
                job.state = JobState.PENDING
                job.available_at = self._clock() + self._retry_delay
                self._pending.append(job)
            else:
                job.state = JobState.FAILED
        if job.state == JobState.FAILED:
            logger.error(
                "Settlement job %s failed after %d attempt(s): %s", job_id, job.retries, error_reason
            )
        else:
            logger.warning(
                "Settlement job %s attempt %d/%d failed: %s",
                job_id,
                job.retries,
                self._max_retries,
                error_reason,
            )
        return job

    async def get_job(self, job_id: str) -> SettleJob | None:
        with self._lock:
            return self._jobs.get(job_id)

    async def size(self) -> int:
        with self._lock:
            return len(self._pending)

    def count(self, state: JobState) -> int:
        """Number of known jobs in *state*"""
        with self._lock:
            return sum(1 for job in self._jobs.values() if job.state == state)

    async def close(self) -> None:
        with self._lock:
            self._closed = True
            self._pending.clear()
            self._jobs.clear()

    @property
    def closed(self) -> bool:
        return self._closed

    def _check_open(self) -> None:
        if self._closed:
            raise SettlementQueueError("Settlement queue is closed")

    def _processing(self, job_id: str) -> SettleJob:
        job = self._jobs.get(job_id)
        if job is None or job.state != JobState.PROCESSING:
            raise SettlementQueueError(f"Job {job_id} is not being processed")
        return job
