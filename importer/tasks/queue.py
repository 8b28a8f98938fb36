"""Job queue contract, message envelope and the in-memory lease queue.

Delivery is at-least-once. A worker leases a message, and the lease stays
exclusive until it is acked, nacked or its deadline passes. An expired lease
puts the message back in the ready queue for another worker, which is the
only timeout in the pipeline. Nacked messages come back after an exponential
backoff until max_attempts is reached, then move to the dead-letter list.
"""
from __future__ import annotations

import base64
import enum
import logging
import threading
import time
import uuid
from collections import deque
from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel

from importer.models.import_job import JobKind

logger = logging.getLogger(__name__)


class JobMessage(BaseModel):
    """Queue payload for one import job. The file travels inside the message."""

    job_id: str
    kind: JobKind
    filename: str
    submitted_by: int
    cycle_id: Optional[int] = None
    content_b64: str

    @classmethod
    def build(
        cls,
        job_id: str,
        kind: JobKind,
        filename: str,
        raw_bytes: bytes,
        submitted_by: int,
        cycle_id: Optional[int] = None,
    ) -> "JobMessage":
        return cls(
            job_id=job_id,
            kind=kind,
            filename=filename,
            submitted_by=submitted_by,
            cycle_id=cycle_id,
            content_b64=base64.b64encode(raw_bytes).decode("ascii"),
        )

    @property
    def raw_bytes(self) -> bytes:
        return base64.b64decode(self.content_b64)


@dataclass
class Lease:
    """An exclusive, time-bounded claim on one delivery of a message."""

    lease_id: str
    message: JobMessage
    attempt: int
    deadline: float
    receipt: Optional[str] = None  # Backend handle used to ack or nack


class NackResult(str, enum.Enum):
    """What happened to a message after a failed delivery was released."""

    RETRY = "retry"  # Re-queued after a backoff
    DEAD_LETTER = "dead_letter"  # Attempts exhausted
    STALE = "stale"  # Lease had already expired; another delivery owns the message


def backoff_delay(attempt: int, base_seconds: float) -> float:
    """Delay before re-delivering a message whose given attempt failed."""
    return base_seconds * (2 ** max(attempt - 1, 0))


class JobPublisher:
    """Anything that accepts job messages for asynchronous processing."""

    def enqueue(self, message: JobMessage) -> None:
        raise NotImplementedError


class JobQueue(JobPublisher):
    """A publisher that workers can also lease from."""

    def lease(self, timeout: float = 0.0) -> Optional[Lease]:
        raise NotImplementedError

    def ack(self, lease: Lease) -> None:
        raise NotImplementedError

    def nack(self, lease: Lease, error: str = "") -> NackResult:
        """Release a failed delivery and report whether it was retried, dead-lettered or stale."""
        raise NotImplementedError

    def depth(self) -> int:
        raise NotImplementedError

    def purge(self) -> None:
        raise NotImplementedError


@dataclass
class _Envelope:
    message: JobMessage
    attempt: int = 0
    ready_at: float = 0.0


class InMemoryJobQueue(JobQueue):
    """Thread-safe lease queue held in process memory."""

    def __init__(
        self,
        lease_timeout: float = 300.0,
        max_attempts: int = 3,
        backoff_base_seconds: float = 2.0,
        clock=time.monotonic,
    ):
        self.lease_timeout = lease_timeout
        self.max_attempts = max_attempts
        self.backoff_base_seconds = backoff_base_seconds
        self._clock = clock
        self._ready: deque[_Envelope] = deque()
        self._delayed: list[_Envelope] = []
        self._leased: dict[str, tuple[Lease, _Envelope]] = {}
        self.dead_letters: list[tuple[JobMessage, str]] = []
        self._cond = threading.Condition()

    def enqueue(self, message: JobMessage) -> None:
        with self._cond:
            self._ready.append(_Envelope(message=message))
            self._cond.notify()
        logger.debug(f"📥 Enqueued job {message.job_id}")

    def _reclaim(self, now: float) -> None:
        for lease_id, (lease, envelope) in list(self._leased.items()):
            if lease.deadline <= now:
                del self._leased[lease_id]
                self._ready.appendleft(envelope)
                logger.warning(
                    f"⏰ Lease {lease_id} on job {lease.message.job_id} expired, re-queued"
                )
        due = [envelope for envelope in self._delayed if envelope.ready_at <= now]
        if due:
            self._delayed = [e for e in self._delayed if e.ready_at > now]
            self._ready.extend(due)

    def _next_wakeup(self, now: float) -> Optional[float]:
        times = [lease.deadline for lease, _ in self._leased.values()]
        times += [envelope.ready_at for envelope in self._delayed]
        return min(times) - now if times else None

    def lease(self, timeout: float = 0.0) -> Optional[Lease]:
        end = self._clock() + timeout
        with self._cond:
            while True:
                now = self._clock()
                self._reclaim(now)
                if self._ready:
                    envelope = self._ready.popleft()
                    envelope.attempt += 1
                    lease = Lease(
                        lease_id=uuid.uuid4().hex,
                        message=envelope.message,
                        attempt=envelope.attempt,
                        deadline=now + self.lease_timeout,
                    )
                    self._leased[lease.lease_id] = (lease, envelope)
                    return lease
                remaining = end - now
                if remaining <= 0:
                    return None
                wakeup = self._next_wakeup(now)
                self._cond.wait(min(remaining, wakeup) if wakeup is not None else remaining)

    def ack(self, lease: Lease) -> None:
        with self._cond:
            if self._leased.pop(lease.lease_id, None) is None:
                logger.warning(f"⚠️ Ack for unknown or expired lease {lease.lease_id}")

    def nack(self, lease: Lease, error: str = "") -> NackResult:
        with self._cond:
            entry = self._leased.pop(lease.lease_id, None)
            if entry is None:
                logger.warning(f"⚠️ Nack for unknown or expired lease {lease.lease_id}")
                return NackResult.STALE
            _, envelope = entry
            if envelope.attempt >= self.max_attempts:
                self.dead_letters.append((envelope.message, error))
                logger.error(
                    f"💀 Job {envelope.message.job_id} dead-lettered after "
                    f"{envelope.attempt} attempts: {error}"
                )
                return NackResult.DEAD_LETTER
            envelope.ready_at = self._clock() + backoff_delay(
                envelope.attempt, self.backoff_base_seconds
            )
            self._delayed.append(envelope)
            self._cond.notify()
            return NackResult.RETRY

    def depth(self) -> int:
        with self._cond:
            return len(self._ready) + len(self._delayed)

    def purge(self) -> None:
        with self._cond:
            self._ready.clear()
            self._delayed.clear()
            self._leased.clear()
            self.dead_letters.clear()


def create_queue(settings) -> JobPublisher:
    """Build the queue client configured by settings.queue_backend."""
    if settings.queue_backend == "memory":
        return InMemoryJobQueue(
            lease_timeout=settings.lease_timeout_seconds,
            max_attempts=settings.max_attempts,
            backoff_base_seconds=settings.backoff_base_seconds,
        )
    if settings.queue_backend == "redis":
        from importer.tasks.redis_queue import RedisJobQueue

        return RedisJobQueue.from_settings(settings)
    if settings.queue_backend == "celery":
        from importer.tasks.import_tasks import CeleryJobPublisher

        return CeleryJobPublisher()
    raise ValueError(f"Unknown queue backend: {settings.queue_backend}")
