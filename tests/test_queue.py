"""Tests for the in-memory lease queue and queue selection."""
import threading

import pytest

from helpers import FakeClock
from importer.config import Settings
from importer.models.import_job import JobKind
from importer.tasks.queue import (
    InMemoryJobQueue,
    JobMessage,
    NackResult,
    backoff_delay,
    create_queue,
)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def queue(clock):
    return InMemoryJobQueue(lease_timeout=30.0, max_attempts=3, backoff_base_seconds=2.0, clock=clock)


def make_message(job_id="job-1", content=b"a,b\n1,2\n") -> JobMessage:
    return JobMessage.build(job_id, JobKind.DEALER_IMPORT, "dealers.csv", content, submitted_by=1)


def test_message_carries_the_file_bytes():
    """Test the message carries the file bytes."""
    message = make_message(content=b"dealer_code\n\xe2\x82\xb9\n")
    restored = JobMessage.model_validate(message.model_dump(mode="json"))
    assert restored.raw_bytes == b"dealer_code\n\xe2\x82\xb9\n"
    assert restored.kind == JobKind.DEALER_IMPORT


@pytest.mark.parametrize("attempt,expected", [(1, 2.0), (2, 4.0), (3, 8.0)])
def test_backoff_doubles_per_attempt(attempt, expected):
    """Test backoff doubles per attempt."""
    assert backoff_delay(attempt, 2.0) == expected


def test_lease_is_fifo_and_exclusive(queue):
    """Test leases are FIFO and exclusive."""
    queue.enqueue(make_message("job-1"))
    queue.enqueue(make_message("job-2"))

    first = queue.lease()
    second = queue.lease()
    assert (first.message.job_id, second.message.job_id) == ("job-1", "job-2")
    assert first.attempt == 1
    assert queue.lease() is None
    assert queue.depth() == 0


def test_acked_message_is_not_redelivered(queue, clock):
    """Test an acked message is not redelivered."""
    queue.enqueue(make_message())
    queue.ack(queue.lease())
    clock.advance(60)
    assert queue.lease() is None


def test_expired_lease_is_redelivered(queue, clock):
    """Test an expired lease is redelivered."""
    queue.enqueue(make_message())
    first = queue.lease()

    clock.advance(29)
    assert queue.lease() is None
    clock.advance(1)
    second = queue.lease()
    assert second.message.job_id == "job-1"
    assert second.attempt == 2
    assert second.lease_id != first.lease_id

    # The stale lease can no longer settle the message
    queue.ack(first)
    clock.advance(30)
    assert queue.lease().attempt == 3


def test_nack_retries_after_backoff(queue, clock):
    """Test a nacked message comes back after its backoff."""
    queue.enqueue(make_message())
    assert queue.nack(queue.lease(), "boom") == NackResult.RETRY
    assert queue.depth() == 1

    assert queue.lease() is None
    clock.advance(2)
    retry = queue.lease()
    assert retry.attempt == 2

    assert queue.nack(retry, "boom") == NackResult.RETRY
    clock.advance(3)
    assert queue.lease() is None
    clock.advance(1)
    assert queue.lease().attempt == 3


def test_nack_on_last_attempt_dead_letters(queue, clock):
    """Test a nack on the last attempt dead-letters the message."""
    message = make_message()
    queue.enqueue(message)
    for _ in range(2):
        assert queue.nack(queue.lease(), "boom") == NackResult.RETRY
        clock.advance(60)

    assert queue.nack(queue.lease(), "still broken") == NackResult.DEAD_LETTER
    assert queue.dead_letters == [(message, "still broken")]
    clock.advance(60)
    assert queue.lease() is None


def test_nack_on_expired_lease_is_ignored(queue, clock):
    """Test a nack on an expired lease is reported stale."""
    queue.enqueue(make_message())
    stale = queue.lease()
    clock.advance(31)
    fresh = queue.lease()
    assert queue.nack(stale, "late") == NackResult.STALE
    assert queue.nack(fresh, "boom") == NackResult.RETRY


def test_lease_waits_for_enqueue():
    """Test lease blocks until a message is enqueued."""
    queue = InMemoryJobQueue(lease_timeout=30.0)
    timer = threading.Timer(0.05, queue.enqueue, args=[make_message()])
    timer.start()
    try:
        lease = queue.lease(timeout=5.0)
    finally:
        timer.cancel()
    assert lease is not None
    assert lease.message.job_id == "job-1"


def test_purge_drops_everything(queue):
    """Test purge drops every message."""
    queue.enqueue(make_message("job-1"))
    queue.enqueue(make_message("job-2"))
    queue.lease()
    queue.purge()
    assert queue.depth() == 0
    assert queue.lease() is None


def test_create_queue_builds_memory_backend():
    """Test the memory backend builds an in-memory queue."""
    settings = Settings(queue_backend="memory", lease_timeout_seconds=12, max_attempts=5)
    queue = create_queue(settings)
    assert isinstance(queue, InMemoryJobQueue)
    assert queue.lease_timeout == 12
    assert queue.max_attempts == 5
