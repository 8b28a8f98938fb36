"""Redis-backed lease queue.

Data structures in Redis (prefix = queue name):
 1. List:       {prefix}:ready   - envelopes ready to be leased (LPUSH in, RPOP out)
 2. Sorted Set: {prefix}:delayed - scores=ready_at_ts, members=envelopes waiting out a backoff
 3. Sorted Set: {prefix}:leased  - scores=lease deadline, members=leased envelopes
 4. List:       {prefix}:dead    - envelopes that exhausted their attempts

On lease, a Lua script promotes due delayed envelopes, returns expired
leases to the head of the ready list, pops one envelope, bumps its attempt
counter and registers the lease, all atomically. The leased member string
is the receipt used to ack or nack.
"""
from __future__ import annotations

import json
import logging
import time
import uuid
from typing import Optional

import redis

from importer.tasks.queue import JobMessage, JobQueue, Lease, NackResult, backoff_delay

logger = logging.getLogger(__name__)

LEASE_SCRIPT = """
local ready, delayed, leased = KEYS[1], KEYS[2], KEYS[3]
local now = tonumber(ARGV[1])
local deadline = tonumber(ARGV[2])
for _, item in ipairs(redis.call('ZRANGEBYSCORE', delayed, '-inf', now)) do
  redis.call('ZREM', delayed, item)
  redis.call('LPUSH', ready, item)
end
for _, item in ipairs(redis.call('ZRANGEBYSCORE', leased, '-inf', now)) do
  redis.call('ZREM', leased, item)
  redis.call('RPUSH', ready, item)
end
local item = redis.call('RPOP', ready)
if not item then
  return false
end
local envelope = cjson.decode(item)
envelope['attempt'] = envelope['attempt'] + 1
local leased_item = cjson.encode(envelope)
redis.call('ZADD', leased, deadline, leased_item)
return leased_item
"""


class RedisJobQueue(JobQueue):
    """At-least-once lease queue stored in Redis."""

    def __init__(
        self,
        client: redis.Redis,
        name: str = "bulk-import",
        lease_timeout: float = 300.0,
        max_attempts: int = 3,
        backoff_base_seconds: float = 2.0,
        poll_interval: float = 1.0,
        clock=time.time,
    ):
        self._client = client
        self.ready_key = f"{name}:ready"
        self.delayed_key = f"{name}:delayed"
        self.leased_key = f"{name}:leased"
        self.dead_key = f"{name}:dead"
        self.lease_timeout = lease_timeout
        self.max_attempts = max_attempts
        self.backoff_base_seconds = backoff_base_seconds
        self.poll_interval = poll_interval
        self._clock = clock
        self._lease_script = client.register_script(LEASE_SCRIPT)

    @classmethod
    def from_settings(cls, settings) -> "RedisJobQueue":
        return cls(
            redis.Redis.from_url(settings.redis_url, decode_responses=True),
            name=settings.queue_name,
            lease_timeout=settings.lease_timeout_seconds,
            max_attempts=settings.max_attempts,
            backoff_base_seconds=settings.backoff_base_seconds,
            poll_interval=settings.poll_interval_seconds,
        )

    def enqueue(self, message: JobMessage) -> None:
        envelope = {
            "delivery_id": uuid.uuid4().hex,
            "attempt": 0,
            "message": message.model_dump(mode="json"),
        }
        self._client.lpush(self.ready_key, json.dumps(envelope))
        logger.debug(f"📥 Enqueued job {message.job_id} on {self.ready_key}")

    def _try_lease(self) -> Optional[Lease]:
        now = self._clock()
        deadline = now + self.lease_timeout
        receipt = self._lease_script(
            keys=[self.ready_key, self.delayed_key, self.leased_key],
            args=[now, deadline],
        )
        if not receipt:
            return None
        if isinstance(receipt, bytes):
            receipt = receipt.decode("utf-8")
        envelope = json.loads(receipt)
        return Lease(
            lease_id=envelope["delivery_id"],
            message=JobMessage.model_validate(envelope["message"]),
            attempt=int(envelope["attempt"]),
            deadline=deadline,
            receipt=receipt,
        )

    def lease(self, timeout: float = 0.0) -> Optional[Lease]:
        end = self._clock() + timeout
        while True:
            lease = self._try_lease()
            if lease is not None:
                return lease
            remaining = end - self._clock()
            if remaining <= 0:
                return None
            time.sleep(min(self.poll_interval, remaining))

    def ack(self, lease: Lease) -> None:
        if not self._client.zrem(self.leased_key, lease.receipt):
            logger.warning(f"⚠️ Ack for expired lease on job {lease.message.job_id}")

    def nack(self, lease: Lease, error: str = "") -> NackResult:
        if not self._client.zrem(self.leased_key, lease.receipt):
            logger.warning(f"⚠️ Nack for expired lease on job {lease.message.job_id}")
            return NackResult.STALE
        if lease.attempt >= self.max_attempts:
            dead = json.loads(lease.receipt)
            dead["error"] = error
            self._client.lpush(self.dead_key, json.dumps(dead))
            logger.error(
                f"💀 Job {lease.message.job_id} dead-lettered after {lease.attempt} attempts: {error}"
            )
            return NackResult.DEAD_LETTER
        ready_at = self._clock() + backoff_delay(lease.attempt, self.backoff_base_seconds)
        self._client.zadd(self.delayed_key, {lease.receipt: ready_at})
        return NackResult.RETRY

    def depth(self) -> int:
        return int(self._client.llen(self.ready_key)) + int(self._client.zcard(self.delayed_key))

    def purge(self) -> None:
        self._client.delete(self.ready_key, self.delayed_key, self.leased_key, self.dead_key)
