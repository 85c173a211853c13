"""In-process email delivery queue with a single worker loop.

Jobs live in a deque: ``high`` and ``urgent`` jobs are pushed to the
front, everything else to the back. One asyncio task drains the deque and
exits once it is empty; the next ``enqueue`` starts a new one.

Per job the worker:

1. takes the first job that is due (retries carry a ``scheduled_at``),
   or waits until the earliest job is due, waking early on any enqueue;
2. pauses and re-checks when every enabled backend is rate limited,
   leaving the job where it was;
3. delivers through the failover sender. Success spaces out the next send.
   Failure bumps ``attempts``; the job is rescheduled ``attempts`` backoff
   steps ahead at the tail, or dropped once ``max_attempts`` is reached.

Nothing is persisted: jobs still pending at shutdown are lost.
"""

from __future__ import annotations

import asyncio
import contextlib
import contextvars
import logging
import time
from collections import deque
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from notification_service.core.exceptions import TerminalFailureException
from notification_service.infra.email.metrics import email_queue_depth, email_queue_jobs_total
from notification_service.infra.email.schemas import (
    EmailPayload,
    EmailPriority,
    QueuedEmailJob,
)
from notification_service.infra.logging.context import log_context

if TYPE_CHECKING:
    from notification_service.core.settings.delivery import DeliverySettings
    from notification_service.infra.email.failover import EmailFailoverSender
    from notification_service.infra.ratelimit.limiter import RateLimiter

logger = logging.getLogger(__name__)

JobEventCallback = Callable[[str, QueuedEmailJob], Awaitable[None]]
Sleeper = Callable[[float], Awaitable[None]]

JOB_ENQUEUED = "job_enqueued"
JOB_SUCCEEDED = "job_succeeded"
JOB_RETRYING = "job_retrying"
JOB_TERMINAL_FAILURE = "job_terminal_failure"


class EmailDeliveryQueue:
    """Priority deque of email jobs drained by one background task.

    Args:
        sender: Failover sender used for every attempt.
        rate_limiter: Limiter consulted for the "any backend can send" gate.
        settings: Backoff, pause, spacing and attempt defaults.
        on_event: Async callback receiving ``(event_type, job)`` for
            enqueued, succeeded, retrying and terminal-failure transitions.
        clock: Monotonic clock, injectable for tests.
        sleep: Async sleep, injectable for tests.

    Example:
        queue = EmailDeliveryQueue(sender, limiter, settings=get_delivery_settings())
        job_id = queue.enqueue(payload, priority="high")
        await queue.join()
    """

    def __init__(
        self,
        sender: EmailFailoverSender,
        rate_limiter: RateLimiter,
        *,
        settings: DeliverySettings | None = None,
        on_event: JobEventCallback | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        if settings is None:
            from notification_service.core.settings import get_delivery_settings

            settings = get_delivery_settings()

        self._sender = sender
        self._rate_limiter = rate_limiter
        self._settings = settings
        self._on_event = on_event
        self._clock = clock
        self._sleep = sleep

        self._jobs: deque[QueuedEmailJob] = deque()
        self._running = False
        self._task: asyncio.Task[None] | None = None
        self._wakeup = asyncio.Event()
        self._event_tasks: set[asyncio.Task[None]] = set()

    def __len__(self) -> int:
        return len(self._jobs)

    @property
    def is_running(self) -> bool:
        return self._running

    def pending(self) -> list[str]:
        """Ids of waiting jobs in dequeue order."""
        return [job.id for job in self._jobs]

    def enqueue(
        self,
        payload: EmailPayload,
        priority: EmailPriority | str = EmailPriority.NORMAL,
        max_attempts: int | None = None,
    ) -> str:
        """Add a job and make sure the worker is running.

        Must be called from inside a running event loop.

        Returns:
            The new job's id.

        Raises:
            ValueError: If ``priority`` is unknown or ``max_attempts`` is below 1.
        """
        priority = EmailPriority(priority)
        if max_attempts is None:
            max_attempts = self._settings.default_max_attempts
        elif max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")

        now = self._clock()
        job = QueuedEmailJob(
            payload=payload,
            priority=priority,
            max_attempts=max_attempts,
            scheduled_at=now,
            created_at=now,
        )

        if priority.is_elevated:
            self._jobs.appendleft(job)
        else:
            self._jobs.append(job)

        email_queue_jobs_total.labels(outcome="enqueued").inc()
        email_queue_depth.set(len(self._jobs))
        logger.info(
            "Email queued",
            extra={
                "job_id": job.id,
                "priority": priority.value,
                "to": payload.masked_recipient,
                "queue_length": len(self._jobs),
            },
        )

        self._wakeup.set()
        self._ensure_worker()
        self._spawn_event(JOB_ENQUEUED, job)
        return job.id

    def _ensure_worker(self) -> None:
        if self._running:
            return
        self._running = True
        # The worker outlives the caller, so it must not inherit its log context.
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name="email-delivery-worker", context=contextvars.Context()
        )

    async def join(self) -> None:
        """Wait until the worker has drained the queue."""
        while self._task is not None and not self._task.done():
            await asyncio.shield(self._task)
        if self._event_tasks:
            await asyncio.gather(*self._event_tasks)

    async def shutdown(self) -> None:
        """Stop the worker. Pending jobs are discarded."""
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._running = False

        dropped = len(self._jobs)
        if dropped:
            logger.warning("Delivery queue shut down with pending jobs", extra={"dropped": dropped})
            email_queue_jobs_total.labels(outcome="dropped").inc(dropped)
        self._jobs.clear()
        email_queue_depth.set(0)

    def _gate_open(self) -> bool:
        backends = self._sender.enabled_backends
        # With nothing enabled the attempt fails fast and follows the retry path.
        if not backends:
            return True
        return self._rate_limiter.can_send_any(backends)

    def _take_due(self) -> QueuedEmailJob | None:
        now = self._clock()
        for index, job in enumerate(self._jobs):
            if job.is_due(now):
                del self._jobs[index]
                return job
        return None

    async def _wait_for_due(self) -> None:
        delay = min(job.scheduled_at for job in self._jobs) - self._clock()
        if delay <= 0:
            return
        self._wakeup.clear()
        sleeper = asyncio.ensure_future(self._sleep(delay))
        waker = asyncio.ensure_future(self._wakeup.wait())
        try:
            await asyncio.wait({sleeper, waker}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            sleeper.cancel()
            waker.cancel()

    async def _run(self) -> None:
        try:
            while self._jobs:
                job = self._take_due()
                if job is None:
                    await self._wait_for_due()
                    continue

                if not self._gate_open():
                    self._jobs.appendleft(job)
                    email_queue_jobs_total.labels(outcome="rate_limited").inc()
                    logger.info(
                        "All email backends rate limited, pausing queue",
                        extra={
                            "job_id": job.id,
                            "pause_seconds": self._settings.rate_limit_pause_seconds,
                        },
                    )
                    await self._sleep(self._settings.rate_limit_pause_seconds)
                    continue

                email_queue_depth.set(len(self._jobs))
                with log_context(job_id=job.id):
                    await self._process(job)
        finally:
            self._running = False
            email_queue_depth.set(len(self._jobs))

    async def _process(self, job: QueuedEmailJob) -> None:
        try:
            delivered = await self._sender.send(job.payload)
        except Exception:
            logger.exception("Unexpected error delivering queued email", extra={"job_id": job.id})
            delivered = False

        if delivered:
            email_queue_jobs_total.labels(outcome="succeeded").inc()
            logger.info(
                "Queued email delivered",
                extra={"job_id": job.id, "attempts": job.attempts + 1},
            )
            await self._emit(JOB_SUCCEEDED, job)
            await self._sleep(self._settings.spacing_seconds)
            return

        job.attempts += 1
        if not job.exhausted:
            job.scheduled_at = self._clock() + job.attempts * self._settings.retry_backoff_seconds
            self._jobs.append(job)
            email_queue_jobs_total.labels(outcome="retrying").inc()
            logger.warning(
                "Queued email failed, will retry",
                extra={
                    "job_id": job.id,
                    "attempts": job.attempts,
                    "max_attempts": job.max_attempts,
                    "retry_in": job.attempts * self._settings.retry_backoff_seconds,
                },
            )
            await self._emit(JOB_RETRYING, job)
            return

        failure = TerminalFailureException(job_id=job.id, attempts=job.attempts)
        email_queue_jobs_total.labels(outcome="terminal_failure").inc()
        logger.error(
            failure.detail,
            extra={**failure.extra, "to": job.payload.masked_recipient},
        )
        await self._emit(JOB_TERMINAL_FAILURE, job)

    async def _emit(self, event_type: str, job: QueuedEmailJob) -> None:
        if self._on_event is None:
            return
        try:
            await self._on_event(event_type, job)
        except Exception:
            logger.exception(
                "Delivery event handler failed",
                extra={"event_type": event_type, "job_id": job.id},
            )

    def _spawn_event(self, event_type: str, job: QueuedEmailJob) -> None:
        if self._on_event is None:
            return
        task = asyncio.get_running_loop().create_task(self._emit(event_type, job))
        self._event_tasks.add(task)
        task.add_done_callback(self._event_tasks.discard)


__all__ = [
    "JOB_ENQUEUED",
    "JOB_RETRYING",
    "JOB_SUCCEEDED",
    "JOB_TERMINAL_FAILURE",
    "EmailDeliveryQueue",
    "JobEventCallback",
]
