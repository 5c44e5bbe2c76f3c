import logging
import math
import time
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor
from concurrent.futures import wait as futures_wait
from dataclasses import dataclass, field
from typing import List

from django.conf import settings

from .base import DeliveryResult, NotificationEvent
from .gateway import NotificationGateway
from .messages import render
from .recipients import RecipientSet, resolve_recipients

logger = logging.getLogger(__name__)

# Upper bound on a single wait() slice while jobs are still queued behind busy workers.
_POLL_SECONDS = 0.05


@dataclass
class DispatchReport:
    event_type: str
    reference_number: str
    results: List[DeliveryResult] = field(default_factory=list)

    @property
    def delivered(self):
        return [r for r in self.results if r.success]

    @property
    def failed(self):
        return [r for r in self.results if not r.success]

    @property
    def all_delivered(self):
        return not self.failed


class _Job:
    __slots__ = ('recipient', 'future', 'started_at')

    def __init__(self, recipient):
        self.recipient = recipient
        self.future = None
        self.started_at = None


class PendingDispatch:
    """A fan-out in flight. Call ``wait()`` to join every send."""

    def __init__(self, event, jobs, executor, timeout, workers=1):
        self.event = event
        self._jobs = jobs
        self._executor = executor
        self._timeout = timeout
        # A job still queued after every wave had its full timeout is abandoned too.
        waves = max(1, math.ceil(len(jobs) / max(1, workers)))
        self._queue_deadline = time.monotonic() + timeout * waves
        self._report = None

    def wait(self) -> DispatchReport:
        if self._report is not None:
            return self._report

        results = {}
        pending = {job.future: job for job in self._jobs}
        while pending:
            now = time.monotonic()
            # Each job's deadline runs from the moment a worker picked it up.
            for future, job in list(pending.items()):
                if job.started_at is None:
                    expired = now >= self._queue_deadline
                else:
                    expired = now - job.started_at >= self._timeout
                if expired:
                    future.cancel()
                    results[id(job)] = DeliveryResult(
                        job.recipient.channel, job.recipient.target, False,
                        job.recipient.audience, f'Timed out after {self._timeout}s',
                    )
                    del pending[future]
            if not pending:
                break

            deadlines = [j.started_at + self._timeout for j in pending.values() if j.started_at is not None]
            if len(deadlines) < len(pending):
                deadlines.append(min(now + _POLL_SECONDS, self._queue_deadline))
            slice_seconds = max(0.0, min(deadlines) - now)
            done, _ = futures_wait(
                list(pending), timeout=min(slice_seconds, self._timeout), return_when=FIRST_COMPLETED,
            )
            for future in done:
                job = pending.pop(future)
                results[id(job)] = self._collect(job)

        self._executor.shutdown(wait=False, cancel_futures=True)
        self._report = DispatchReport(
            event_type=self.event.event_type,
            reference_number=self.event.reference_number,
            results=[results[id(job)] for job in self._jobs],
        )
        _log_report(self._report)
        return self._report

    @staticmethod
    def _collect(job):
        try:
            return job.future.result()
        except Exception as exc:
            # _send never raises, but a cancelled or broken future still needs a result row
            return DeliveryResult(
                job.recipient.channel, job.recipient.target, False,
                job.recipient.audience, str(exc)[:500] or exc.__class__.__name__,
            )


def start_dispatch(event: NotificationEvent, recipients: RecipientSet = None, gateway=None) -> PendingDispatch:
    """Submit one send per recipient/channel to a thread pool and return at once.

    Messages are rendered here, on the calling thread. Worker threads only
    talk to the providers; they never touch the database.
    """
    if recipients is None:
        recipients = resolve_recipients(event)
    gateway = gateway or NotificationGateway()
    timeout = settings.NOTIFICATION_TIMEOUT_SECONDS

    jobs = [_Job(recipient) for recipient in recipients.expand()]
    rendered = {audience: render(event, audience) for audience in {j.recipient.audience for j in jobs}}

    workers = max(1, min(len(jobs), settings.NOTIFICATION_MAX_WORKERS))
    executor = ThreadPoolExecutor(
        max_workers=workers,
        thread_name_prefix=f'notify-{event.reference_number}',
    )
    for job in jobs:
        job.future = executor.submit(_send, gateway, job, rendered[job.recipient.audience])

    logger.info(
        'Dispatching %s for %s to %d recipient(s)',
        event.event_type, event.reference_number, len(jobs),
    )
    return PendingDispatch(event, jobs, executor, timeout, workers)


def dispatch_notification(event: NotificationEvent, recipients: RecipientSet = None, gateway=None) -> DispatchReport:
    """Fan out one event to every recipient concurrently and wait for all sends."""
    return start_dispatch(event, recipients, gateway).wait()


def _send(gateway, job, message):
    job.started_at = time.monotonic()
    recipient = job.recipient
    return gateway.deliver(recipient.channel, recipient.target, message, recipient.audience)


def _log_report(report):
    logger.info(
        '%s for %s: %d/%d delivered',
        report.event_type, report.reference_number,
        len(report.delivered), len(report.results),
    )
    for result in report.failed:
        logger.warning(
            '%s to %s (%s) failed for %s: %s',
            result.channel, result.target, result.audience,
            report.reference_number, result.error,
        )
