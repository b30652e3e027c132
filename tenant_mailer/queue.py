"""Deferred delivery: the queued mail job and a minimal in-process queue."""

from __future__ import annotations

from collections import defaultdict, deque
from email.message import EmailMessage
from enum import Enum
from typing import Protocol

from tenant_mailer.events import EventDispatcher, MailFailed, MailSuccess
from tenant_mailer.logs import StructuredLogger
from tenant_mailer.message import message_id
from tenant_mailer.transport import Mailer

DEFAULT_QUEUE = "default"


def queue_name(queue: str | Enum | None) -> str:
    if queue is None:
        return DEFAULT_QUEUE
    if isinstance(queue, Enum):
        return str(queue.value)
    return queue


class QueuedMail:
    """A (mailer, message) pair waiting to be delivered by a worker."""

    def __init__(self, mailer: Mailer, message: EmailMessage) -> None:
        self.mailer = mailer
        self.message = message
        self.queue: str = DEFAULT_QUEUE

    def on_queue(self, queue: str | Enum | None) -> QueuedMail:
        self.queue = queue_name(queue)
        return self

    def handle(self, events: EventDispatcher, logger: StructuredLogger | None = None) -> None:
        log = logger or StructuredLogger()
        mid = message_id(self.message)
        try:
            accepted = self.mailer.send(self.message)
        except Exception as exc:  # noqa: BLE001
            events.dispatch(MailFailed(error_message=str(exc), error_type=exc.__class__.__name__))
            log.error(
                "queued_mail_failed",
                stage="queue",
                queue=self.queue,
                message_id=mid,
                error_type=exc.__class__.__name__,
                error_message=str(exc),
            )
            return
        finally:
            self.mailer.transport.stop()

        if accepted > 0:
            events.dispatch(MailSuccess(message_id=mid))
            log.info("queued_mail_sent", stage="queue", queue=self.queue, message_id=mid, accepted=accepted)
        else:
            events.dispatch(MailFailed(error_message="no recipients accepted"))
            log.warning("queued_mail_not_accepted", stage="queue", queue=self.queue, message_id=mid)


class JobDispatcher(Protocol):
    def dispatch(self, job: QueuedMail) -> None:
        """Enqueue a job for later execution."""


class InMemoryJobQueue:
    """FIFO lanes keyed by queue name, drained explicitly with ``work``."""

    def __init__(self) -> None:
        self._lanes: dict[str, deque[QueuedMail]] = defaultdict(deque)

    def dispatch(self, job: QueuedMail) -> None:
        self._lanes[job.queue].append(job)

    def pending(self, queue: str | Enum | None = DEFAULT_QUEUE) -> list[QueuedMail]:
        return list(self._lanes.get(queue_name(queue), ()))

    def work(
        self,
        queue: str | Enum | None = DEFAULT_QUEUE,
        *,
        events: EventDispatcher,
        logger: StructuredLogger | None = None,
    ) -> int:
        lane = self._lanes.get(queue_name(queue))
        processed = 0
        while lane:
            lane.popleft().handle(events, logger)
            processed += 1
        return processed
