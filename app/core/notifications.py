"""
Best-effort hand-off of shared-subject notices to departments.

Publishing never blocks and never raises into the caller: notices go onto a
bounded queue and are dropped (with a warning) when it is full. A background
consumer started with the application delivers them at most once.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import date

from app.core.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SharedSubjectNotice:
    subject_name: str
    exam_date: date
    origin_department: str
    department: str
    assigned_by: str


class NotificationDispatcher:
    def __init__(self, maxsize: int = 100) -> None:
        self._queue: "asyncio.Queue[SharedSubjectNotice]" = asyncio.Queue(maxsize=maxsize)
        self.delivered = 0

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def publish(self, notice: SharedSubjectNotice) -> bool:
        try:
            self._queue.put_nowait(notice)
        except asyncio.QueueFull:
            logger.warning(
                "Notification queue full; dropping notice for %s department (%s)",
                notice.department,
                notice.subject_name,
            )
            return False
        return True

    async def deliver(self, notice: SharedSubjectNotice) -> None:
        # No outbound channel yet: delivery is a log line.
        logger.info(
            "Notify %s department: %s scheduled on %s by %s department (assigned by %s)",
            notice.department,
            notice.subject_name,
            notice.exam_date.isoformat(),
            notice.origin_department,
            notice.assigned_by,
        )

    async def drain(self) -> None:
        """Deliver everything currently queued."""
        while not self._queue.empty():
            await self._deliver_next()

    async def run(self) -> None:
        while True:
            await self._deliver_next()

    async def _deliver_next(self) -> None:
        notice = await self._queue.get()
        try:
            await self.deliver(notice)
            self.delivered += 1
        except Exception:
            logger.exception("Failed to deliver notice to %s department", notice.department)
        finally:
            self._queue.task_done()


dispatcher = NotificationDispatcher(settings.notification_queue_size)


def get_notifier() -> NotificationDispatcher:
    return dispatcher
