"""
ModBoard - Username Backfill Queue
==================================

Writes usernames resolved during log enrichment back into the activity log.

DESIGN:
    A bounded asyncio.Queue drained by a fixed pool of worker tasks. Submit
    never blocks the request that produced the name: a full queue drops the
    job and reports it. Failed writes are logged and retried a few times.
"""

import asyncio
from dataclasses import dataclass
from typing import List, Optional

from src.core.logger import logger
from src.core.database import DatabaseManager
from src.utils.async_utils import create_safe_task


MAX_ATTEMPTS = 3
RETRY_DELAY = 0.5  # seconds, multiplied by the attempt number


@dataclass
class BackfillJob:
    user_id: str
    username: str
    attempts: int = 0


class BackfillQueue:
    """Bounded background queue of username backfill jobs."""

    def __init__(self, db: DatabaseManager, max_size: int = 500, workers: int = 2) -> None:
        self._db = db
        self._max_size = max_size
        self._worker_count = workers
        self._queue: Optional[asyncio.Queue] = None
        self._workers: List[asyncio.Task] = []
        self.completed = 0
        self.failed = 0
        self.dropped = 0

    @property
    def is_running(self) -> bool:
        return any(not task.done() for task in self._workers)

    @property
    def pending(self) -> int:
        return self._queue.qsize() if self._queue else 0

    def _ensure_queue(self) -> asyncio.Queue:
        # Created lazily so the queue binds to the running loop
        if self._queue is None:
            self._queue = asyncio.Queue(maxsize=self._max_size)
        return self._queue

    async def start(self) -> None:
        if self.is_running:
            return
        queue = self._ensure_queue()
        self._workers = [
            create_safe_task(self._worker(queue), f"Username Backfill {i + 1}")
            for i in range(self._worker_count)
        ]
        logger.tree("Username Backfill Started", [
            ("Workers", str(self._worker_count)),
            ("Queue Size", str(self._max_size)),
        ], emoji="📥")

    async def stop(self) -> None:
        for task in self._workers:
            task.cancel()
        if self._workers:
            await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []

    def submit(self, user_id: str, username: str) -> bool:
        """
        Queue a backfill without waiting.

        Returns:
            False if the queue is full.
        """
        try:
            queue = self._ensure_queue()
            queue.put_nowait(BackfillJob(user_id=str(user_id), username=username))
            return True
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning("Username Backfill Queue Full", [
                ("User ID", str(user_id)),
                ("Dropped Total", str(self.dropped)),
            ])
            return False

    async def join(self) -> None:
        """Wait until every queued job has been processed."""
        if self._queue is not None:
            await self._queue.join()

    async def _worker(self, queue: asyncio.Queue) -> None:
        while True:
            job: BackfillJob = await queue.get()
            try:
                await self._process(job)
            finally:
                queue.task_done()

    async def _process(self, job: BackfillJob) -> None:
        while True:
            job.attempts += 1
            try:
                updated = await asyncio.to_thread(self._db.backfill_username, job.user_id, job.username)
                self.completed += 1
                logger.debug("Username Backfilled", [
                    ("User ID", job.user_id),
                    ("Username", job.username),
                    ("Rows", str(updated)),
                ])
                return
            except Exception as e:
                if job.attempts >= MAX_ATTEMPTS:
                    self.failed += 1
                    logger.warning("Username Backfill Failed", [
                        ("User ID", job.user_id),
                        ("Attempts", str(job.attempts)),
                        ("Error Type", type(e).__name__),
                        ("Error", str(e)[:100]),
                    ])
                    return
                await asyncio.sleep(RETRY_DELAY * job.attempts)


__all__ = ["BackfillQueue", "BackfillJob"]
