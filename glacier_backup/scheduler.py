"""
Module for bounding how many files are uploaded at the same time.
"""
import logging
from concurrent.futures import ThreadPoolExecutor, wait, FIRST_EXCEPTION
from typing import Callable, List, Sequence, TypeVar

from .config import DEFAULT_CONCURRENT_UPLOADS

logger = logging.getLogger(__name__)

T = TypeVar('T')
R = TypeVar('R')

class UploadScheduler:
    """Runs one task per item with at most `limit` tasks active at once."""

    def __init__(self, limit: int = DEFAULT_CONCURRENT_UPLOADS):
        if limit < 1:
            raise ValueError(f"Concurrency limit must be at least 1, got {limit}")
        self.limit = limit

    def run(self, items: Sequence[T], task: Callable[[T], R]) -> List[R]:
        """Run task over every item and wait for all of them.

        Items are submitted in order, so with a free slot the earlier item
        always starts first. A task keeps its slot until it returns.

        Args:
            items: Work items, usually pending file paths
            task: Callable applied to each item

        Returns:
            Task results in the same order as items

        Raises:
            Exception: The first exception escaping a task. Tasks that have
                not started yet are cancelled.
        """
        if not items:
            return []

        logger.debug(f"Scheduling {len(items)} tasks with {self.limit} slots")

        with ThreadPoolExecutor(max_workers=self.limit, thread_name_prefix='upload') as executor:
            futures = [executor.submit(task, item) for item in items]
            done, not_done = wait(futures, return_when=FIRST_EXCEPTION)

            for future in done:
                if future.exception() is not None:
                    for pending in not_done:
                        pending.cancel()
                    raise future.exception()

        return [future.result() for future in futures]
