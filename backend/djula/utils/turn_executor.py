# /djula/utils/turn_executor.py

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict

from djula.models.conversation import InboundMessage

# This utility runs conversation turns in the background after the webhook has
# been acknowledged. Turns for different customers run concurrently; turns for
# the same customer run strictly one after another, in arrival order.

logger = logging.getLogger(__name__)


class TurnExecutor:
    """
    One asyncio queue and one worker task per customer id. A worker exits after
    `idle_seconds` without work and is recreated by the next submission.
    """

    def __init__(self, handler: Callable[[InboundMessage], Awaitable[Any]], idle_seconds: float = 30.0):
        self.handler = handler
        self.idle_seconds = idle_seconds
        self._queues: Dict[str, asyncio.Queue] = {}
        self._workers: Dict[str, asyncio.Task] = {}
        self.running = False

    def start(self):
        self.running = True
        logger.info("Turn executor started.")

    async def stop(self):
        self.running = False
        workers = list(self._workers.values())
        for worker in workers:
            worker.cancel()
        await asyncio.gather(*workers, return_exceptions=True)
        self._workers.clear()
        self._queues.clear()
        logger.info(f"Turn executor stopped ({len(workers)} workers cancelled).")

    async def submit(self, message: InboundMessage):
        """Queues a turn behind any turn already pending for the same customer."""
        if not self.running:
            raise RuntimeError("Turn executor is not running")
        customer_id = message.customer_id
        queue = self._queues.get(customer_id)
        if queue is None:
            queue = self._queues[customer_id] = asyncio.Queue()
        queue.put_nowait(message)

        worker = self._workers.get(customer_id)
        if worker is None or worker.done():
            self._workers[customer_id] = asyncio.create_task(
                self._worker(customer_id, queue), name=f"turn-worker-{customer_id}"
            )

    async def drain(self):
        """Waits until every queued turn has been processed."""
        await asyncio.gather(*(queue.join() for queue in list(self._queues.values())))

    @property
    def active_workers(self) -> int:
        return sum(1 for worker in self._workers.values() if not worker.done())

    async def _worker(self, customer_id: str, queue: asyncio.Queue):
        while True:
            try:
                message = await asyncio.wait_for(queue.get(), timeout=self.idle_seconds)
            except asyncio.TimeoutError:
                # No await between this check and the removal, so submit() cannot interleave.
                if queue.empty():
                    self._queues.pop(customer_id, None)
                    self._workers.pop(customer_id, None)
                    return
                continue

            try:
                await self.handler(message)
            except Exception as e:
                logger.error(f"Turn for {customer_id} (message {message.message_id}) failed: {e}", exc_info=True)
            finally:
                queue.task_done()
