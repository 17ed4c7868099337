"""Per-session request queue that runs chatbot turns one at a time, in arrival order."""

import asyncio
import contextlib
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Set

import structlog

logger = structlog.get_logger()


@dataclass
class QueuedRequest:
    """Represents a queued request with its context."""

    session_id: str
    task: Callable[..., Awaitable[Any]]
    args: tuple
    kwargs: dict
    future: asyncio.Future


class RequestQueue:
    """Serializes work per session while bounding global concurrency.

    Each session gets a FIFO queue drained by its own worker task; the worker
    exits once the queue is empty and is recreated on the next request.
    """

    def __init__(
        self,
        max_concurrent: int = 10,
        queue_timeout: float = 30.0
    ) -> None:
        self.max_concurrent = max_concurrent
        self.queue_timeout = queue_timeout
        self.semaphore = asyncio.Semaphore(max_concurrent)
        self._lock = asyncio.Lock()
        self.queues: Dict[str, asyncio.Queue] = {}
        self._tasks: Set[asyncio.Task] = set()
        logger.info("request_queue_initialized", max_concurrent=max_concurrent)

    @property
    def active_sessions(self) -> int:
        return len(self.queues)

    async def _process_queue(self, session_id: str, queue: asyncio.Queue) -> None:
        """Run queued requests for a session until its queue drains."""
        try:
            while True:
                request: QueuedRequest = await queue.get()
                async with self.semaphore:
                    try:
                        result = await asyncio.wait_for(
                            request.task(*request.args, **request.kwargs),
                            timeout=self.queue_timeout
                        )
                        if not request.future.done():
                            request.future.set_result(result)
                    except asyncio.TimeoutError:
                        if not request.future.done():
                            request.future.set_exception(
                                TimeoutError("Request processing timed out")
                            )
                    except Exception as e:
                        if not request.future.done():
                            request.future.set_exception(e)
                        logger.error(
                            "request_processing_error",
                            session_id=session_id,
                            error=str(e)
                        )
                queue.task_done()

                async with self._lock:
                    if queue.empty():
                        self.queues.pop(session_id, None)
                        return
        except asyncio.CancelledError:
            logger.info("queue_processor_cancelled", session_id=session_id)
            raise

    async def enqueue_request(
        self,
        session_id: str,
        task: Callable[..., Awaitable[Any]],
        *args: Any,
        **kwargs: Any
    ) -> Any:
        """Enqueue a request and wait for its execution."""
        future = asyncio.get_running_loop().create_future()
        request = QueuedRequest(
            session_id=session_id,
            task=task,
            args=args,
            kwargs=kwargs,
            future=future,
        )

        async with self._lock:
            queue = self.queues.get(session_id)
            if queue is None:
                queue = asyncio.Queue()
                self.queues[session_id] = queue
                worker = asyncio.create_task(self._process_queue(session_id, queue))
                self._tasks.add(worker)
                worker.add_done_callback(self._tasks.discard)
            queue.put_nowait(request)

        try:
            return await asyncio.wait_for(future, timeout=self.queue_timeout)
        except asyncio.TimeoutError:
            logger.error("request_timeout", session_id=session_id)
            raise TimeoutError("Request processing timed out")

    async def cleanup(self) -> None:
        """Cancel workers and drop all queues."""
        async with self._lock:
            tasks = list(self._tasks)
            for task in tasks:
                if not task.done():
                    task.cancel()
            self.queues.clear()

        with contextlib.suppress(asyncio.CancelledError):
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        logger.info("request_queue_cleaned_up")
