"""Coalescing of identical in-flight generation requests."""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Hashable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class _OwnerCancelled(Exception):
    """The task producing a shared result was cancelled before finishing."""


class InflightRegistry(Generic[T]):
    """Shares one running producer per key between concurrent callers.

    The first caller for a key becomes its owner and runs the producer;
    callers arriving while it runs await the same future instead of
    starting their own. If the owner is cancelled, a waiter takes over
    and runs the producer itself.
    """

    def __init__(self) -> None:
        self._inflight: dict[Hashable, asyncio.Future[T]] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._inflight)

    async def run(self, key: Hashable, producer: Callable[[], Awaitable[T]]) -> tuple[T, bool]:
        """Run or join the producer for a key.

        Returns:
            The produced value and whether it came from another caller's run

        Raises:
            Exception: Whatever the producer raised, for the owner and all waiters
        """
        while True:
            async with self._lock:
                fut = self._inflight.get(key)
                if fut is None:
                    fut = asyncio.get_running_loop().create_future()
                    # Mark exceptions retrieved so futures without waiters stay quiet
                    fut.add_done_callback(lambda f: f.cancelled() or f.exception())
                    self._inflight[key] = fut
                    owner = True
                else:
                    owner = False

            if owner:
                return await self._produce(key, fut, producer), False

            logger.debug(f"Joining in-flight generation for {key}")
            try:
                return await asyncio.shield(fut), True
            except _OwnerCancelled:
                logger.debug(f"In-flight owner for {key} was cancelled, retrying")

    async def _produce(
        self, key: Hashable, fut: asyncio.Future[T], producer: Callable[[], Awaitable[T]]
    ) -> T:
        try:
            result = await producer()
        except asyncio.CancelledError:
            self._finish(key, fut, exception=_OwnerCancelled())
            raise
        except Exception as e:
            self._finish(key, fut, exception=e)
            raise
        self._finish(key, fut, result=result)
        return result

    def _finish(
        self,
        key: Hashable,
        fut: asyncio.Future[T],
        result: T | None = None,
        exception: BaseException | None = None,
    ) -> None:
        # No await here, so a cancelled owner still releases its waiters
        if self._inflight.get(key) is fut:
            del self._inflight[key]
        if fut.done():
            return
        if exception is not None:
            fut.set_exception(exception)
        else:
            fut.set_result(result)
