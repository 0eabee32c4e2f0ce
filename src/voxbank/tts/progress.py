"""Pipeline stages and progress reporting."""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)


class PipelineStage(str, Enum):
    """States of one announcement request."""

    TOKENIZING = "tokenizing"
    CHECKING_CACHE = "checking_cache"
    GENERATING = "generating"
    CONCATENATING = "concatenating"
    FILTERING = "filtering"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class ProgressEvent:
    """Snapshot of a request's progress.

    Attributes:
        stage: Stage the request is in
        total_words: Unique words the request needs
        cached: Words already in the word bank
        generated: Words synthesized so far
        failed: Words that could not be produced
        word: Word this event is about, if any
    """

    stage: PipelineStage
    total_words: int = 0
    cached: int = 0
    generated: int = 0
    failed: int = 0
    word: str | None = None

    @property
    def completed(self) -> int:
        return self.cached + self.generated + self.failed


ProgressCallback = Callable[[ProgressEvent], Awaitable[None] | None]


async def emit(progress: ProgressCallback | None, event: ProgressEvent) -> None:
    """Deliver an event to a sync or async callback.

    Callback failures are logged and never abort the request.
    """
    if progress is None:
        return
    try:
        result = progress(event)
        if inspect.isawaitable(result):
            await result
    except Exception as e:
        logger.warning(f"Progress callback failed: {e}")


class QueueProgress:
    """Progress callback that feeds events into an asyncio.Queue.

    Example:
        progress = QueueProgress()
        task = asyncio.create_task(pipeline.synthesize(text, voice, scope, progress=progress))
        while (event := await progress.queue.get()).stage not in TERMINAL_STAGES:
            render(event)
    """

    def __init__(self, queue: asyncio.Queue | None = None) -> None:
        self.queue: asyncio.Queue[ProgressEvent] = queue or asyncio.Queue()

    async def __call__(self, event: ProgressEvent) -> None:
        await self.queue.put(event)


TERMINAL_STAGES = frozenset({PipelineStage.DONE, PipelineStage.FAILED})
