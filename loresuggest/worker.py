"""Detection off the interactive event loop.

DetectionWorker is the background execution context: an asyncio.Queue
channel drained by a single worker task that runs each job on a
one-thread executor, so pattern matching never competes with the event loop
for time. LiveDetection is the interactive side: it debounces text changes,
numbers every request and applies a response only if it is still the latest.

There is no cancellation signal into the worker. A superseded request runs to
completion and its response is dropped on arrival.
"""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Sequence

from pydantic import BaseModel, Field, ValidationError

from loresuggest.config import WorkerConfig
from loresuggest.errors import DetectionFailed, MalformedInputError
from loresuggest.models import (
    CandidateEntity,
    Confidence,
    ContentBlock,
    DetectionRequest,
    DetectionResponse,
)
from loresuggest.pipeline.detector import PatternDetector, filter_by_confidence
from loresuggest.scheduling import Debouncer, SequenceGate

logger = logging.getLogger(__name__)


@dataclass
class _Job:
    fn: Callable[..., Any]
    args: tuple[Any, ...]
    future: asyncio.Future


class DetectionWorker:
    """Background context that owns a PatternDetector.

    Example:
        async with DetectionWorker() as worker:
            response = await worker.submit(DetectionRequest(id="1", content=text))
    """

    def __init__(self, detector: PatternDetector | None = None):
        self.detector = detector or PatternDetector()
        self._queue: asyncio.Queue[_Job] | None = None
        self._task: asyncio.Task | None = None
        self._executor: ThreadPoolExecutor | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.running:
            return
        self._queue = asyncio.Queue()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="loresuggest-detect")
        self._task = asyncio.create_task(self._worker_loop())
        logger.debug("Started detection worker")

    async def stop(self) -> None:
        """Stop the loop. Queued jobs are cancelled; a running job is abandoned."""
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        if self._queue is not None:
            while not self._queue.empty():
                job = self._queue.get_nowait()
                job.future.cancel()
            self._queue = None
        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None
        logger.debug("Stopped detection worker")

    async def __aenter__(self) -> "DetectionWorker":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()

    async def submit(self, request: DetectionRequest) -> DetectionResponse:
        """Run detection for one request message.

        Detector failures come back as a response with empty entities and
        error set; they are never raised.
        """
        return await self.offload(self._detect, request)

    async def offload(self, fn: Callable[..., Any], *args: Any) -> Any:
        """Run a pure function in the background context and await its result."""
        if self._queue is None or not self.running:
            raise RuntimeError("DetectionWorker is not running; call start() first")
        future = asyncio.get_running_loop().create_future()
        await self._queue.put(_Job(fn, args, future))
        return await future

    def _detect(self, request: DetectionRequest) -> DetectionResponse:
        try:
            entities = self.detector.detect(request.content)
        except Exception as e:
            failure = DetectionFailed(f"{type(e).__name__}: {e}")
            logger.exception("Detection failed for request %s", request.id)
            return DetectionResponse(id=request.id, entities=[], error=failure.message)
        return DetectionResponse(id=request.id, entities=filter_by_confidence(entities, request.min_confidence))

    async def _worker_loop(self) -> None:
        assert self._queue is not None
        loop = asyncio.get_running_loop()
        while True:
            job = await self._queue.get()
            try:
                if job.future.cancelled():
                    continue
                try:
                    result = await loop.run_in_executor(self._executor, job.fn, *job.args)
                except asyncio.CancelledError:
                    job.future.cancel()
                    raise
                except Exception as e:
                    if not job.future.done():
                        job.future.set_exception(e)
                else:
                    if not job.future.done():
                        job.future.set_result(result)
            finally:
                self._queue.task_done()


class DetectionState(BaseModel):
    """What the editing surface shows. Replaced wholesale on every change."""

    model_config = {"frozen": True}

    candidates: tuple[CandidateEntity, ...] = ()
    error: str | None = None
    is_loading: bool = False
    sequence: int = Field(0, description="Sequence number of the applied response.")

    @property
    def failure(self) -> DetectionFailed | None:
        return DetectionFailed(self.error) if self.error is not None else None


DetectionListener = Callable[[DetectionState], None]
ContentInput = str | Sequence[ContentBlock | Mapping[str, Any]]


class LiveDetection:
    """Interactive side of the worker boundary for one editing surface."""

    def __init__(
        self,
        worker: DetectionWorker,
        config: WorkerConfig | None = None,
    ):
        self.worker = worker
        self.config = config or WorkerConfig()
        self.state = DetectionState()
        self._gate = SequenceGate()
        self._debouncer = Debouncer(self.config.debounce_seconds, self._dispatch_pending)
        self._pending_content: ContentInput | None = None
        self._listeners: list[DetectionListener] = []
        self._in_flight: set[asyncio.Task] = set()

    @property
    def latest_sequence(self) -> int:
        return self._gate.latest

    def add_listener(self, listener: DetectionListener) -> Callable[[], None]:
        """Register a state listener; returns a function that removes it."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def request_detection(
        self,
        content: ContentInput,
        min_confidence: Confidence | None = None,
    ) -> asyncio.Future:
        """Dispatch now and return a future for the response.

        The future resolves to the DetectionResponse if it is still the latest
        when it arrives, and is cancelled if a newer request superseded it.

        Raises:
            MalformedInputError: content is not a string or list of blocks.
        """
        try:
            request = DetectionRequest(
                id="",
                content=content if isinstance(content, str) else list(content),
                min_confidence=min_confidence or self.config.min_confidence,
            )
        except (ValidationError, TypeError) as e:
            raise MalformedInputError(f"invalid detection content: {e}") from e
        sequence = self._gate.issue()
        request = request.model_copy(update={"id": str(sequence)})

        loop = asyncio.get_running_loop()
        result: asyncio.Future = loop.create_future()
        self._set_state(self.state.model_copy(update={"is_loading": True}))
        task = loop.create_task(self._round_trip(sequence, request, result))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)
        return result

    def content_changed(self, content: ContentInput) -> None:
        """Record new content and restart the quiet period."""
        self._pending_content = content
        self._debouncer.trigger()

    def flush(self) -> None:
        """Dispatch pending content immediately."""
        self._debouncer.flush()

    @property
    def pending(self) -> bool:
        return self._debouncer.pending

    async def close(self) -> None:
        self._debouncer.cancel()
        self._pending_content = None
        for task in list(self._in_flight):
            task.cancel()
        if self._in_flight:
            await asyncio.gather(*self._in_flight, return_exceptions=True)

    def _dispatch_pending(self) -> None:
        content, self._pending_content = self._pending_content, None
        if content is None:
            return
        try:
            self.request_detection(content)
        except MalformedInputError:
            logger.exception("Discarding malformed content change")

    async def _round_trip(self, sequence: int, request: DetectionRequest, result: asyncio.Future) -> None:
        try:
            response = await self.worker.submit(request)
        except asyncio.CancelledError:
            result.cancel()
            raise
        except Exception as e:
            logger.exception("Detection request %s failed", request.id)
            response = DetectionResponse(id=request.id, entities=[], error=DetectionFailed(str(e)).message)

        if not self._gate.is_latest(sequence):
            logger.debug("Dropping stale detection response %s (latest is %s)", sequence, self._gate.latest)
            result.cancel()
            return

        self._set_state(
            DetectionState(
                candidates=tuple(response.entities),
                error=response.error,
                is_loading=False,
                sequence=sequence,
            )
        )
        if not result.done():
            result.set_result(response)

    def _set_state(self, state: DetectionState) -> None:
        self.state = state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("Detection state listener failed")
