"""Tests for the detection worker boundary.

The worker must never raise out of a detection, must honour min_confidence,
and LiveDetection must apply only the latest response.
"""

import asyncio

import pytest

from loresuggest.config import WorkerConfig
from loresuggest.errors import MalformedInputError
from loresuggest.models import Confidence, DetectionRequest, DetectionResponse
from loresuggest.pipeline.detector import PatternDetector, detect
from loresuggest.worker import DetectionState, DetectionWorker, LiveDetection


class ExplodingDetector(PatternDetector):
    """Raises on any input mentioning 'boom'."""

    def detect(self, content):
        if "boom" in str(content):
            raise RuntimeError("boom")
        return super().detect(content)


class ControlledWorker:
    """Stands in for DetectionWorker; each response waits for release(id)."""

    def __init__(self):
        self.requests: list[DetectionRequest] = []
        self._gates: dict[str, asyncio.Event] = {}

    async def submit(self, request: DetectionRequest) -> DetectionResponse:
        self.requests.append(request)
        gate = self._gates.setdefault(request.id, asyncio.Event())
        await gate.wait()
        return DetectionResponse(id=request.id, entities=detect(request.content))

    def release(self, request_id: str) -> None:
        self._gates.setdefault(request_id, asyncio.Event()).set()


async def _settle(rounds: int = 10) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


async def _wait_for(predicate, timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


class TestDetectionWorker:
    async def test_submit_round_trip(self, example_text):
        async with DetectionWorker() as worker:
            response = await worker.submit(DetectionRequest(id="1", content=example_text))
        assert response.id == "1"
        assert response.error is None
        assert {c.normalized_key for c in response.entities} >= {"lord blackwood", "silverwood forest"}

    async def test_min_confidence_filter(self):
        text = "We spoke with Garner at the docks. Lord Blackwood nodded."
        async with DetectionWorker() as worker:
            everything = await worker.submit(DetectionRequest(id="1", content=text))
            high_only = await worker.submit(DetectionRequest(id="2", content=text, min_confidence=Confidence.HIGH))
        assert "garner" in {c.normalized_key for c in everything.entities}
        assert all(c.confidence is Confidence.HIGH for c in high_only.entities)
        assert "garner" not in {c.normalized_key for c in high_only.entities}

    async def test_detector_failure_is_reported_not_raised(self, example_text):
        async with DetectionWorker(ExplodingDetector()) as worker:
            failed = await worker.submit(DetectionRequest(id="1", content="this will go boom tonight"))
            recovered = await worker.submit(DetectionRequest(id="2", content=example_text))
        assert failed.entities == []
        assert failed.error == "RuntimeError: boom"
        assert recovered.error is None
        assert recovered.entities

    async def test_offload(self):
        async with DetectionWorker() as worker:
            assert await worker.offload(sum, [1, 2, 3]) == 6

    async def test_offload_propagates_errors(self):
        async with DetectionWorker() as worker:
            with pytest.raises(ZeroDivisionError):
                await worker.offload(lambda: 1 / 0)

    async def test_not_started(self):
        worker = DetectionWorker()
        with pytest.raises(RuntimeError):
            await worker.submit(DetectionRequest(id="1", content="text"))

    async def test_stop_is_idempotent(self):
        worker = DetectionWorker()
        await worker.start()
        assert worker.running
        await worker.stop()
        await worker.stop()
        assert not worker.running


class TestLiveDetection:
    async def test_stale_response_dropped(self, example_text):
        """Responses 1 and 2 arriving after 3 do not change the state."""
        worker = ControlledWorker()
        live = LiveDetection(worker)

        first = live.request_detection("We spoke with Garner at the docks.")
        second = live.request_detection("Kira drew her blade. Kira shouted.")
        third = live.request_detection(example_text)
        await _settle()
        assert [r.id for r in worker.requests] == ["1", "2", "3"]
        assert live.state.is_loading

        worker.release("3")
        response = await third
        assert live.state.sequence == 3
        applied = live.state

        worker.release("1")
        worker.release("2")
        with pytest.raises(asyncio.CancelledError):
            await first
        with pytest.raises(asyncio.CancelledError):
            await second
        assert live.state == applied
        assert {c.normalized_key for c in live.state.candidates} == {c.normalized_key for c in response.entities}
        assert not live.state.is_loading

    async def test_listeners_notified(self, example_text):
        worker = ControlledWorker()
        live = LiveDetection(worker)
        seen: list[DetectionState] = []
        remove = live.add_listener(seen.append)

        future = live.request_detection(example_text)
        worker.release("1")
        await future
        assert [s.is_loading for s in seen] == [True, False]

        remove()
        live.request_detection(example_text)
        assert len(seen) == 2
        await live.close()

    async def test_debounced_changes_dispatch_once(self, example_text):
        async with DetectionWorker() as worker:
            live = LiveDetection(worker, WorkerConfig(debounce_seconds=0.02))
            live.content_changed("Lord")
            live.content_changed("Lord Blackwood entered")
            live.content_changed(example_text)
            assert live.pending
            await _wait_for(lambda: live.state.sequence == 1)
            await asyncio.sleep(0.05)
            assert live.latest_sequence == 1
            assert "silverwood forest" in {c.normalized_key for c in live.state.candidates}
            await live.close()

    async def test_failure_surfaces_in_state(self):
        async with DetectionWorker(ExplodingDetector()) as worker:
            live = LiveDetection(worker)
            response = await live.request_detection("this will go boom tonight")
        assert response.error == "RuntimeError: boom"
        assert live.state.error == "RuntimeError: boom"
        assert live.state.failure is not None
        assert live.state.failure.message == "RuntimeError: boom"
        assert live.state.candidates == ()

    async def test_malformed_content_rejected(self):
        live = LiveDetection(ControlledWorker())
        with pytest.raises(MalformedInputError):
            live.request_detection(42)
        assert live.latest_sequence == 0

    async def test_flush_dispatches_immediately(self, example_text):
        worker = ControlledWorker()
        live = LiveDetection(worker, WorkerConfig(debounce_seconds=10.0))
        live.content_changed(example_text)
        live.flush()
        assert not live.pending
        assert live.latest_sequence == 1
        await _settle()
        assert [r.id for r in worker.requests] == ["1"]
        await live.close()
