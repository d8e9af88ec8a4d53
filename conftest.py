import asyncio

import numpy as np
import pytest

from errors import RecognitionFailure
from models import RecognitionResult, WordConfidence


class FakeSource:
    """Capture source returning a fixed frame, or nothing when frame is None."""

    def __init__(self, frame):
        self.frame = frame
        self.reads = 0

    def read(self):
        self.reads += 1
        if self.frame is None:
            return False, None
        return True, self.frame.copy()


class FakeOCR:
    """
    Recognition gateway stand-in. Each call can be held open with `gate` so
    tests can fire ticks while a recognition is in flight.
    """

    def __init__(self, result=None, error=None, gate=None):
        self.result = result or RecognitionResult("HELLO", (WordConfidence("HELLO", 91.0),))
        self.error = error
        self.gate = gate
        self.worker_count = 1
        self.language = "eng"
        self.calls = 0
        self.active = 0
        self.max_active = 0
        self.images = []
        self.reconfigured = []

    def reconfigure(self, worker_count=None, language=None):
        self.reconfigured.append((worker_count, language))
        if worker_count is not None:
            self.worker_count = worker_count
        if language is not None:
            self.language = language

    async def recognize_async(self, image):
        self.calls += 1
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        self.images.append(image)
        try:
            if self.gate is not None:
                await self.gate.wait()
            else:
                await asyncio.sleep(0)
            if self.error is not None:
                raise self.error
            return self.result
        finally:
            self.active -= 1


@pytest.fixture
def frame():
    """A 480x640 BGR frame with a horizontal gradient."""
    gradient = np.tile(np.linspace(0, 255, 640, dtype=np.uint8), (480, 1))
    return np.dstack([gradient, gradient, gradient])


@pytest.fixture
def source(frame):
    return FakeSource(frame)


@pytest.fixture
def fake_ocr():
    return FakeOCR()


@pytest.fixture
def failing_ocr():
    return FakeOCR(error=RecognitionFailure("engine exploded"))
