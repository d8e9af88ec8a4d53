import threading
import time

import cv2
import numpy as np
import pytest

import camera_feed
from camera_feed import VideoStream


class FakeCapture:
    """cv2.VideoCapture stand-in producing frames of whatever size was last requested."""

    def __init__(self, src, opened=True):
        self.src = src
        self.opened = opened
        self.width = 640
        self.height = 480
        self.released = False
        self.lock = threading.Lock()

    def isOpened(self):
        return self.opened and not self.released

    def set(self, prop, value):
        with self.lock:
            if prop == cv2.CAP_PROP_FRAME_WIDTH:
                self.width = int(value)
            elif prop == cv2.CAP_PROP_FRAME_HEIGHT:
                self.height = int(value)
        return True

    def read(self):
        time.sleep(0.001)
        with self.lock:
            return True, np.zeros((self.height, self.width, 3), dtype=np.uint8)

    def release(self):
        self.released = True


def wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


@pytest.fixture
def fake_capture(monkeypatch):
    monkeypatch.setattr(camera_feed.cv2, "VideoCapture", FakeCapture)


def test_stream_reports_native_size_and_returns_copies(fake_capture):
    stream = VideoStream(0)
    try:
        assert stream.is_initialized()
        assert stream.get_native_size() == (640, 480)

        ok, frame = stream.read()
        assert ok
        assert frame.shape == (480, 640, 3)
        frame[:] = 255
        _, again = stream.read()
        assert again.max() == 0
    finally:
        stream.stop()


def test_requested_resolution_applies_before_first_frame(fake_capture):
    stream = VideoStream(0, resolution=(1280, 720))
    try:
        assert stream.get_native_size() == (1280, 720)
    finally:
        stream.stop()


def test_resolution_change_notifies_callbacks(fake_capture):
    stream = VideoStream(0)
    seen = []
    stream.on_resolution_change(seen.append)
    try:
        stream.set_resolution(1280, 720)
        assert wait_for(lambda: (1280, 720) in seen)
        assert stream.get_native_size() == (1280, 720)
    finally:
        stream.stop()


def test_unopened_camera_is_not_initialized(monkeypatch):
    monkeypatch.setattr(camera_feed.cv2, "VideoCapture", lambda src: FakeCapture(src, opened=False))
    stream = VideoStream(3)
    assert not stream.is_initialized()
    assert stream.read() == (False, None)


def test_stop_releases_camera(fake_capture):
    stream = VideoStream(0)
    cap = stream.cap
    stream.stop()
    assert cap.released
    assert not stream.is_initialized()
    assert not stream.thread.is_alive()


class SlowCapture(FakeCapture):
    """Every read after the first blocks like a camera waiting for its next frame."""

    def __init__(self, src):
        super().__init__(src)
        self.reads = 0

    def read(self):
        self.reads += 1
        if self.reads > 1:
            time.sleep(0.3)
        with self.lock:
            return True, np.zeros((self.height, self.width, 3), dtype=np.uint8)


def test_accessors_do_not_wait_for_blocking_camera_read(monkeypatch):
    monkeypatch.setattr(camera_feed.cv2, "VideoCapture", SlowCapture)
    stream = VideoStream(0)
    try:
        assert wait_for(lambda: stream.cap.reads > 1)

        start = time.monotonic()
        ok, _ = stream.read()
        stream.get_native_size()
        stream.set_resolution(800, 600)
        elapsed = time.monotonic() - start

        assert ok
        assert elapsed < 0.15
    finally:
        stream.stop()
