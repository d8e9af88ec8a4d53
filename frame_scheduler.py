"""
Frame scheduler: the loop that captures a frame, cuts out the ROI, preprocesses
it, runs OCR and publishes the trust signal.

At most one capture-to-recognition cycle is in flight. A tick that fires while
the previous one is still running is dropped, not queued, so under load frames
are discarded and latency stays bounded.
"""

import asyncio
import logging
from enum import Enum

from confidence import evaluate_confidence
from config import OCR_INTERVAL
from errors import CaptureUnavailable, GeometryInvalid, PreprocessingStageError, RecognitionFailure
from models import TickOutcome, TickStatus, TrustSignal
from preprocessing import preprocess_roi

logger = logging.getLogger(__name__)


class SchedulerState(Enum):
    IDLE = "idle"
    CAPTURING = "capturing"
    PREPROCESSING = "preprocessing"
    RECOGNIZING = "recognizing"
    STOPPED = "stopped"


# Every phase may fall back to IDLE (tick finished or failed) or STOPPED (teardown)
TRANSITIONS = {
    SchedulerState.IDLE: {SchedulerState.CAPTURING, SchedulerState.STOPPED},
    SchedulerState.CAPTURING: {SchedulerState.PREPROCESSING, SchedulerState.IDLE, SchedulerState.STOPPED},
    SchedulerState.PREPROCESSING: {SchedulerState.RECOGNIZING, SchedulerState.IDLE, SchedulerState.STOPPED},
    SchedulerState.RECOGNIZING: {SchedulerState.IDLE, SchedulerState.STOPPED},
    SchedulerState.STOPPED: set(),
}


# Outcome reported when an unexpected exception escapes a phase
FAILURE_STATUS = {
    SchedulerState.CAPTURING: TickStatus.CAPTURE_UNAVAILABLE,
    SchedulerState.PREPROCESSING: TickStatus.PREPROCESSING_FAILED,
    SchedulerState.RECOGNIZING: TickStatus.RECOGNITION_FAILED,
}


class PacingMode(Enum):
    TIMER = "timer"        # tick every `interval` seconds
    REFRESH = "refresh"    # the display loop calls fire() once per rendered frame


class FrameScheduler:
    """
    Drives the capture -> preprocess -> recognize cycle for one capture session.

    source:       capture source with read() -> (ok, frame)
    mapper:       GeometryMapper resolving the ROI to frame pixels
    ocr:          recognition gateway with recognize_async(image) and reconfigure()
    config_store: ConfigStore, snapshotted once at the start of every tick
    sink:         TextManager receiving (result, signal)
    """

    def __init__(self, source, mapper, ocr, config_store, sink,
                 pacing=PacingMode.TIMER, interval=OCR_INTERVAL):
        self.source = source
        self.mapper = mapper
        self.ocr = ocr
        self.config_store = config_store
        self.sink = sink
        self.pacing = PacingMode(pacing)
        self.interval = interval

        self.state = SchedulerState.IDLE
        self.busy = False
        self.last_outcome = None
        self.ticks_started = 0
        self.ticks_skipped = 0
        self._generation = 0
        self._task = None

    @property
    def stopped(self):
        return self.state is SchedulerState.STOPPED

    def _transition(self, new_state):
        if new_state not in TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal scheduler transition {self.state.value} -> {new_state.value}")
        logger.debug(f"Scheduler state: {self.state.value} -> {new_state.value}")
        self.state = new_state

    def fire(self):
        """
        Start a tick in the background unless one is already in flight.
        Returns the task, or None if the tick was skipped.
        """
        if self.stopped:
            return None
        if self.busy or (self._task is not None and not self._task.done()):
            self.ticks_skipped += 1
            logger.debug("OCR still running, skipping tick")
            return None
        self._task = asyncio.ensure_future(self.tick())
        return self._task

    async def run(self):
        """Timer-driven loop; returns once stop() has been called."""
        if self.pacing is not PacingMode.TIMER:
            raise RuntimeError("run() drives timer pacing only; call fire() from the display loop instead")

        logger.info(f"Frame scheduler started (interval {self.interval}s)")
        while not self.stopped:
            self.fire()
            await asyncio.sleep(self.interval)
        logger.info("Frame scheduler loop finished")

    async def tick(self):
        """Run one full cycle. Never raises for per-tick errors; returns a TickOutcome."""
        if self.stopped:
            return TickOutcome(TickStatus.CANCELLED)
        if self.busy:
            self.ticks_skipped += 1
            return TickOutcome(TickStatus.SKIPPED_BUSY)

        # Set before the first await so no other tick can slip in
        self.busy = True
        self.ticks_started += 1
        generation = self._generation
        try:
            self._transition(SchedulerState.CAPTURING)
            outcome = await self._cycle(generation)
        except asyncio.CancelledError:
            self.last_outcome = TickOutcome(TickStatus.CANCELLED)
            raise
        except Exception as e:
            logger.exception(f"Unexpected error during {self.state.value}: {e}")
            outcome = TickOutcome(FAILURE_STATUS.get(self.state, TickStatus.PREPROCESSING_FAILED), error=str(e))
        finally:
            self.busy = False
            if not self.stopped:
                self._transition(SchedulerState.IDLE)

        self.last_outcome = outcome
        return outcome

    async def _cycle(self, generation):
        config = self.config_store.snapshot()

        # Capture
        try:
            frame = self._capture()
            self._sync_native_size(frame)
            rect = self.mapper.resolve()
        except CaptureUnavailable as e:
            logger.warning(f"Skipping tick: {e}")
            return TickOutcome(TickStatus.CAPTURE_UNAVAILABLE, error=str(e))
        except GeometryInvalid as e:
            logger.warning(f"Skipping tick: {e}")
            return TickOutcome(TickStatus.GEOMETRY_INVALID, error=str(e))

        rows, cols = rect.as_slices()
        roi = frame[rows, cols]

        # Preprocess
        self._transition(SchedulerState.PREPROCESSING)
        try:
            processed = preprocess_roi(roi, config.preprocessing)
        except PreprocessingStageError as e:
            logger.exception(f"Preprocessing failed: {e}")
            return TickOutcome(TickStatus.PREPROCESSING_FAILED, error=str(e))

        # Recognize
        self._transition(SchedulerState.RECOGNIZING)
        self._apply_ocr_settings(config)
        try:
            result = await self.ocr.recognize_async(processed)
            error = None
        except RecognitionFailure as e:
            result, error = None, str(e)
        except Exception as e:
            result, error = None, f"Unexpected OCR error: {e}"

        if generation != self._generation or self.stopped:
            logger.info("Session torn down during recognition, discarding result")
            return TickOutcome(TickStatus.CANCELLED)

        signal = evaluate_confidence(result, config.confidence_threshold, config.trust_policy)
        self.sink.publish(result, signal)

        if result is None:
            logger.error(f"OCR failed: {error}")
            return TickOutcome(TickStatus.RECOGNITION_FAILED, signal=TrustSignal.UNTRUSTED, error=error)
        return TickOutcome(TickStatus.COMPLETED, result=result, signal=signal)

    def _capture(self):
        ok, frame = self.source.read()
        if not ok or frame is None:
            raise CaptureUnavailable("No frame available from capture source")
        return frame

    def _sync_native_size(self, frame):
        height, width = frame.shape[:2]
        if self.mapper.native_size != (width, height):
            self.mapper.set_native_size((width, height))

    def _apply_ocr_settings(self, config):
        # Nothing is in flight here, so the worker pool can be swapped safely
        if config.worker_count != self.ocr.worker_count or config.language != self.ocr.language:
            self.ocr.reconfigure(worker_count=config.worker_count, language=config.language)

    async def stop(self):
        """
        Stop issuing ticks and cancel the in-flight recognition, if any.
        A result that arrives after this point is never published.
        """
        if self.stopped:
            return
        logger.info("Stopping frame scheduler")
        self._generation += 1
        self._transition(SchedulerState.STOPPED)

        task = self._task
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._task = None
        logger.info(f"Frame scheduler stopped ({self.ticks_started} ticks run, {self.ticks_skipped} skipped)")
