import cv2
import asyncio
import logging
import sys

from camera_feed import VideoStream
from config import (ASYNC_SLEEP_TIME, CAMERA_SOURCE, DEFAULT_RESOLUTION, DISPLAY_SIZE,
                    LOG_FORMAT, LOG_LEVEL, OCR_INTERVAL, PACING_MODE, RESOLUTIONS,
                    WINDOW_TITLE)
from errors import GeometryInvalid, RecognitionFailure
from frame_scheduler import FrameScheduler, PacingMode
from geometry import GeometryMapper, Rect
from ocr_processor import OCRProcessor
from pipeline_config import ConfigStore
from text_manager import TextManager
from utils import draw_roi, draw_selection, draw_status

# Configure logging
logging.basicConfig(level=getattr(logging, LOG_LEVEL), format=LOG_FORMAT)
logger = logging.getLogger(__name__)

# Keys that toggle a preprocessing stage
STAGE_KEYS = {
    ord('g'): "grayscale",
    ord('h'): "highlight",
    ord('c'): "contrast",
    ord('b'): "brightness",
    ord('x'): "threshold",
    ord('e'): "edge",
}


class RoiSelector:
    """Mouse callback: drag on the preview window to set a new ROI in display coordinates."""

    def __init__(self, mapper):
        self.mapper = mapper
        self.start = None
        self.current = None

    def __call__(self, event, x, y, flags, param):
        if event == cv2.EVENT_LBUTTONDOWN:
            self.start = (x, y)
            self.current = (x, y)
        elif event == cv2.EVENT_MOUSEMOVE and self.start is not None:
            self.current = (x, y)
        elif event == cv2.EVENT_LBUTTONUP and self.start is not None:
            x1, y1 = min(self.start[0], x), min(self.start[1], y)
            x2, y2 = max(self.start[0], x), max(self.start[1], y)
            self.start = self.current = None
            if x2 - x1 < 2 or y2 - y1 < 2:
                logger.info("Selection too small, ROI unchanged")
                return
            try:
                self.mapper.set_roi(Rect(x1, y1, x2 - x1, y2 - y1))
            except GeometryInvalid as e:
                logger.error(f"Invalid ROI selection: {e}")
        elif event == cv2.EVENT_RBUTTONUP:
            # Back to the default centered ROI
            self.mapper.set_roi(None)


def handle_key(key, config_store, text_manager, mapper, stream, resolution_index):
    """Apply a key press. Returns (keep_running, resolution_index)."""
    if key == ord('q'):
        logger.info("'q' key pressed, stopping stream")
        return False, resolution_index

    if key in STAGE_KEYS:
        config_store.toggle_stage(STAGE_KEYS[key])
    elif key == ord('t'):
        text = text_manager.get_last_recognized_text()
        print(text if text else "No text recognized yet.")
    elif key == ord('r'):
        resolution_index = (resolution_index + 1) % len(RESOLUTIONS)
        stream.set_resolution(*RESOLUTIONS[resolution_index])
    elif key == ord('d'):
        mapper.set_roi(None)
    return True, resolution_index


async def process_feed():
    logger.info("Starting process_feed function")

    stream = None
    ocr = None
    scheduler = None
    runner = None

    try:
        # Initialize video stream and OCR processor
        logger.info("Initializing VideoStream...")
        stream = VideoStream(CAMERA_SOURCE, resolution=DEFAULT_RESOLUTION)
        if not stream.is_initialized():
            logger.error("Failed to initialize video stream")
            return

        logger.info("Initializing OCRProcessor...")
        config_store = ConfigStore()
        settings = config_store.snapshot()
        try:
            ocr = OCRProcessor(language=settings.language, worker_count=settings.worker_count)
        except RecognitionFailure as e:
            logger.error(f"Failed to initialize OCR processor: {e}")
            return

        # The preview is scaled to DISPLAY_SIZE, the ROI lives in those coordinates
        mapper = GeometryMapper()
        mapper.set_capture_geometry(stream.get_native_size(), DISPLAY_SIZE)
        stream.on_resolution_change(mapper.set_native_size)

        text_manager = TextManager()
        text_manager.add_listener(lambda signal: logger.info(f"ROI border signal: {signal.value}"))

        pacing = PacingMode(PACING_MODE)
        scheduler = FrameScheduler(stream, mapper, ocr, config_store, text_manager,
                                   pacing=pacing, interval=OCR_INTERVAL)
        if pacing is PacingMode.TIMER:
            runner = asyncio.ensure_future(scheduler.run())

        selector = RoiSelector(mapper)
        cv2.namedWindow(WINDOW_TITLE)
        cv2.setMouseCallback(WINDOW_TITLE, selector)
        resolution_index = RESOLUTIONS.index(DEFAULT_RESOLUTION) if DEFAULT_RESOLUTION in RESOLUTIONS else 0

        logger.info("Drag to select the ROI, right-click or 'd' to reset it")
        logger.info("Toggle stages: g=gray h=highlight c=contrast b=brightness x=threshold e=edge")
        logger.info("'t' prints recognized text, 'r' cycles resolution, 'q' quits")

        while True:
            ret, frame = stream.read()
            if not ret:
                await asyncio.sleep(0.1)
                continue

            if pacing is PacingMode.REFRESH:
                scheduler.fire()

            display = cv2.resize(frame, DISPLAY_SIZE)
            draw_roi(display, mapper.display_roi(), text_manager.get_trust_signal())
            draw_selection(display, selector.start, selector.current)

            enabled = config_store.snapshot().preprocessing.enabled_stages()
            native = mapper.native_size
            draw_status(display, [
                f"Camera: {native[0]}x{native[1]}" if native else "Camera: unknown",
                f"Stages: {', '.join(enabled) if enabled else 'none'}",
                f"Text: {text_manager.get_last_recognized_text()[:50]}",
            ])

            cv2.imshow(WINDOW_TITLE, display)

            key = cv2.waitKey(1) & 0xFF
            keep_running, resolution_index = handle_key(key, config_store, text_manager,
                                                        mapper, stream, resolution_index)
            if not keep_running:
                break

            # Let the scheduler's tick run between displayed frames
            await asyncio.sleep(ASYNC_SLEEP_TIME)

    finally:
        # Cleanup
        logger.info("Cleaning up resources...")
        if scheduler:
            await scheduler.stop()
        if runner:
            await runner
        if ocr:
            ocr.close()
        if stream:
            stream.stop()
        cv2.destroyAllWindows()
        logger.info("All windows closed")


def main():
    try:
        logger.info("Starting main application")
        logger.info("Following flow: Camera Feed → ROI → Preprocessing → OCR → Trust Signal")
        asyncio.run(process_feed())
        logger.info("Application finished successfully")
    except KeyboardInterrupt:
        logger.info("Application interrupted by user")
    except Exception as e:
        logger.error(f"Application crashed with error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
