import cv2
import logging
import threading
import time

from config import MAX_CONSECUTIVE_FAILURES

logger = logging.getLogger(__name__)


class VideoStream:
    """
    Capture source: reads frames from a camera in a background thread and hands
    out copies of the latest one.

    Resolution changes (requested through set_resolution or negotiated by the
    driver) are reported to callbacks registered with on_resolution_change.
    """

    def __init__(self, src=0, resolution=None):
        logger.info(f"Initializing VideoStream with source: {src}")
        self.src = src
        self.cap = None
        self.ret = False
        self.frame = None
        self.stopped = False
        self.thread = None
        self.initialization_successful = False
        self.native_size = None
        self._lock = threading.Lock()
        self._resolution_callbacks = []

        try:
            # Initialize camera
            self.cap = cv2.VideoCapture(src)
            if not self.cap.isOpened():
                logger.error(f"Failed to open camera source {src}")
                return

            if resolution:
                self._request_resolution(resolution)

            # Test reading first frame
            self.ret, self.frame = self.cap.read()
            if not self.ret or self.frame is None:
                logger.error("Failed to read initial frame from camera")
                return

            self.native_size = (self.frame.shape[1], self.frame.shape[0])
            logger.info(f"Camera resolution: {self.native_size[0]}x{self.native_size[1]}")

            # Start background thread
            logger.info("Starting background thread for frame updates")
            self.thread = threading.Thread(target=self.update, args=(), daemon=True)
            self.thread.start()
            self.initialization_successful = True
            logger.info("VideoStream initialization completed successfully")

        except Exception as e:
            logger.error(f"Error during VideoStream initialization: {e}")
            self.cleanup()

    def is_initialized(self):
        """Check if the video stream was initialized successfully"""
        return self.initialization_successful and self.cap is not None and self.cap.isOpened()

    def on_resolution_change(self, callback):
        """Register callback((width, height)) for native resolution changes."""
        self._resolution_callbacks.append(callback)

    def get_native_size(self):
        """Return (width, height) of the frames currently produced, or None."""
        with self._lock:
            return self.native_size

    def _request_resolution(self, resolution):
        width, height = resolution
        self.cap.set(cv2.CAP_PROP_FRAME_WIDTH, int(width))
        self.cap.set(cv2.CAP_PROP_FRAME_HEIGHT, int(height))

    def set_resolution(self, width, height):
        """Ask the driver for a new resolution; the size actually delivered is reported via callbacks."""
        if self.cap is None:
            logger.error("Cannot change resolution: camera not available")
            return
        logger.info(f"Requesting camera resolution {width}x{height}")
        with self._lock:
            self._request_resolution((width, height))

    def _notify_resolution_change(self, size):
        for callback in list(self._resolution_callbacks):
            try:
                callback(size)
            except Exception as e:
                logger.error(f"Error in resolution change callback: {e}")

    def update(self):
        """Method to read frames from camera in background thread"""
        logger.info("Background update thread started")
        frame_count = 0
        consecutive_failures = 0

        while not self.stopped:
            try:
                if self.cap is None or not self.cap.isOpened():
                    logger.error("Camera not available in background thread")
                    break

                # Blocking read outside the lock; readers only wait for the swap below
                ret, frame = self.cap.read()

                if ret and frame is not None:
                    size = (frame.shape[1], frame.shape[0])
                    with self._lock:
                        changed = size != self.native_size
                        self.ret = ret
                        self.frame = frame
                        self.native_size = size
                    if changed:
                        logger.info(f"Camera resolution changed to {size[0]}x{size[1]}")
                        self._notify_resolution_change(size)

                    consecutive_failures = 0
                    frame_count += 1

                    # Only log every 300 frames (about every 10 seconds at 30fps)
                    if frame_count % 300 == 0:
                        logger.info(f"Background thread: Read {frame_count} frames successfully")
                else:
                    consecutive_failures += 1
                    logger.warning(f"Background thread: Failed to read frame (attempt {consecutive_failures}/{MAX_CONSECUTIVE_FAILURES})")

                    if consecutive_failures >= MAX_CONSECUTIVE_FAILURES:
                        logger.error("Too many consecutive failures in background thread, stopping")
                        break

                    time.sleep(0.01)  # Brief pause before retry

            except Exception as e:
                logger.error(f"Error in background update thread: {e}")
                consecutive_failures += 1
                if consecutive_failures >= MAX_CONSECUTIVE_FAILURES:
                    logger.error("Too many errors in background thread, stopping")
                    break
                time.sleep(0.01)

        logger.info("Background update thread stopped")

    def read(self):
        """Return (ok, frame) with a copy of the latest frame"""
        if not self.is_initialized():
            logger.error("VideoStream not properly initialized")
            return False, None

        with self._lock:
            if self.frame is None:
                logger.warning("No frame available")
                return False, None
            return self.ret, self.frame.copy()  # Return a copy to avoid threading issues

    def stop(self):
        """Stop the video stream and release camera"""
        if self.stopped:
            return
        logger.info("Stopping video stream")
        self.stopped = True

        # Wait for background thread to finish
        if self.thread and self.thread.is_alive():
            logger.info("Waiting for background thread to finish...")
            self.thread.join(timeout=2.0)  # Wait up to 2 seconds
            if self.thread.is_alive():
                logger.warning("Background thread did not finish gracefully")

        self.cleanup()

    def cleanup(self):
        """Clean up resources"""
        try:
            if self.cap is not None:
                self.cap.release()
                self.cap = None
                logger.info("Camera released successfully")
        except Exception as e:
            logger.error(f"Error during cleanup: {e}")
