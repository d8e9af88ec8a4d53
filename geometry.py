import logging
import threading
from dataclasses import dataclass

from config import DEFAULT_ROI_RATIO
from errors import GeometryInvalid

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Rect:
    x: float
    y: float
    width: float
    height: float

    @property
    def area(self):
        return self.width * self.height

    def as_slices(self):
        """Return (row_slice, col_slice) for cutting this rect out of a numpy image."""
        x, y = int(self.x), int(self.y)
        return slice(y, y + int(self.height)), slice(x, x + int(self.width))


def _scale_factors(frame_size, display_size):
    frame_width, frame_height = frame_size
    display_width, display_height = display_size
    if display_width <= 0 or display_height <= 0:
        raise GeometryInvalid(f"Invalid display size: {display_width}x{display_height}")
    if frame_width <= 0 or frame_height <= 0:
        raise GeometryInvalid(f"Invalid frame size: {frame_width}x{frame_height}")
    return frame_width / display_width, frame_height / display_height


def display_to_frame(display_rect, frame_size, display_size, display_origin=(0, 0)):
    """
    Convert a rect in on-screen display coordinates to source-frame pixels.

    display_origin is the top-left of the rendered frame on screen, so a preview
    drawn with an offset (letterboxing, window padding) maps correctly.
    """
    scale_x, scale_y = _scale_factors(frame_size, display_size)
    origin_x, origin_y = display_origin
    return Rect(
        int(round((display_rect.x - origin_x) * scale_x)),
        int(round((display_rect.y - origin_y) * scale_y)),
        int(round(display_rect.width * scale_x)),
        int(round(display_rect.height * scale_y)),
    )


def frame_to_display(frame_rect, frame_size, display_size, display_origin=(0, 0)):
    """Convert a rect in source-frame pixels back to display coordinates."""
    scale_x, scale_y = _scale_factors(frame_size, display_size)
    origin_x, origin_y = display_origin
    return Rect(
        frame_rect.x / scale_x + origin_x,
        frame_rect.y / scale_y + origin_y,
        frame_rect.width / scale_x,
        frame_rect.height / scale_y,
    )


def clamp_to_frame(rect, frame_size):
    """Clamp a frame-space rect to the frame bounds. The result may have zero area."""
    frame_width, frame_height = frame_size
    x1 = max(0, min(int(rect.x), frame_width))
    y1 = max(0, min(int(rect.y), frame_height))
    x2 = max(0, min(int(rect.x + rect.width), frame_width))
    y2 = max(0, min(int(rect.y + rect.height), frame_height))
    return Rect(x1, y1, max(0, x2 - x1), max(0, y2 - y1))


def default_roi(frame_size, ratio=DEFAULT_ROI_RATIO):
    """Centered rect covering `ratio` of the frame width and height."""
    frame_width, frame_height = frame_size
    width = int(frame_width * ratio)
    height = int(frame_height * ratio)
    return Rect((frame_width - width) // 2, (frame_height - height) // 2, width, height)


class GeometryMapper:
    """
    Keeps the ROI (source of truth in display coordinates) and the capture
    geometry, and resolves the ROI to frame pixels.

    The resolved rect is cached until the ROI, the native frame size or the
    display size changes. Setters may be called from the capture thread
    (resolution change) and the UI thread (mouse selection), hence the lock.
    """

    def __init__(self, native_size=None, display_size=None, display_origin=(0, 0)):
        self._lock = threading.RLock()
        self._native_size = tuple(native_size) if native_size else None
        self._display_size = tuple(display_size) if display_size else None
        self._display_origin = tuple(display_origin)
        self._display_roi = None
        self._resolved = None

    @property
    def native_size(self):
        with self._lock:
            return self._native_size

    @property
    def display_size(self):
        with self._lock:
            return self._display_size

    def set_roi(self, display_rect):
        """Set the ROI in display coordinates. None restores the default centered ROI."""
        with self._lock:
            if display_rect is not None and (display_rect.width <= 0 or display_rect.height <= 0):
                raise GeometryInvalid(f"ROI must have positive size, got {display_rect}")
            self._display_roi = display_rect
            self._resolved = None
            logger.info(f"ROI set to {display_rect if display_rect else 'default (centered)'}")

    def set_capture_geometry(self, native_size, display_size, display_origin=(0, 0)):
        with self._lock:
            self._native_size = tuple(native_size)
            self._display_size = tuple(display_size)
            self._display_origin = tuple(display_origin)
            self._resolved = None
            logger.info(f"Capture geometry: native {native_size[0]}x{native_size[1]}, "
                        f"display {display_size[0]}x{display_size[1]}")

    def set_native_size(self, native_size):
        """Callback target for capture resolution changes."""
        with self._lock:
            native_size = tuple(native_size)
            if native_size == self._native_size:
                return
            logger.info(f"Native frame size changed to {native_size[0]}x{native_size[1]}, re-resolving ROI")
            self._native_size = native_size
            if self._display_size is None:
                self._display_size = native_size
            self._resolved = None

    def resolve(self):
        """
        Return the ROI in frame pixel coordinates.

        Raises GeometryInvalid if the geometry is unknown or the clamped ROI is empty.
        """
        with self._lock:
            if self._resolved is not None:
                return self._resolved

            if self._native_size is None:
                raise GeometryInvalid("Native frame size is not known yet")

            if self._display_roi is None:
                rect = default_roi(self._native_size)
            else:
                display_size = self._display_size or self._native_size
                mapped = display_to_frame(self._display_roi, self._native_size,
                                          display_size, self._display_origin)
                rect = clamp_to_frame(mapped, self._native_size)
                if rect != mapped:
                    logger.warning(f"ROI {mapped} extends outside frame "
                                   f"{self._native_size[0]}x{self._native_size[1]}, clamped to {rect}")

            if rect.area <= 0:
                raise GeometryInvalid(f"ROI has zero area after clamping: {rect}")

            self._resolved = rect
            return rect

    def display_roi(self):
        """Return the ROI in display coordinates (for drawing), or None if geometry is unknown."""
        with self._lock:
            if self._display_roi is not None:
                return self._display_roi
            if self._native_size is None:
                return None
            display_size = self._display_size or self._native_size
            return frame_to_display(default_roi(self._native_size), self._native_size,
                                    display_size, self._display_origin)
