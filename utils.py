import cv2

from config import INFO_TEXT_COLOR, ROI_BORDER_THICKNESS, TRUSTED_COLOR, UNTRUSTED_COLOR
from models import TrustSignal


def signal_color(signal):
    """BGR border color for a trust signal."""
    return TRUSTED_COLOR if signal is TrustSignal.TRUSTED else UNTRUSTED_COLOR


def draw_roi(frame, rect, signal):
    """
    Draws the ROI rectangle on the display frame, green when trusted and red otherwise.
    rect is in the display frame's own coordinates.
    """
    if frame is None or rect is None:
        return frame

    height, width = frame.shape[:2]

    # Clamp coordinates to frame bounds
    x1 = max(0, min(int(rect.x), width - 1))
    y1 = max(0, min(int(rect.y), height - 1))
    x2 = max(0, min(int(rect.x + rect.width), width - 1))
    y2 = max(0, min(int(rect.y + rect.height), height - 1))

    color = signal_color(signal)
    cv2.rectangle(frame, (x1, y1), (x2, y2), color, ROI_BORDER_THICKNESS)
    return frame


def draw_status(frame, lines):
    """Draws status lines bottom-up in the lower left corner."""
    if frame is None:
        return frame

    y = frame.shape[0] - 20
    for line in reversed(lines):
        cv2.putText(frame, line, (10, y), cv2.FONT_HERSHEY_SIMPLEX, 0.5, INFO_TEXT_COLOR, 1)
        y -= 20
    return frame


def draw_selection(frame, start, end):
    """Draws the rectangle the user is currently dragging out with the mouse."""
    if frame is None or start is None or end is None:
        return frame
    cv2.rectangle(frame, start, end, INFO_TEXT_COLOR, 1)
    return frame
