"""
Preprocessing chain applied to the ROI before it is handed to Tesseract.

Stages always run in the same order: grayscale -> highlight -> contrast ->
brightness -> threshold -> edge. Each stage returns a new image and leaves its
input untouched, so the caller's ROI crop is never modified.
"""

import logging

import cv2
import numpy as np

from errors import PreprocessingStageError

logger = logging.getLogger(__name__)


def contrast_gain(value):
    """Map the 0-100 contrast slider to a gain; 50 is exactly 1.0."""
    return value / 50.0


def brightness_offset(value):
    """Map the 0-100 brightness slider to an additive offset; 50 is exactly 0."""
    return (value - 50) * 2


def highlight_offset(value):
    """
    Map the 0-100 highlight strength to a brightening offset (0 to +60).

    This is an approximation: a real highlight curve would only lift the
    lighter tones, this lifts every pixel by the same amount.
    """
    return (value / 50.0) * 30


def edge_thresholds(sensitivity):
    """Canny hysteresis thresholds; the high threshold is always twice the low one."""
    low = sensitivity * 10
    return low, low * 2


def _check_image(image, stage):
    if not isinstance(image, np.ndarray) or image.size == 0:
        raise PreprocessingStageError(f"{stage}: expected a non-empty numpy image")
    if image.dtype != np.uint8:
        raise PreprocessingStageError(f"{stage}: expected uint8 pixels, got {image.dtype}")
    if image.ndim == 2:
        return
    if image.ndim != 3 or image.shape[2] not in (1, 3, 4):
        raise PreprocessingStageError(f"{stage}: unsupported image shape {image.shape}")


def to_grayscale(image):
    """Convert a BGR/BGRA image to a single channel. Gray input is returned as a copy."""
    _check_image(image, "grayscale")
    if image.ndim == 2:
        return image.copy()
    if image.shape[2] == 1:
        return image[:, :, 0].copy()
    if image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
    return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)


def _drop_alpha(image):
    if image.ndim == 3 and image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)
    return image


def _linear_transform(image, alpha, beta, stage):
    """out = saturate(round(alpha * in + beta)), the same arithmetic as cv::Mat::convertTo."""
    _check_image(image, stage)
    image = _drop_alpha(image)
    scaled = image.astype(np.float32) * alpha + beta
    return np.clip(np.rint(scaled), 0, 255).astype(np.uint8)


def apply_highlight(image, value):
    return _linear_transform(image, 1.0, highlight_offset(value), "highlight")


def apply_contrast(image, value):
    return _linear_transform(image, contrast_gain(value), 0, "contrast")


def apply_brightness(image, value):
    return _linear_transform(image, 1.0, brightness_offset(value), "brightness")


def _ensure_gray(image, stage):
    # Stage-local conversion; does not change what the grayscale stage does
    _check_image(image, stage)
    if image.ndim == 2:
        return image
    return to_grayscale(image)


def apply_threshold(image, value):
    """Binary threshold: pixels above `value` become 255, everything else 0."""
    gray = _ensure_gray(image, "threshold")
    _, binary = cv2.threshold(gray, float(value), 255, cv2.THRESH_BINARY)
    return binary


def apply_edges(image, sensitivity):
    gray = _ensure_gray(image, "edge")
    low, high = edge_thresholds(sensitivity)
    return cv2.Canny(gray, low, high)


# Fixed stage order; configuration only switches stages on and off
PREPROCESS_STAGES = [
    ("grayscale", lambda image, value: to_grayscale(image)),
    ("highlight", apply_highlight),
    ("contrast", apply_contrast),
    ("brightness", apply_brightness),
    ("threshold", apply_threshold),
    ("edge", apply_edges),
]


def preprocess_roi(image, preprocessing):
    """
    Run the enabled stages of a PreprocessingConfig snapshot over an ROI image.

    Returns a new image with the same width and height. With every stage
    disabled the result is a pixel-identical copy of the input.
    """
    _check_image(image, "input")

    processed = image.copy()
    applied = []
    for name, stage in PREPROCESS_STAGES:
        settings = getattr(preprocessing, name)
        if not settings.enabled:
            continue
        processed = stage(processed, settings.value)
        applied.append(name)

    if applied:
        logger.debug(f"Applied preprocessing stages: {', '.join(applied)}")
    return processed
