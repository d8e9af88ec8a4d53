"""
Configuration file for the live ROI OCR pipeline.
"""

# Camera configuration
CAMERA_SOURCE = 0         # Camera source (0 for default camera)
DEFAULT_RESOLUTION = (640, 480)
RESOLUTIONS = [(640, 480), (1280, 720), (1920, 1080)]  # Cycled with the 'r' key
MAX_CONSECUTIVE_FAILURES = 30  # Maximum consecutive frame read failures in the capture thread

# Display configuration
WINDOW_TITLE = "Live ROI OCR"
DISPLAY_SIZE = (960, 540)  # Preview is rendered at this size, ROI is drawn in these coordinates
INFO_TEXT_COLOR = (255, 255, 255)  # White color for info text

# Region of interest
DEFAULT_ROI_RATIO = 0.5   # Default ROI covers 50% of frame width and height, centered

# ROI border colors (BGR)
TRUSTED_COLOR = (0, 255, 0)    # Green
UNTRUSTED_COLOR = (0, 0, 255)  # Red
ROI_BORDER_THICKNESS = 2

# Scheduler configuration
PACING_MODE = "timer"     # "timer" (fixed interval) or "refresh" (once per displayed frame)
OCR_INTERVAL = 0.8        # Seconds between timer-driven ticks
ASYNC_SLEEP_TIME = 0.02   # Display loop sleep so the event loop can run OCR ticks

# OCR configuration - Tesseract
OCR_LANGUAGE = "eng"
OCR_WORKER_COUNT = 1      # 1-4, size of the recognition thread pool
MAX_WORKER_COUNT = 4
OCR_TIMEOUT = 5           # Seconds before a Tesseract call is abandoned
TESSERACT_CONFIG = "--oem 3 --psm 6"
CONFIDENCE_THRESHOLD = 70  # 0-100, a word at or above this makes the ROI trusted
TRUST_POLICY = "any_word_with_text"

# Preprocessing defaults: (enabled, value)
# highlight/contrast/brightness are 0-100 sliders with 50 as the neutral midpoint,
# threshold is a 0-255 cutoff, edge is a sensitivity multiplier for Canny.
GRAYSCALE_DEFAULT = (False, 0)
HIGHLIGHT_DEFAULT = (False, 50)
CONTRAST_DEFAULT = (False, 50)
BRIGHTNESS_DEFAULT = (False, 50)
THRESHOLD_DEFAULT = (False, 128)
EDGE_DEFAULT = (False, 3)

# Valid slider ranges per stage
STAGE_RANGES = {
    "grayscale": (0, 0),
    "highlight": (0, 100),
    "contrast": (0, 100),
    "brightness": (0, 100),
    "threshold": (0, 255),
    "edge": (1, 25),
}

# Logging configuration
LOG_LEVEL = "INFO"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
