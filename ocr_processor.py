import asyncio
import logging
import threading
from concurrent.futures import ThreadPoolExecutor

import cv2
import pytesseract
from PIL import Image

from config import OCR_LANGUAGE, OCR_TIMEOUT, OCR_WORKER_COUNT, TESSERACT_CONFIG
from errors import RecognitionFailure
from models import RecognitionResult, WordConfidence

logger = logging.getLogger(__name__)


def to_pil_image(image):
    """Convert an OpenCV image (gray, BGR or BGRA) to a PIL image Tesseract can read."""
    if image.ndim == 2:
        return Image.fromarray(image)
    if image.shape[2] == 1:
        return Image.fromarray(image[:, :, 0])
    if image.shape[2] == 4:
        return Image.fromarray(cv2.cvtColor(image, cv2.COLOR_BGRA2RGB))
    return Image.fromarray(cv2.cvtColor(image, cv2.COLOR_BGR2RGB))


def parse_tesseract_data(data):
    """
    Build a RecognitionResult from pytesseract's image_to_data dictionary.

    Rows with confidence -1 are layout rows (page/block/line) and carry no word.
    Words sharing a block/paragraph/line are joined with spaces, lines with newlines.
    """
    words = []
    lines = {}
    line_order = []

    for i in range(len(data['text'])):
        text = str(data['text'][i]).strip()
        confidence = float(data['conf'][i])
        if not text or confidence < 0:
            continue

        words.append(WordConfidence(text, confidence))

        line_key = (data['block_num'][i], data['par_num'][i], data['line_num'][i])
        if line_key not in lines:
            lines[line_key] = []
            line_order.append(line_key)
        lines[line_key].append(text)

    text = "\n".join(" ".join(lines[key]) for key in line_order)
    return RecognitionResult(text=text, words=tuple(words))


class OCRProcessor:
    """
    Long-lived gateway to Tesseract.

    Created once per session and reconfigured in place. The worker count sizes
    the thread pool recognitions run on, but calls are still serialized so at
    most one image is inside Tesseract at a time.
    """

    def __init__(self, language=OCR_LANGUAGE, worker_count=OCR_WORKER_COUNT,
                 timeout=OCR_TIMEOUT, tesseract_config=TESSERACT_CONFIG):
        logger.info("Initializing OCRProcessor with Tesseract")
        self.language = language
        self.worker_count = worker_count
        self.timeout = timeout
        self.tesseract_config = tesseract_config
        self._lock = threading.Lock()
        # Held for the whole engine call: one recognition in flight per processor
        self._recognition_lock = threading.Lock()
        self._executor = None
        self.frame_count = 0

        try:
            version = pytesseract.get_tesseract_version()
            logger.info(f"Tesseract {version} is available")
        except Exception as e:
            logger.error(f"Failed to initialize Tesseract: {e}")
            logger.error("Please install Tesseract: brew install tesseract (macOS) or apt-get install tesseract-ocr (Ubuntu)")
            raise RecognitionFailure(f"Tesseract is not available: {e}") from e

        self._executor = self._create_executor(worker_count)
        logger.info(f"Tesseract OCR processor initialized (language={language}, workers={worker_count})")

    def _create_executor(self, worker_count):
        return ThreadPoolExecutor(max_workers=worker_count, thread_name_prefix="ocr-worker")

    @property
    def closed(self):
        return self._executor is None

    def reconfigure(self, worker_count=None, language=None):
        """Apply new settings without recreating the processor."""
        with self._lock:
            if language is not None and language != self.language:
                logger.info(f"OCR language changed: {self.language} -> {language}")
                self.language = language

            if worker_count is not None and worker_count != self.worker_count:
                logger.info(f"OCR worker count changed: {self.worker_count} -> {worker_count}")
                old_executor = self._executor
                self._executor = self._create_executor(worker_count)
                self.worker_count = worker_count
                if old_executor is not None:
                    old_executor.shutdown(wait=False)

    def recognize(self, image):
        """
        Run Tesseract on one image.
        Returns a RecognitionResult; raises RecognitionFailure on any engine error.
        """
        if image is None or image.size == 0:
            raise RecognitionFailure("Input image is empty")

        with self._recognition_lock:
            self.frame_count += 1
            height, width = image.shape[:2]
            logger.info(f"Running OCR on {width}x{height} image (request {self.frame_count})")

            try:
                data = pytesseract.image_to_data(
                    to_pil_image(image),
                    lang=self.language,
                    config=self.tesseract_config,
                    timeout=self.timeout,
                    output_type=pytesseract.Output.DICT
                )
                result = parse_tesseract_data(data)
            except RuntimeError as e:
                # pytesseract signals a timeout with a RuntimeError
                raise RecognitionFailure(f"Tesseract timed out or failed: {e}") from e
            except Exception as e:
                raise RecognitionFailure(f"Tesseract OCR processing failed: {e}") from e

        logger.info(f"Recognized {len(result.words)} words")
        return result

    async def recognize_async(self, image):
        """Run recognize() on the worker pool without blocking the event loop."""
        with self._lock:
            executor = self._executor
        if executor is None:
            raise RecognitionFailure("OCR processor is closed")

        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(executor, self.recognize, image)

    def close(self):
        with self._lock:
            if self._executor is not None:
                self._executor.shutdown(wait=False)
                self._executor = None
                logger.info("OCR processor closed")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
