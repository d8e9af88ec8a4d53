import logging
import threading

from models import TrustSignal

logger = logging.getLogger(__name__)


class TextManager:
    """
    Holds what the UI shows: the last recognized text and the trust signal
    that colors the ROI border.

    Written only by the frame scheduler, read by the display loop. Listeners
    are called whenever the trust signal changes.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.last_result = None
        self.recognized_text = ""
        self.trust_signal = TrustSignal.UNTRUSTED
        self.listeners = []
        logger.info("TextManager initialized")

    def add_listener(self, callback):
        """Register callback(signal) to be told about trust signal changes."""
        self.listeners.append(callback)

    def publish(self, result, signal):
        """
        Store a recognition result and its trust signal.

        result may be None for a failed recognition: the signal is updated but
        the last recognized text is kept.
        """
        with self._lock:
            if result is not None:
                self.last_result = result
                self.recognized_text = result.text.strip()
            changed = signal is not self.trust_signal
            self.trust_signal = signal

        if result is not None:
            logger.info(f"Recognized text: '{self.recognized_text}' ({signal.value})")

        if changed:
            logger.info(f"Trust signal changed to {signal.value}")
            for callback in list(self.listeners):
                try:
                    callback(signal)
                except Exception as e:
                    logger.error(f"Error in trust signal listener: {e}")

    def get_trust_signal(self):
        with self._lock:
            return self.trust_signal

    def get_last_recognized_text(self):
        with self._lock:
            return self.recognized_text

    def clear_text(self):
        """Forget the recognized text and reset the signal to untrusted."""
        logger.info("Clearing recognized text")
        self.publish(None, TrustSignal.UNTRUSTED)
        with self._lock:
            self.last_result = None
            self.recognized_text = ""
