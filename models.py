"""
Shared data types passed between the pipeline components.
"""

from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple, Optional, Tuple


class TrustSignal(Enum):
    TRUSTED = "trusted"
    UNTRUSTED = "untrusted"


class WordConfidence(NamedTuple):
    text: str
    confidence: float  # 0-100, as reported by Tesseract


@dataclass(frozen=True)
class RecognitionResult:
    """Text recognized in one ROI plus the per-word confidences it was built from."""

    text: str
    words: Tuple[WordConfidence, ...] = ()


class TickStatus(Enum):
    COMPLETED = "completed"
    SKIPPED_BUSY = "skipped_busy"
    CAPTURE_UNAVAILABLE = "capture_unavailable"
    GEOMETRY_INVALID = "geometry_invalid"
    PREPROCESSING_FAILED = "preprocessing_failed"
    RECOGNITION_FAILED = "recognition_failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class TickOutcome:
    """What happened during one scheduler tick."""

    status: TickStatus
    result: Optional[RecognitionResult] = None
    signal: Optional[TrustSignal] = None
    error: Optional[str] = None

    @property
    def ok(self):
        return self.status is TickStatus.COMPLETED
