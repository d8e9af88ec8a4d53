from enum import Enum

from models import TrustSignal


class TrustPolicy(Enum):
    # Some word at or above threshold and non-blank text (default)
    ANY_WORD_WITH_TEXT = "any_word_with_text"
    # Some word at or above threshold, text ignored
    ANY_WORD = "any_word"
    # Best word at or above threshold and non-blank text
    MAX_WORD = "max_word"


def evaluate_confidence(result, threshold, policy=TrustPolicy.ANY_WORD_WITH_TEXT):
    """
    Reduce a RecognitionResult to a TrustSignal.

    A failed recognition is passed as None and is always untrusted, as is an
    empty word list regardless of the threshold.
    """
    if result is None or not result.words:
        return TrustSignal.UNTRUSTED

    has_text = bool(result.text.strip())

    if policy is TrustPolicy.ANY_WORD:
        trusted = any(word.confidence >= threshold for word in result.words)
    elif policy is TrustPolicy.MAX_WORD:
        trusted = has_text and max(word.confidence for word in result.words) >= threshold
    else:
        trusted = has_text and any(word.confidence >= threshold for word in result.words)

    return TrustSignal.TRUSTED if trusted else TrustSignal.UNTRUSTED
