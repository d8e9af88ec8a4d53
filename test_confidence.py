import pytest

from confidence import TrustPolicy, evaluate_confidence
from models import RecognitionResult, TrustSignal, WordConfidence

WORDS = (WordConfidence("foo", 40), WordConfidence("bar", 85))


def test_any_word_above_threshold_with_text_is_trusted():
    result = RecognitionResult("foo bar", WORDS)
    assert evaluate_confidence(result, 70) is TrustSignal.TRUSTED


def test_empty_text_is_untrusted():
    result = RecognitionResult("   \n", WORDS)
    assert evaluate_confidence(result, 70) is TrustSignal.UNTRUSTED


def test_no_words_is_untrusted_even_at_zero_threshold():
    assert evaluate_confidence(RecognitionResult("", ()), 0) is TrustSignal.UNTRUSTED
    assert evaluate_confidence(RecognitionResult("text", ()), 0) is TrustSignal.UNTRUSTED


def test_failure_is_untrusted():
    assert evaluate_confidence(None, 0) is TrustSignal.UNTRUSTED


def test_threshold_is_inclusive():
    result = RecognitionResult("bar", (WordConfidence("bar", 85),))
    assert evaluate_confidence(result, 85) is TrustSignal.TRUSTED
    assert evaluate_confidence(result, 85.5) is TrustSignal.UNTRUSTED


def test_all_words_below_threshold_is_untrusted():
    result = RecognitionResult("foo bar", WORDS)
    assert evaluate_confidence(result, 90) is TrustSignal.UNTRUSTED


def test_any_word_policy_ignores_text():
    result = RecognitionResult("", WORDS)
    assert evaluate_confidence(result, 70, TrustPolicy.ANY_WORD) is TrustSignal.TRUSTED


@pytest.mark.parametrize("threshold, expected", [
    (85, TrustSignal.TRUSTED),
    (86, TrustSignal.UNTRUSTED),
])
def test_max_word_policy(threshold, expected):
    result = RecognitionResult("foo bar", WORDS)
    assert evaluate_confidence(result, threshold, TrustPolicy.MAX_WORD) is expected


def test_max_word_policy_requires_text():
    result = RecognitionResult("", WORDS)
    assert evaluate_confidence(result, 10, TrustPolicy.MAX_WORD) is TrustSignal.UNTRUSTED
