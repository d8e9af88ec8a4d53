"""
Pipeline configuration: immutable snapshots plus a lock-protected store that
UI handlers write to and the frame scheduler reads from once per tick.
"""

import logging
import threading
from dataclasses import dataclass, field, replace
from numbers import Real

from config import (BRIGHTNESS_DEFAULT, CONFIDENCE_THRESHOLD, CONTRAST_DEFAULT,
                    EDGE_DEFAULT, GRAYSCALE_DEFAULT, HIGHLIGHT_DEFAULT,
                    MAX_WORKER_COUNT, OCR_LANGUAGE, OCR_WORKER_COUNT,
                    STAGE_RANGES, THRESHOLD_DEFAULT, TRUST_POLICY)
from confidence import TrustPolicy

logger = logging.getLogger(__name__)

STAGE_NAMES = ("grayscale", "highlight", "contrast", "brightness", "threshold", "edge")


@dataclass(frozen=True)
class StageSettings:
    enabled: bool = False
    value: float = 0


def _stage(default):
    enabled, value = default
    return field(default_factory=lambda: StageSettings(enabled, value))


@dataclass(frozen=True)
class PreprocessingConfig:
    grayscale: StageSettings = _stage(GRAYSCALE_DEFAULT)
    highlight: StageSettings = _stage(HIGHLIGHT_DEFAULT)
    contrast: StageSettings = _stage(CONTRAST_DEFAULT)
    brightness: StageSettings = _stage(BRIGHTNESS_DEFAULT)
    threshold: StageSettings = _stage(THRESHOLD_DEFAULT)
    edge: StageSettings = _stage(EDGE_DEFAULT)

    def enabled_stages(self):
        return [name for name in STAGE_NAMES if getattr(self, name).enabled]


@dataclass(frozen=True)
class PipelineConfig:
    preprocessing: PreprocessingConfig = field(default_factory=PreprocessingConfig)
    confidence_threshold: float = CONFIDENCE_THRESHOLD
    worker_count: int = OCR_WORKER_COUNT
    language: str = OCR_LANGUAGE
    trust_policy: TrustPolicy = TrustPolicy(TRUST_POLICY)


def default_config():
    return PipelineConfig()


def _check_number(label, value):
    # bool is an int subclass but never a meaningful setting value
    if isinstance(value, bool) or not isinstance(value, Real):
        raise ValueError(f"{label} must be a number, got {value!r}")


def _merge_stage(name, current, changes):
    if isinstance(changes, bool):
        changes = {"enabled": changes}
    if not isinstance(changes, dict):
        raise ValueError(f"Stage '{name}' update must be a dict or bool, got {changes!r}")

    unknown = set(changes) - {"enabled", "value"}
    if unknown:
        raise ValueError(f"Unknown settings for stage '{name}': {sorted(unknown)}")

    enabled = changes.get("enabled", current.enabled)
    if not isinstance(enabled, bool):
        raise ValueError(f"Stage '{name}' enabled must be True or False, got {enabled!r}")

    value = changes.get("value", current.value)
    if "value" in changes:
        _check_number(f"Stage '{name}' value", value)
        low, high = STAGE_RANGES[name]
        if name != "grayscale" and not low <= value <= high:
            raise ValueError(f"Stage '{name}' value {value} outside range {low}-{high}")
    return StageSettings(enabled, value)


def merge_config(config, partial):
    """
    Return a new PipelineConfig with `partial` merged into `config`.

    partial example:
        {"contrast": {"enabled": True, "value": 70}, "threshold": True,
         "confidence_threshold": 60, "worker_count": 2}
    """
    stage_changes = {}
    top_changes = {}

    for key, value in partial.items():
        if key in STAGE_NAMES:
            stage_changes[key] = _merge_stage(key, getattr(config.preprocessing, key), value)
        elif key == "confidence_threshold":
            _check_number(key, value)
            if not 0 <= value <= 100:
                raise ValueError(f"confidence_threshold must be within 0-100, got {value}")
            top_changes[key] = value
        elif key == "worker_count":
            _check_number(key, value)
            if not 1 <= int(value) <= MAX_WORKER_COUNT:
                raise ValueError(f"worker_count must be within 1-{MAX_WORKER_COUNT}, got {value}")
            top_changes[key] = int(value)
        elif key == "language":
            top_changes[key] = str(value)
        elif key == "trust_policy":
            top_changes[key] = TrustPolicy(value)
        else:
            raise ValueError(f"Unknown configuration key: {key}")

    preprocessing = replace(config.preprocessing, **stage_changes)
    return replace(config, preprocessing=preprocessing, **top_changes)


class ConfigStore:
    """
    Process-wide holder of the current PipelineConfig.

    Writers swap in a whole new immutable config under the lock, so a reader's
    snapshot can never observe a half-applied update.
    """

    def __init__(self, initial=None):
        self._lock = threading.Lock()
        self._config = initial or default_config()

    def snapshot(self):
        with self._lock:
            return self._config

    def update(self, partial):
        with self._lock:
            self._config = merge_config(self._config, partial)
            logger.info(f"Configuration updated: {partial}")
            return self._config

    def toggle_stage(self, name):
        with self._lock:
            current = getattr(self._config.preprocessing, name).enabled
            self._config = merge_config(self._config, {name: {"enabled": not current}})
            logger.info(f"Stage '{name}' {'disabled' if current else 'enabled'}")
            return self._config
