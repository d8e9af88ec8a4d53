import threading

import pytest

from confidence import TrustPolicy
from config import CONFIDENCE_THRESHOLD, THRESHOLD_DEFAULT
from pipeline_config import (ConfigStore, PipelineConfig, StageSettings, default_config,
                             merge_config)


def test_defaults_come_from_config_module():
    config = default_config()
    assert config.confidence_threshold == CONFIDENCE_THRESHOLD
    assert config.preprocessing.threshold == StageSettings(*THRESHOLD_DEFAULT)
    assert config.preprocessing.enabled_stages() == []
    assert config.language == "eng"
    assert config.trust_policy is TrustPolicy.ANY_WORD_WITH_TEXT


def test_merge_returns_new_config_and_leaves_old_untouched():
    old = default_config()
    new = merge_config(old, {"contrast": {"enabled": True, "value": 70}, "worker_count": 2})

    assert new.preprocessing.contrast == StageSettings(True, 70)
    assert new.worker_count == 2
    assert old.preprocessing.contrast.enabled is False
    assert old.worker_count == default_config().worker_count


def test_merge_keeps_unmentioned_fields():
    config = merge_config(default_config(), {"threshold": {"value": 90}})
    assert config.preprocessing.threshold == StageSettings(False, 90)


def test_merge_accepts_bool_shorthand():
    config = merge_config(default_config(), {"edge": True})
    assert config.preprocessing.edge.enabled is True
    assert config.preprocessing.enabled_stages() == ["edge"]


def test_enabled_stages_keep_pipeline_order():
    config = merge_config(default_config(), {"edge": True, "grayscale": True, "contrast": True})
    assert config.preprocessing.enabled_stages() == ["grayscale", "contrast", "edge"]


@pytest.mark.parametrize("partial", [
    {"sharpen": True},
    {"contrast": {"gain": 2}},
    {"contrast": {"value": 101}},
    {"threshold": {"value": -1}},
    {"edge": {"value": 0}},
    {"confidence_threshold": 120},
    {"worker_count": 0},
    {"worker_count": 5},
    {"trust_policy": "majority"},
    {"brightness": "on"},
    {"contrast": {"value": "70"}},
    {"contrast": {"enabled": "false"}},
    {"threshold": {"enabled": 1}},
    {"confidence_threshold": "50"},
    {"worker_count": "2"},
])
def test_merge_rejects_invalid_updates(partial):
    with pytest.raises(ValueError):
        merge_config(default_config(), partial)


def test_store_update_applies_to_later_snapshots_only():
    store = ConfigStore()
    before = store.snapshot()
    store.update({"grayscale": True, "confidence_threshold": 55})
    after = store.snapshot()

    assert before.preprocessing.grayscale.enabled is False
    assert before.confidence_threshold == CONFIDENCE_THRESHOLD
    assert after.preprocessing.grayscale.enabled is True
    assert after.confidence_threshold == 55


def test_store_toggle_stage():
    store = ConfigStore()
    store.toggle_stage("highlight")
    assert store.snapshot().preprocessing.highlight.enabled is True
    store.toggle_stage("highlight")
    assert store.snapshot().preprocessing.highlight.enabled is False


def test_store_uses_initial_config():
    initial = PipelineConfig(confidence_threshold=10)
    assert ConfigStore(initial).snapshot() is initial


def test_concurrent_updates_never_tear_a_snapshot():
    store = ConfigStore()
    stop = threading.Event()
    torn = []

    def writer():
        value = 0
        while not stop.is_set():
            value = (value + 1) % 100
            store.update({"contrast": {"value": value}, "brightness": {"value": value}})

    def reader():
        for _ in range(2000):
            snap = store.snapshot()
            if snap.preprocessing.contrast.value != snap.preprocessing.brightness.value:
                torn.append(snap)

    thread = threading.Thread(target=writer)
    thread.start()
    try:
        reader()
    finally:
        stop.set()
        thread.join()

    assert torn == []
