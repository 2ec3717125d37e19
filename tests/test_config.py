import dataclasses

import pytest

from liveoverlay.config import PipelineConfig
from liveoverlay.source import Facing
from liveoverlay.types import Mode, RunningMode


def test_defaults():
    cfg = PipelineConfig()
    assert cfg.mode is Mode.HAND_TRACKING
    assert cfg.score_threshold == 0.5
    assert cfg.interaction_ratio == 0.10
    assert cfg.effective_running_mode is RunningMode.VIDEO
    assert cfg.tick_interval == pytest.approx(1 / 60)


def test_config_is_immutable():
    cfg = PipelineConfig()
    with pytest.raises(dataclasses.FrozenInstanceError):
        cfg.score_threshold = 0.9


@pytest.mark.parametrize(
    "kwargs",
    [
        {"score_threshold": 1.5},
        {"max_num_hands": 0},
        {"max_results": 0},
        {"refresh_hz": 0},
        {"engage_release_frames": -1},
    ],
)
def test_invalid_values_rejected(kwargs):
    with pytest.raises(ValueError):
        PipelineConfig(**kwargs)


def test_from_env(monkeypatch):
    monkeypatch.setenv("LIVEOVERLAY_MODE", "object_detection")
    monkeypatch.setenv("LIVEOVERLAY_SCORE_THRESHOLD", "0.35")
    monkeypatch.setenv("LIVEOVERLAY_FACING", "user")
    monkeypatch.setenv("LIVEOVERLAY_REFRESH_HZ", "30")
    cfg = PipelineConfig.from_env()

    assert cfg.mode is Mode.OBJECT_DETECTION
    assert cfg.score_threshold == 0.35
    assert cfg.facing is Facing.USER
    assert cfg.refresh_hz == 30.0
    assert cfg.effective_running_mode is RunningMode.IMAGE
