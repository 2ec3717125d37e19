"""
Pipeline configuration.

A `PipelineConfig` is frozen: it is fixed before the loop starts and never
changes while the pipeline runs. Environment variables (``LIVEOVERLAY_*``)
provide defaults; the CLI overrides them with `dataclasses.replace`.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from .source import Facing
from .types import Mode, RunningMode


HAND_MODEL_PATH = "models/hand_landmarker.task"
OBJECT_MODEL_PATH = "models/efficientdet_lite0.tflite"


@dataclass(frozen=True)
class PipelineConfig:
    mode: Mode = Mode.HAND_TRACKING
    score_threshold: float = 0.5  # min detection confidence / object score
    max_num_hands: int = 2
    max_results: int = -1  # object detector; -1 = no limit
    running_mode: Optional[RunningMode] = None  # None: VIDEO for hands, IMAGE for objects

    # Hand model knobs
    model_complexity: int = 1
    min_tracking_confidence: float = 0.5
    hand_model_path: str = HAND_MODEL_PATH
    object_model_path: str = OBJECT_MODEL_PATH

    # Camera
    facing: Facing = Facing.ENVIRONMENT
    device_id: Optional[str] = None
    capture_width: Optional[int] = None
    capture_height: Optional[int] = None
    mirror: bool = True

    # Loop cadence (display refresh)
    refresh_hz: float = 60.0

    # Interaction zone radius as a fraction of surface width
    interaction_ratio: float = 0.10
    # Hysteresis enhancement; 0 keeps the raw per-frame predicate
    engage_release_frames: int = 0

    def __post_init__(self) -> None:
        if not (0.0 <= self.score_threshold <= 1.0):
            raise ValueError(f"score_threshold must be in [0, 1], got {self.score_threshold}")
        if not (0.0 <= self.min_tracking_confidence <= 1.0):
            raise ValueError(f"min_tracking_confidence must be in [0, 1], got {self.min_tracking_confidence}")
        if self.max_num_hands < 1:
            raise ValueError(f"max_num_hands must be >= 1, got {self.max_num_hands}")
        if self.max_results == 0 or self.max_results < -1:
            raise ValueError(f"max_results must be -1 or positive, got {self.max_results}")
        if self.refresh_hz <= 0:
            raise ValueError(f"refresh_hz must be positive, got {self.refresh_hz}")
        if self.interaction_ratio <= 0:
            raise ValueError(f"interaction_ratio must be positive, got {self.interaction_ratio}")
        if self.engage_release_frames < 0:
            raise ValueError(f"engage_release_frames must be >= 0, got {self.engage_release_frames}")

    @property
    def effective_running_mode(self) -> RunningMode:
        if self.running_mode is not None:
            return self.running_mode
        return RunningMode.VIDEO if self.mode is Mode.HAND_TRACKING else RunningMode.IMAGE

    @property
    def tick_interval(self) -> float:
        return 1.0 / self.refresh_hz

    @classmethod
    def from_env(cls, prefix: str = "LIVEOVERLAY_") -> "PipelineConfig":
        def env(name: str) -> Optional[str]:
            v = os.getenv(prefix + name)
            return v.strip() if v and v.strip() else None

        kwargs = {}
        if env("MODE"):
            kwargs["mode"] = Mode(env("MODE"))
        if env("SCORE_THRESHOLD"):
            kwargs["score_threshold"] = float(env("SCORE_THRESHOLD"))
        if env("MAX_HANDS"):
            kwargs["max_num_hands"] = int(env("MAX_HANDS"))
        if env("RUNNING_MODE"):
            kwargs["running_mode"] = RunningMode(env("RUNNING_MODE"))
        if env("FACING"):
            kwargs["facing"] = Facing(env("FACING"))
        if env("DEVICE_ID"):
            kwargs["device_id"] = env("DEVICE_ID")
        if env("REFRESH_HZ"):
            kwargs["refresh_hz"] = float(env("REFRESH_HZ"))
        if env("HAND_MODEL_PATH"):
            kwargs["hand_model_path"] = env("HAND_MODEL_PATH")
        if env("OBJECT_MODEL_PATH"):
            kwargs["object_model_path"] = env("OBJECT_MODEL_PATH")
        return cls(**kwargs)
