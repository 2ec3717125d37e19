"""
Mode-specific interpretation of detector output.

The pipeline is the same for both modes; a strategy picked from the config at
construction turns a `DetectionResult` into an overlay sized for the current
surface.
"""

from __future__ import annotations

import logging
from typing import Optional

from .config import PipelineConfig
from .interaction import EngagementHysteresis, evaluate_engagement
from .mapping import map_boxes, map_landmarks
from .types import BoxOverlay, DetectionResult, HandOverlay, LandmarkSet, Mode, ObjectSet

logger = logging.getLogger(__name__)


class LandmarkInterpretation:
    mode = Mode.HAND_TRACKING

    def __init__(self, interaction_ratio: float, release_frames: int = 0) -> None:
        self.interaction_ratio = interaction_ratio
        self._hysteresis: Optional[EngagementHysteresis] = (
            EngagementHysteresis(release_frames) if release_frames > 0 else None
        )
        self._was_engaged = False

    def interpret(self, result: DetectionResult, width: int, height: int) -> HandOverlay:
        if not isinstance(result, LandmarkSet):
            raise TypeError(f"hand tracking expects a LandmarkSet, got {type(result).__name__}")
        hands = map_landmarks(result, width, height)
        engaged = evaluate_engagement(hands, width, height, self.interaction_ratio)
        if self._hysteresis is not None:
            engaged = self._hysteresis.step(engaged)
        if engaged and not self._was_engaged:
            logger.info("engaged with target: hands %s", sorted(engaged))
        elif not engaged and self._was_engaged:
            logger.info("released target")
        self._was_engaged = bool(engaged)
        return HandOverlay(hands=hands, engaged=engaged)


class BoxInterpretation:
    mode = Mode.OBJECT_DETECTION

    def interpret(self, result: DetectionResult, width: int, height: int) -> BoxOverlay:
        if not isinstance(result, ObjectSet):
            raise TypeError(f"object detection expects an ObjectSet, got {type(result).__name__}")
        boxes = map_boxes(result, width, height)
        dropped = len(result.detections) - len(boxes)
        if dropped:
            logger.debug("dropped %d box(es) outside the %dx%d surface", dropped, width, height)
        return BoxOverlay(boxes=boxes)


def strategy_for(config: PipelineConfig):
    if config.mode is Mode.HAND_TRACKING:
        return LandmarkInterpretation(config.interaction_ratio, config.engage_release_frames)
    return BoxInterpretation()
