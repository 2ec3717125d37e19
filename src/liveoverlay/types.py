from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import FrozenSet, Optional, Tuple, Union

import numpy as np


Point2 = Tuple[float, float]

INDEX_FINGER_TIP = 8


class Mode(str, enum.Enum):
    HAND_TRACKING = "hand_tracking"
    OBJECT_DETECTION = "object_detection"


class RunningMode(str, enum.Enum):
    """Per-image vs streaming inference semantics of the detector."""

    IMAGE = "image"
    VIDEO = "video"


class PipelineState(str, enum.Enum):
    IDLE = "idle"
    INITIALIZING = "initializing"
    RUNNING = "running"
    STOPPED = "stopped"


@dataclass(frozen=True)
class Frame:
    """
    One decoded BGR image from the camera stream.

    The pixel buffer is flagged read-only on construction; nothing downstream
    may write into it.
    """

    image: np.ndarray
    timestamp: float  # monotonic seconds
    seq: int = 0

    def __post_init__(self) -> None:
        if self.image.flags.writeable:
            self.image.setflags(write=False)

    @property
    def width(self) -> int:
        return int(self.image.shape[1])

    @property
    def height(self) -> int:
        return int(self.image.shape[0])

    @property
    def timestamp_ms(self) -> int:
        return int(self.timestamp * 1000)


@dataclass(frozen=True)
class NormalizedLandmark:
    """A hand keypoint in normalized [0,1] image coordinates."""

    x: float
    y: float
    z: float = 0.0


@dataclass(frozen=True)
class HandLandmarks:
    """Landmarks of one detected hand (21 points, index-stable)."""

    points: Tuple[NormalizedLandmark, ...]
    handedness_label: Optional[str] = None  # "Left" / "Right"
    handedness_score: Optional[float] = None


@dataclass(frozen=True)
class LandmarkSet:
    hands: Tuple[HandLandmarks, ...] = ()


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned box in pixel space: origin plus extent."""

    origin_x: float
    origin_y: float
    width: float
    height: float


@dataclass(frozen=True)
class Category:
    label: str
    score: float


@dataclass(frozen=True)
class ObjectDetection:
    box: BoundingBox
    categories: Tuple[Category, ...]  # ranked, never empty

    @property
    def top(self) -> Category:
        return self.categories[0]


@dataclass(frozen=True)
class ObjectSet:
    detections: Tuple[ObjectDetection, ...] = ()


DetectionResult = Union[LandmarkSet, ObjectSet]


@dataclass(frozen=True)
class MappedHand:
    """A hand whose landmarks were projected onto the render surface."""

    index: int
    points_px: Tuple[Point2, ...]
    handedness_label: Optional[str] = None
    handedness_score: Optional[float] = None

    @property
    def fingertip_px(self) -> Optional[Point2]:
        if len(self.points_px) <= INDEX_FINGER_TIP:
            return None
        return self.points_px[INDEX_FINGER_TIP]


@dataclass(frozen=True)
class MappedBox:
    box: BoundingBox
    label: str
    score: float


@dataclass(frozen=True)
class HandOverlay:
    hands: Tuple[MappedHand, ...] = ()
    engaged: FrozenSet[int] = field(default_factory=frozenset)


@dataclass(frozen=True)
class BoxOverlay:
    boxes: Tuple[MappedBox, ...] = ()


Overlay = Union[HandOverlay, BoxOverlay]
