from __future__ import annotations

import asyncio
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Tuple

import cv2

from .config import PipelineConfig
from .errors import LiveOverlayError
from .model_assets import ensure_hand_landmarker_task, ensure_object_detector_model
from .types import (
    BoundingBox,
    Category,
    DetectionResult,
    Frame,
    HandLandmarks,
    LandmarkSet,
    Mode,
    NormalizedLandmark,
    ObjectDetection,
    ObjectSet,
    RunningMode,
)
from .utils import clamp01

logger = logging.getLogger(__name__)


HAND_CONNECTIONS: List[Tuple[int, int]] = [
    # thumb
    (0, 1),
    (1, 2),
    (2, 3),
    (3, 4),
    # index
    (0, 5),
    (5, 6),
    (6, 7),
    (7, 8),
    # middle
    (5, 9),
    (9, 10),
    (10, 11),
    (11, 12),
    # ring
    (9, 13),
    (13, 14),
    (14, 15),
    (15, 16),
    # pinky
    (13, 17),
    (17, 18),
    (18, 19),
    (19, 20),
    # palm base
    (0, 17),
]


class Detector(ABC):
    """
    Maps one frame to a structured detection result.

    The pipeline awaits every `detect` call before issuing the next one, so
    implementations never see overlapping calls.
    """

    @abstractmethod
    def name(self) -> str: ...

    @abstractmethod
    async def detect(self, frame: Frame) -> DetectionResult: ...

    @abstractmethod
    def close(self) -> None: ...


class BlockingDetector(Detector):
    """
    Runs a synchronous model call on a worker thread.

    `close` never frees the model under a running `infer`: when a call is in
    flight the release is left to the worker, which performs it as soon as
    the call returns.
    """

    def __init__(self) -> None:
        self._closed = False
        self._busy = False
        self._released = False
        self._guard = threading.Lock()  # held only to flip the flags above

    @property
    def closed(self) -> bool:
        return self._closed

    @abstractmethod
    def infer(self, frame: Frame) -> DetectionResult: ...

    @abstractmethod
    def _release(self) -> None: ...

    async def detect(self, frame: Frame) -> DetectionResult:
        if self._closed:
            raise LiveOverlayError(f"{self.name()} detector is closed")
        return await asyncio.to_thread(self._guarded_infer, frame)

    def _guarded_infer(self, frame: Frame) -> DetectionResult:
        with self._guard:
            if self._closed:
                raise LiveOverlayError(f"{self.name()} detector is closed")
            self._busy = True
        try:
            return self.infer(frame)
        finally:
            with self._guard:
                self._busy = False
                release_now = self._closed and not self._released
                self._released = self._released or release_now
            if release_now:
                self._do_release()

    def _do_release(self) -> None:
        self._release()
        logger.info("closed %s detector", self.name())

    def close(self) -> None:
        with self._guard:
            if self._closed:
                return
            self._closed = True
            release_now = not self._busy
            self._released = release_now
        if release_now:
            self._do_release()
        else:
            logger.debug("%s detector busy; release deferred until inference returns", self.name())

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


# -----------------------------------------------------------------------------
# MediaPipe result conversion
# -----------------------------------------------------------------------------
def _hand_from_landmarks(landmarks, label: Optional[str], score: Optional[float]) -> HandLandmarks:
    points = tuple(
        NormalizedLandmark(x=clamp01(lm.x), y=clamp01(lm.y), z=float(getattr(lm, "z", 0.0)))
        for lm in landmarks
    )
    return HandLandmarks(points=points, handedness_label=label, handedness_score=score)


def landmark_set_from_solutions(results) -> LandmarkSet:
    """Convert a `mp.solutions.hands` result."""
    multi = getattr(results, "multi_hand_landmarks", None)
    if not multi:
        return LandmarkSet()
    handedness_list = getattr(results, "multi_handedness", None) or []
    hands: List[HandLandmarks] = []
    for i, hand_landmarks in enumerate(multi):
        label: Optional[str] = None
        score: Optional[float] = None
        if i < len(handedness_list) and handedness_list[i].classification:
            c = handedness_list[i].classification[0]
            label = getattr(c, "label", None)
            score = float(getattr(c, "score", 0.0))
        hands.append(_hand_from_landmarks(hand_landmarks.landmark, label, score))
    return LandmarkSet(hands=tuple(hands))


def landmark_set_from_tasks(result) -> LandmarkSet:
    """Convert a Tasks `HandLandmarkerResult`."""
    hand_landmarks_list = getattr(result, "hand_landmarks", None) or []
    handedness_list = getattr(result, "handedness", None) or []
    hands: List[HandLandmarks] = []
    for i, landmarks in enumerate(hand_landmarks_list):
        label = None
        score = None
        if i < len(handedness_list) and handedness_list[i]:
            cat0 = handedness_list[i][0]
            label = getattr(cat0, "category_name", None) or getattr(cat0, "display_name", None)
            score = float(getattr(cat0, "score", 0.0))
        hands.append(_hand_from_landmarks(landmarks, label, score))
    return LandmarkSet(hands=tuple(hands))


def object_set_from_tasks(result) -> ObjectSet:
    """Convert a Tasks `ObjectDetectorResult`; detections without categories are dropped."""
    detections: List[ObjectDetection] = []
    for det in getattr(result, "detections", None) or []:
        bb = getattr(det, "bounding_box", None)
        if bb is None:
            continue
        cats = []
        for c in getattr(det, "categories", None) or []:
            label = getattr(c, "category_name", None) or getattr(c, "display_name", None) or "object"
            cats.append(Category(label=label, score=clamp01(getattr(c, "score", 0.0))))
        if not cats:
            continue
        cats.sort(key=lambda c: c.score, reverse=True)
        box = BoundingBox(
            origin_x=float(bb.origin_x),
            origin_y=float(bb.origin_y),
            width=float(bb.width),
            height=float(bb.height),
        )
        detections.append(ObjectDetection(box=box, categories=tuple(cats)))
    return ObjectSet(detections=tuple(detections))


# -----------------------------------------------------------------------------
# MediaPipe backends
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class _SolutionsBackend:
    mp: object
    hands: object


@dataclass(frozen=True)
class _TasksBackend:
    mp: object
    model: object


def _tasks_api():
    # Import locations differ slightly across MediaPipe builds.
    try:
        from mediapipe.tasks.python import BaseOptions  # type: ignore
        from mediapipe.tasks.python import vision  # type: ignore
    except ImportError:  # pragma: no cover
        from mediapipe.tasks import python as mp_python  # type: ignore

        BaseOptions = mp_python.BaseOptions
        vision = mp_python.vision
    return BaseOptions, vision


def _running_mode(vision, running_mode: RunningMode):
    return vision.RunningMode.VIDEO if running_mode is RunningMode.VIDEO else vision.RunningMode.IMAGE


def _try_create_solutions_backend(
    static_image_mode: bool,
    max_num_hands: int,
    model_complexity: int,
    min_detection_confidence: float,
    min_tracking_confidence: float,
) -> Optional[_SolutionsBackend]:
    import mediapipe as mp  # type: ignore

    if not hasattr(mp, "solutions"):
        return None
    hands = mp.solutions.hands.Hands(
        static_image_mode=static_image_mode,
        max_num_hands=max_num_hands,
        model_complexity=model_complexity,
        min_detection_confidence=min_detection_confidence,
        min_tracking_confidence=min_tracking_confidence,
    )
    return _SolutionsBackend(mp=mp, hands=hands)


def _create_hand_tasks_backend(
    model_path: str,
    running_mode: RunningMode,
    max_num_hands: int,
    min_detection_confidence: float,
    min_tracking_confidence: float,
) -> _TasksBackend:
    """
    Fallback for MediaPipe distributions that do not include `mp.solutions`.

    Uses the Tasks HandLandmarker API, which needs a `.task` model asset on disk.
    """
    import mediapipe as mp  # type: ignore

    BaseOptions, vision = _tasks_api()
    model_path = ensure_hand_landmarker_task(model_path)
    options = vision.HandLandmarkerOptions(
        base_options=BaseOptions(model_asset_path=model_path),
        running_mode=_running_mode(vision, running_mode),
        num_hands=max_num_hands,
        min_hand_detection_confidence=min_detection_confidence,
        min_tracking_confidence=min_tracking_confidence,
    )
    return _TasksBackend(mp=mp, model=vision.HandLandmarker.create_from_options(options))


def _create_object_tasks_backend(
    model_path: str,
    running_mode: RunningMode,
    score_threshold: float,
    max_results: int,
) -> _TasksBackend:
    import mediapipe as mp  # type: ignore

    BaseOptions, vision = _tasks_api()
    model_path = ensure_object_detector_model(model_path)
    options = vision.ObjectDetectorOptions(
        base_options=BaseOptions(model_asset_path=model_path),
        running_mode=_running_mode(vision, running_mode),
        score_threshold=score_threshold,
        max_results=max_results,
    )
    return _TasksBackend(mp=mp, model=vision.ObjectDetector.create_from_options(options))


def _to_mp_image(mp, frame: Frame):
    if not hasattr(mp, "Image") or not hasattr(mp, "ImageFormat"):
        raise LiveOverlayError("Your MediaPipe build does not expose `mp.Image` required for the Tasks API.")
    frame_rgb = cv2.cvtColor(frame.image, cv2.COLOR_BGR2RGB)
    return mp.Image(image_format=mp.ImageFormat.SRGB, data=frame_rgb)


class _VideoClock:
    """Tasks VIDEO mode requires strictly increasing millisecond timestamps."""

    def __init__(self) -> None:
        self._last_ms = -1

    def next(self, frame: Frame) -> int:
        ts = max(frame.timestamp_ms, self._last_ms + 1)
        self._last_ms = ts
        return ts


class HandLandmarkDetector(BlockingDetector):
    """
    Hand landmark detector using MediaPipe Hands.

    Input frames are expected as **BGR** images (OpenCV default).
    """

    def __init__(
        self,
        running_mode: RunningMode = RunningMode.VIDEO,
        max_num_hands: int = 2,
        model_complexity: int = 1,
        min_detection_confidence: float = 0.5,
        min_tracking_confidence: float = 0.5,
        tasks_model_path: str = "models/hand_landmarker.task",
    ) -> None:
        super().__init__()
        self._running_mode = running_mode
        self._clock = _VideoClock()
        self._tasks: Optional[_TasksBackend] = None
        self._solutions = _try_create_solutions_backend(
            static_image_mode=running_mode is RunningMode.IMAGE,
            max_num_hands=max_num_hands,
            model_complexity=model_complexity,
            min_detection_confidence=min_detection_confidence,
            min_tracking_confidence=min_tracking_confidence,
        )
        if self._solutions is None:
            try:
                self._tasks = _create_hand_tasks_backend(
                    model_path=tasks_model_path,
                    running_mode=running_mode,
                    max_num_hands=max_num_hands,
                    min_detection_confidence=min_detection_confidence,
                    min_tracking_confidence=min_tracking_confidence,
                )
            except FileNotFoundError as e:
                raise LiveOverlayError(
                    "MediaPipe does not provide `mp.solutions` in your environment, so the Tasks\n"
                    "HandLandmarker is used instead, and it needs a model file on disk:\n"
                    f"  {tasks_model_path}"
                ) from e
        logger.info(
            "hand detector ready (backend=%s, running_mode=%s, max_hands=%d)",
            "solutions" if self._solutions is not None else "tasks",
            running_mode.value,
            max_num_hands,
        )

    def name(self) -> str:
        return "hand_landmarks"

    def infer(self, frame: Frame) -> LandmarkSet:
        if self._solutions is not None:
            frame_rgb = cv2.cvtColor(frame.image, cv2.COLOR_BGR2RGB)
            return landmark_set_from_solutions(self._solutions.hands.process(frame_rgb))

        mp_image = _to_mp_image(self._tasks.mp, frame)
        if self._running_mode is RunningMode.VIDEO:
            result = self._tasks.model.detect_for_video(mp_image, self._clock.next(frame))
        else:
            result = self._tasks.model.detect(mp_image)
        return landmark_set_from_tasks(result)

    def _release(self) -> None:
        if self._solutions is not None:
            self._solutions.hands.close()
        if self._tasks is not None:
            self._tasks.model.close()


class ObjectBoxDetector(BlockingDetector):
    """Object detector using the MediaPipe Tasks ObjectDetector (EfficientDet-Lite0)."""

    def __init__(
        self,
        running_mode: RunningMode = RunningMode.IMAGE,
        score_threshold: float = 0.5,
        max_results: int = -1,
        model_path: str = "models/efficientdet_lite0.tflite",
    ) -> None:
        super().__init__()
        self._running_mode = running_mode
        self._clock = _VideoClock()
        self._tasks = _create_object_tasks_backend(
            model_path=model_path,
            running_mode=running_mode,
            score_threshold=score_threshold,
            max_results=max_results,
        )
        logger.info(
            "object detector ready (running_mode=%s, score_threshold=%.2f)", running_mode.value, score_threshold
        )

    def name(self) -> str:
        return "object_boxes"

    def infer(self, frame: Frame) -> ObjectSet:
        mp_image = _to_mp_image(self._tasks.mp, frame)
        if self._running_mode is RunningMode.VIDEO:
            result = self._tasks.model.detect_for_video(mp_image, self._clock.next(frame))
        else:
            result = self._tasks.model.detect(mp_image)
        return object_set_from_tasks(result)

    def _release(self) -> None:
        self._tasks.model.close()


def build_detector(config: PipelineConfig) -> Detector:
    if config.mode is Mode.HAND_TRACKING:
        return HandLandmarkDetector(
            running_mode=config.effective_running_mode,
            max_num_hands=config.max_num_hands,
            model_complexity=config.model_complexity,
            min_detection_confidence=config.score_threshold,
            min_tracking_confidence=config.min_tracking_confidence,
            tasks_model_path=config.hand_model_path,
        )
    return ObjectBoxDetector(
        running_mode=config.effective_running_mode,
        score_threshold=config.score_threshold,
        max_results=config.max_results,
        model_path=config.object_model_path,
    )
