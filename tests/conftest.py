import time

import numpy as np
import pytest

from liveoverlay.detector import Detector
from liveoverlay.errors import NotReady
from liveoverlay.types import (
    BoundingBox,
    Category,
    Frame,
    HandLandmarks,
    LandmarkSet,
    NormalizedLandmark,
    ObjectDetection,
    ObjectSet,
)


def make_frame(width=640, height=480, value=0, seq=0):
    image = np.full((height, width, 3), value, dtype=np.uint8)
    return Frame(image=image, timestamp=time.monotonic(), seq=seq)


def make_hand(tip=(0.5, 0.5), n=21):
    points = [NormalizedLandmark(x=0.1, y=0.1, z=0.0) for _ in range(n)]
    points[8] = NormalizedLandmark(x=tip[0], y=tip[1], z=0.0)
    return HandLandmarks(points=tuple(points), handedness_label="Right", handedness_score=0.9)


def make_objects(*boxes):
    dets = []
    for x, y, w, h, label, score in boxes:
        dets.append(ObjectDetection(box=BoundingBox(x, y, w, h), categories=(Category(label, score),)))
    return ObjectSet(detections=tuple(dets))


class FakeSource:
    """Stands in for FrameSource: hands out frames in order, the last one repeatedly."""

    def __init__(self, frames, not_ready=0, open_error=None):
        self.frames = list(frames)
        self.not_ready = not_ready
        self.open_error = open_error
        self.open_calls = 0
        self.close_calls = 0
        self.reads = 0

    def open(self, preferred=None, device_id=None):
        self.open_calls += 1
        if self.open_error is not None:
            raise self.open_error

    def current_frame(self):
        self.reads += 1
        if self.reads <= self.not_ready:
            raise NotReady("no frame yet")
        idx = min(self.reads - self.not_ready - 1, len(self.frames) - 1)
        return self.frames[idx]

    def close(self):
        self.close_calls += 1


class FakeDetector(Detector):
    """Returns (or raises) the scripted outcomes in order, repeating the last one."""

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = []
        self.close_calls = 0

    def name(self):
        return "fake"

    async def detect(self, frame):
        self.calls.append(frame)
        outcome = self.outcomes[min(len(self.calls) - 1, len(self.outcomes) - 1)]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    def close(self):
        self.close_calls += 1


@pytest.fixture
def hand_at_center():
    return LandmarkSet(hands=(make_hand((0.5, 0.5)),))


@pytest.fixture
def cat_box():
    return make_objects((100, 50, 120, 80, "cat", 0.8734))
