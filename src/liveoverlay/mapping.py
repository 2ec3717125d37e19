"""
Detector output -> render-surface pixel geometry.

Pure functions. Landmarks arrive normalized and are scaled by the surface
size. Object boxes are already in pixels of the frame the detector saw; the
surface may have been resized since, so they are clipped to the current
bounds and dropped when nothing is left.
"""

from __future__ import annotations

from typing import Optional, Tuple

from .types import BoundingBox, LandmarkSet, MappedBox, MappedHand, ObjectSet, Point2


def map_point(x: float, y: float, width: int, height: int) -> Point2:
    return (x * width, y * height)


def map_landmarks(landmarks: LandmarkSet, width: int, height: int) -> Tuple[MappedHand, ...]:
    return tuple(
        MappedHand(
            index=i,
            points_px=tuple(map_point(p.x, p.y, width, height) for p in hand.points),
            handedness_label=hand.handedness_label,
            handedness_score=hand.handedness_score,
        )
        for i, hand in enumerate(landmarks.hands)
    )


def clip_box(box: BoundingBox, width: int, height: int) -> Optional[BoundingBox]:
    x0 = max(0.0, box.origin_x)
    y0 = max(0.0, box.origin_y)
    x1 = min(float(width), box.origin_x + box.width)
    y1 = min(float(height), box.origin_y + box.height)
    if x1 <= x0 or y1 <= y0:
        return None
    return BoundingBox(origin_x=x0, origin_y=y0, width=x1 - x0, height=y1 - y0)


def map_boxes(objects: ObjectSet, width: int, height: int) -> Tuple[MappedBox, ...]:
    out = []
    for det in objects.detections:
        box = clip_box(det.box, width, height)
        if box is None:
            continue
        out.append(MappedBox(box=box, label=det.top.label, score=det.top.score))
    return tuple(out)
