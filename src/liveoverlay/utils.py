from __future__ import annotations

import math
from typing import Tuple


def clamp01(v: float) -> float:
    return max(0.0, min(1.0, float(v)))


def distance(a: Tuple[float, float], b: Tuple[float, float]) -> float:
    return math.hypot(a[0] - b[0], a[1] - b[1])


def int_point(pt: Tuple[float, float]) -> Tuple[int, int]:
    """OpenCV drawing calls want integer pixel coordinates."""
    return (int(round(pt[0])), int(round(pt[1])))
