from __future__ import annotations

from typing import Tuple

import cv2
import numpy as np

from .utils import int_point

Color = Tuple[int, int, int]  # BGR


class RenderSurface:
    """
    Drawable BGR canvas shared with the presentation layer.

    Only the renderer writes to it; presenters read `canvas` (or a `snapshot`).
    """

    def __init__(self, width: int = 0, height: int = 0) -> None:
        self.canvas = np.zeros((max(0, height), max(0, width), 3), dtype=np.uint8)

    @property
    def width(self) -> int:
        return int(self.canvas.shape[1])

    @property
    def height(self) -> int:
        return int(self.canvas.shape[0])

    @property
    def size(self) -> Tuple[int, int]:
        return (self.width, self.height)

    def resize(self, width: int, height: int) -> bool:
        """Reallocate to `width`x`height`; returns False when the size already matches."""
        if (width, height) == self.size:
            return False
        self.canvas = np.zeros((height, width, 3), dtype=np.uint8)
        return True

    def snapshot(self) -> np.ndarray:
        return self.canvas.copy()

    def clear(self, color: Color = (0, 0, 0)) -> None:
        self.canvas[:] = color

    def draw_image(self, image: np.ndarray) -> None:
        if image.shape[:2] != self.canvas.shape[:2]:
            image = cv2.resize(image, (self.width, self.height))
        self.canvas[:] = image

    def stroke_rect(self, x: float, y: float, w: float, h: float, color: Color = (0, 255, 0), thickness: int = 2) -> None:
        x0, y0 = int_point((x, y))
        x1, y1 = int_point((x + w, y + h))
        cv2.rectangle(self.canvas, (x0, y0), (x1, y1), color, thickness)

    def fill_text(self, text: str, org: Tuple[float, float], color: Color = (0, 255, 0), scale: float = 0.5, thickness: int = 1) -> None:
        pt = int_point(org)
        # Dark outline keeps labels readable on any background.
        cv2.putText(self.canvas, text, pt, cv2.FONT_HERSHEY_SIMPLEX, scale, (0, 0, 0), thickness + 2, cv2.LINE_AA)
        cv2.putText(self.canvas, text, pt, cv2.FONT_HERSHEY_SIMPLEX, scale, color, thickness, cv2.LINE_AA)

    def draw_line(self, p0: Tuple[float, float], p1: Tuple[float, float], color: Color = (0, 255, 0), thickness: int = 2) -> None:
        cv2.line(self.canvas, int_point(p0), int_point(p1), color, thickness, cv2.LINE_AA)

    def draw_point(self, pt: Tuple[float, float], color: Color = (0, 0, 255), radius: int = 3) -> None:
        cv2.circle(self.canvas, int_point(pt), radius, color, -1, lineType=cv2.LINE_AA)

    def draw_circle(self, center: Tuple[float, float], radius: float, color: Color = (255, 255, 255), thickness: int = 2) -> None:
        cv2.circle(self.canvas, int_point(center), int(round(radius)), color, thickness, lineType=cv2.LINE_AA)
