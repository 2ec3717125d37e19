from __future__ import annotations

import logging
from typing import Optional, Tuple

from .detector import HAND_CONNECTIONS
from .drawing import RenderSurface
from .interaction import DEFAULT_RATIO
from .types import BoxOverlay, Frame, HandOverlay, MappedBox, Overlay

logger = logging.getLogger(__name__)

CONNECTOR_COLOR = (0, 255, 0)
LANDMARK_COLOR = (0, 0, 255)
BOX_COLOR = (0, 255, 0)
TARGET_COLOR = (255, 255, 255)
ENGAGED_COLOR = (0, 215, 255)

LABEL_ABOVE_OFFSET = 5
LABEL_BELOW_OFFSET = 20
LABEL_TOP_MARGIN = 10


def format_label(label: str, score: float) -> str:
    return f"{label} ({score * 100:.2f}%)"


def label_origin(box_x: float, box_y: float) -> Tuple[float, float]:
    """Above the box, or below its top edge when the box hugs the surface top."""
    if box_y > LABEL_TOP_MARGIN:
        return (box_x, box_y - LABEL_ABOVE_OFFSET)
    return (box_x, box_y + LABEL_BELOW_OFFSET)


class Renderer:
    """Redraws frame plus overlay onto its surface once per pipeline iteration."""

    def __init__(self, surface: Optional[RenderSurface] = None, interaction_ratio: float = DEFAULT_RATIO) -> None:
        self.surface = surface if surface is not None else RenderSurface()
        self.interaction_ratio = interaction_ratio

    def fit(self, frame: Frame) -> Tuple[int, int]:
        """Match the surface to the frame resolution; resizing only happens when it changes."""
        if self.surface.resize(frame.width, frame.height):
            logger.info("surface resized to %dx%d", frame.width, frame.height)
        return self.surface.size

    def render(self, frame: Frame, overlay: Overlay) -> None:
        self.fit(frame)
        self.surface.clear()
        self.surface.draw_image(frame.image)
        if isinstance(overlay, HandOverlay):
            self.draw_hands(overlay)
        elif isinstance(overlay, BoxOverlay):
            self.draw_boxes(overlay)

    def draw_hands(self, overlay: HandOverlay) -> None:
        s = self.surface
        s.draw_circle(
            (s.width / 2.0, s.height / 2.0),
            self.interaction_ratio * s.width,
            ENGAGED_COLOR if overlay.engaged else TARGET_COLOR,
            thickness=3 if overlay.engaged else 1,
        )
        for hand in overlay.hands:
            pts = hand.points_px
            for a, b in HAND_CONNECTIONS:
                if a < len(pts) and b < len(pts):
                    s.draw_line(pts[a], pts[b], CONNECTOR_COLOR, 2)
            for pt in pts:
                s.draw_point(pt, LANDMARK_COLOR, 3)
            tip = hand.fingertip_px
            if tip is not None and hand.index in overlay.engaged:
                s.draw_point(tip, ENGAGED_COLOR, 8)

    def draw_boxes(self, overlay: BoxOverlay) -> None:
        for mapped in overlay.boxes:
            self.draw_box(mapped)

    def draw_box(self, mapped: MappedBox) -> None:
        b = mapped.box
        self.surface.stroke_rect(b.origin_x, b.origin_y, b.width, b.height, BOX_COLOR, 2)
        self.surface.fill_text(format_label(mapped.label, mapped.score), label_origin(b.origin_x, b.origin_y), BOX_COLOR)
