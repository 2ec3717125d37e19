from __future__ import annotations

from typing import Optional

import cv2

from .drawing import RenderSurface
from .pipeline import PipelineStats
from .types import BoxOverlay, HandOverlay, Overlay

QUIT_KEYS = (ord("q"), 27)


def hud_text(overlay: Overlay, stats: Optional[PipelineStats] = None) -> str:
    if isinstance(overlay, HandOverlay):
        text = f"hands: {len(overlay.hands)}"
        if overlay.engaged:
            text += " | ENGAGED"
    elif isinstance(overlay, BoxOverlay):
        text = f"objects: {len(overlay.boxes)}"
    else:
        text = ""
    if stats is not None:
        text += f" | {stats.fps():.1f} fps"
    return text + " | press q to quit"


class WindowPresenter:
    """Shows the render surface in an OpenCV window; never writes to the surface."""

    def __init__(self, title: str = "liveoverlay", show_hud: bool = True) -> None:
        self.title = title
        self.show_hud = show_hud

    def present(self, surface: RenderSurface, overlay: Overlay, stats: Optional[PipelineStats] = None) -> bool:
        """Display one frame. Returns False once the user asked to quit."""
        if surface.width == 0 or surface.height == 0:
            return True
        image = surface.canvas
        if self.show_hud:
            image = image.copy()
            cv2.putText(
                image,
                hud_text(overlay, stats),
                (12, 28),
                cv2.FONT_HERSHEY_SIMPLEX,
                0.8,
                (255, 255, 255),
                2,
                cv2.LINE_AA,
            )
        cv2.imshow(self.title, image)
        key = cv2.waitKey(1) & 0xFF
        return key not in QUIT_KEYS

    def close(self) -> None:
        cv2.destroyWindow(self.title)
