from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
import time

import cv2

# Allow running without installing the package (repo-local usage).
REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC_ROOT = os.path.join(REPO_ROOT, "src")
if SRC_ROOT not in sys.path:
    sys.path.insert(0, SRC_ROOT)

from liveoverlay.config import PipelineConfig  # noqa: E402
from liveoverlay.detector import build_detector  # noqa: E402
from liveoverlay.renderer import Renderer  # noqa: E402
from liveoverlay.strategies import strategy_for  # noqa: E402
from liveoverlay.types import BoxOverlay, Frame, Mode, RunningMode  # noqa: E402


def main() -> int:
    ap = argparse.ArgumentParser(description="Run one still image through detector + renderer.")
    ap.add_argument("--image", required=True, help="Path to input image")
    ap.add_argument("--out", required=True, help="Path to output image (annotated)")
    ap.add_argument("--mode", choices=[m.value for m in Mode], default=Mode.HAND_TRACKING.value)
    ap.add_argument("--threshold", type=float, default=0.5, help="Confidence threshold (0..1)")
    ap.add_argument("--max-hands", type=int, default=2, help="Maximum number of hands to detect")
    args = ap.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    image = cv2.imread(args.image)
    if image is None:
        raise RuntimeError(f"Could not read image: {args.image}")

    cfg = PipelineConfig(
        mode=Mode(args.mode),
        score_threshold=args.threshold,
        max_num_hands=args.max_hands,
        running_mode=RunningMode.IMAGE,
    )
    frame = Frame(image=image, timestamp=time.monotonic())
    renderer = Renderer(interaction_ratio=cfg.interaction_ratio)

    detector = build_detector(cfg)
    try:
        result = asyncio.run(detector.detect(frame))
    finally:
        detector.close()

    overlay = strategy_for(cfg).interpret(result, frame.width, frame.height)
    renderer.render(frame, overlay)

    ok = cv2.imwrite(args.out, renderer.surface.canvas)
    if not ok:
        raise RuntimeError(f"Could not write output image: {args.out}")

    if isinstance(overlay, BoxOverlay):
        print(f"objects: {len(overlay.boxes)}")
        for i, b in enumerate(overlay.boxes):
            print(f"[{i}] {b.label} score={b.score:.2f} box={b.box}")
    else:
        print(f"hands: {len(overlay.hands)} engaged={sorted(overlay.engaged)}")
        for h in overlay.hands:
            print(f"[{h.index}] {h.handedness_label} score={h.handedness_score} index_tip={h.fingertip_px}")

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
