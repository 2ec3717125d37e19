from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from dataclasses import replace

import cv2

# Allow running without installing the package (repo-local usage).
REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC_ROOT = os.path.join(REPO_ROOT, "src")
if SRC_ROOT not in sys.path:
    sys.path.insert(0, SRC_ROOT)

from liveoverlay.config import PipelineConfig  # noqa: E402
from liveoverlay.display import WindowPresenter  # noqa: E402
from liveoverlay.errors import DeviceUnavailable, PermissionDenied  # noqa: E402
from liveoverlay.pipeline import PipelineLoop  # noqa: E402
from liveoverlay.source import Facing  # noqa: E402
from liveoverlay.types import Mode  # noqa: E402

logger = logging.getLogger("webcam_demo")


def parse_args(argv=None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Live hand tracking / object detection overlay.")
    ap.add_argument("--mode", choices=[m.value for m in Mode], default=None, help="Operating mode")
    ap.add_argument("--threshold", type=float, default=None, help="Confidence threshold (0..1)")
    ap.add_argument("--max-hands", type=int, default=None, help="Maximum number of hands to track")
    ap.add_argument("--max-results", type=int, default=None, help="Maximum objects per frame (-1 = all)")
    ap.add_argument("--camera", default=None, help="Explicit camera: device path or index (e.g. /dev/video2 or 2)")
    ap.add_argument("--facing", choices=[f.value for f in Facing], default=None, help="Preferred camera")
    ap.add_argument("--width", type=int, default=None, help="Capture width (best effort)")
    ap.add_argument("--height", type=int, default=None, help="Capture height (best effort)")
    ap.add_argument("--fps", type=float, default=None, help="Display refresh rate driving the loop")
    ap.add_argument(
        "--no-mirror",
        action="store_true",
        help="Disable horizontal mirroring (default is mirrored/selfie mode)",
    )
    ap.add_argument(
        "--hysteresis",
        type=int,
        default=None,
        help="Keep a hand engaged for N extra frames (enhancement; 0 = off)",
    )
    ap.add_argument("--log-level", default="INFO", help="Logging level (DEBUG, INFO, ...)")
    return ap.parse_args(argv)


def build_config(args: argparse.Namespace) -> PipelineConfig:
    cfg = PipelineConfig.from_env()
    overrides = {
        "mode": Mode(args.mode) if args.mode else None,
        "score_threshold": args.threshold,
        "max_num_hands": args.max_hands,
        "max_results": args.max_results,
        "device_id": args.camera,
        "facing": Facing(args.facing) if args.facing else None,
        "capture_width": args.width,
        "capture_height": args.height,
        "refresh_hz": args.fps,
        "engage_release_frames": args.hysteresis,
    }
    overrides = {k: v for k, v in overrides.items() if v is not None}
    if args.no_mirror:
        overrides["mirror"] = False
    return replace(cfg, **overrides)


async def run(cfg: PipelineConfig) -> None:
    presenter = WindowPresenter(title=f"liveoverlay - {cfg.mode.value}")
    pipeline: PipelineLoop

    def on_render(surface, overlay) -> None:
        if not presenter.present(surface, overlay, pipeline.stats):
            pipeline.stop()

    pipeline = PipelineLoop(cfg, on_render=on_render)
    try:
        await pipeline.run()
    finally:
        pipeline.stop()
        cv2.destroyAllWindows()


def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    cfg = build_config(args)
    try:
        asyncio.run(run(cfg))
    except (DeviceUnavailable, PermissionDenied) as e:
        logger.error("%s", e)
        return 1
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
