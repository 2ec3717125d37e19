"""
Real-time frame-processing loop.

One `PipelineLoop` owns one frame source and one detector. Each iteration
reads the newest frame, awaits the detector, maps and evaluates the result and
redraws the surface, then waits for the next tick. Iterations never overlap
and nothing is queued: frames captured while the detector is busy are simply
never seen.

States: IDLE -> INITIALIZING -> RUNNING -> STOPPED. A stopped loop cannot be
restarted; build a new one.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from .config import PipelineConfig
from .detector import Detector, build_detector
from .drawing import RenderSurface
from .errors import NotReady, PipelineError
from .renderer import Renderer
from .source import FrameSource
from .strategies import strategy_for
from .types import Overlay, PipelineState

logger = logging.getLogger(__name__)


@dataclass
class PipelineStats:
    iterations: int = 0
    skipped: int = 0  # no frame available yet
    rendered: int = 0
    failures: int = 0  # detector errors
    last_latency_s: Optional[float] = None
    started_at: Optional[float] = None

    def fps(self, now: Optional[float] = None) -> float:
        if self.started_at is None or self.rendered == 0:
            return 0.0
        elapsed = (time.monotonic() if now is None else now) - self.started_at
        return self.rendered / elapsed if elapsed > 0 else 0.0


def build_source(config: PipelineConfig) -> FrameSource:
    return FrameSource(width=config.capture_width, height=config.capture_height, mirror=config.mirror)


def _current_task() -> Optional[asyncio.Task]:
    try:
        return asyncio.current_task()
    except RuntimeError:  # no running event loop
        return None


class PipelineLoop:
    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        surface: Optional[RenderSurface] = None,
        source_factory: Callable[[PipelineConfig], FrameSource] = build_source,
        detector_factory: Callable[[PipelineConfig], Detector] = build_detector,
        tick: Optional[Callable[[], Awaitable[None]]] = None,
        on_render: Optional[Callable[[RenderSurface, Overlay], None]] = None,
    ) -> None:
        self.config = config if config is not None else PipelineConfig()
        self.renderer = Renderer(surface, interaction_ratio=self.config.interaction_ratio)
        self.stats = PipelineStats()
        self._strategy = strategy_for(self.config)
        self._source_factory = source_factory
        self._detector_factory = detector_factory
        self._tick = tick if tick is not None else self._refresh_tick
        self._on_render = on_render

        self._state = PipelineState.IDLE
        self._source: Optional[FrameSource] = None
        self._detector: Optional[Detector] = None
        self._task: Optional[asyncio.Task] = None
        self._awaiting_tick = False

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def surface(self) -> RenderSurface:
        return self.renderer.surface

    def _set_state(self, state: PipelineState) -> None:
        logger.info("pipeline %s -> %s", self._state.value, state.value)
        self._state = state

    # ---- lifecycle ----
    def start(self) -> None:
        """
        Open the camera, build the detector and schedule the loop.

        Must be called with a running event loop. Camera errors
        (`DeviceUnavailable`, `PermissionDenied`) and detector bootstrap errors
        are fatal: whatever was opened is released and the error propagates.
        """
        if self._state is not PipelineState.IDLE:
            raise PipelineError(f"cannot start a pipeline in state {self._state.value!r}; create a new one")
        loop = asyncio.get_running_loop()
        self._set_state(PipelineState.INITIALIZING)
        try:
            self._source = self._source_factory(self.config)
            self._source.open(self.config.facing, self.config.device_id)
            self._detector = self._detector_factory(self.config)
        except Exception:
            logger.error("pipeline start failed; releasing resources")
            self.stop()
            raise
        self.stats.started_at = time.monotonic()
        self._task = loop.create_task(self._run())

    def stop(self) -> None:
        """
        Stop the loop and release the camera and detector. Idempotent.

        A detect call still in flight is not aborted; its result is ignored.
        """
        if self._state is PipelineState.STOPPED:
            return
        self._set_state(PipelineState.STOPPED)
        source, self._source = self._source, None
        detector, self._detector = self._detector, None
        if detector is not None:
            detector.close()
        if source is not None:
            source.close()
        task = self._task
        if task is not None and self._awaiting_tick and task is not _current_task():
            task.cancel()

    async def wait_closed(self) -> None:
        if self._task is not None:
            await self._task

    async def run(self) -> None:
        """Start and keep iterating until `stop()` is called."""
        self.start()
        await self.wait_closed()

    # ---- loop ----
    async def _refresh_tick(self) -> None:
        await asyncio.sleep(self.config.tick_interval)

    async def _next_tick(self) -> None:
        self._awaiting_tick = True
        try:
            await self._tick()
        finally:
            self._awaiting_tick = False

    async def _run(self) -> None:
        try:
            while self._state in (PipelineState.INITIALIZING, PipelineState.RUNNING):
                await self.iterate()
                if self._state is PipelineState.STOPPED:
                    break
                await self._next_tick()
        except asyncio.CancelledError:
            if self._state is not PipelineState.STOPPED:
                self.stop()
                raise
            # pending tick cancelled by stop()
        except Exception:
            logger.exception("pipeline loop crashed")
            self.stop()
            raise
        logger.info(
            "pipeline finished: %d iterations, %d rendered, %d skipped, %d detector failures",
            self.stats.iterations,
            self.stats.rendered,
            self.stats.skipped,
            self.stats.failures,
        )

    async def iterate(self) -> None:
        """One acquire -> infer -> map -> evaluate -> render cycle."""
        source, detector = self._source, self._detector
        if source is None or detector is None:
            return
        self.stats.iterations += 1

        try:
            frame = source.current_frame()
        except NotReady:
            self.stats.skipped += 1
            return
        if self._state is PipelineState.INITIALIZING:
            self._set_state(PipelineState.RUNNING)

        t0 = time.perf_counter()
        try:
            result = await detector.detect(frame)
            if self._state is not PipelineState.RUNNING:
                logger.debug("dropping detection for frame %d completed after stop", frame.seq)
                return
            # The surface is fitted to this frame before drawing.
            overlay = self._strategy.interpret(result, frame.width, frame.height)
        except Exception:
            if self._state is not PipelineState.RUNNING:
                return
            self.stats.failures += 1
            logger.exception("detection failed on frame %d; keeping previous overlay", frame.seq)
            return
        self.stats.last_latency_s = time.perf_counter() - t0

        self.renderer.render(frame, overlay)
        self.stats.rendered += 1
        if self._on_render is not None:
            self._on_render(self.renderer.surface, overlay)
