# emotion_overlay/loop.py
"""
Real-time annotation loop.

A periodic asyncio task pulls the current frame every TICK_INTERVAL seconds,
hands it to the inference gateway and, when the result comes back, redraws
the overlay and updates the emotion state.

Scheduling contract:
- everything here runs on one event loop; the gateway's blocking work is
  awaited, so the completion handler never races another tick
- at most one inference is in flight; ticks that find one pending are skipped
- cancel() stops ticking but cannot abort a pending inference; its result is
  discarded when it lands
A multi-threaded caller would need a real lock around ``_in_flight``.
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Optional

from emotion_overlay.config import Settings
from emotion_overlay.errors import InferenceError
from emotion_overlay.gateway import InferenceGateway
from emotion_overlay.media import FrameSource
from emotion_overlay.models import (
    DetectionResult,
    FrameSize,
    LoopState,
    LoopStats,
    NONE_LABEL,
    dominant_emotion,
)
from emotion_overlay.render import OverlaySurface, render
from emotion_overlay.state import EmotionState

logger = logging.getLogger(__name__)

Renderer = Callable[[OverlaySurface, Optional[DetectionResult]], object]


class LoopHandle:
    """Cancellation token for a started loop; cancels at most once."""
    def __init__(self, loop: "AnnotationLoop"):
        self._loop = loop
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> bool:
        if self._cancelled:
            return False
        self._cancelled = True
        self._loop._on_cancel()
        return True


class AnnotationLoop:
    """Owns the in-flight flag, the ticker task and the per-tick pipeline."""
    def __init__(self,
                 source: FrameSource,
                 gateway: InferenceGateway,
                 overlay: OverlaySurface,
                 emotion: EmotionState,
                 settings: Optional[Settings] = None,
                 renderer: Optional[Renderer] = None):
        self.s = settings or Settings()
        self.source = source
        self.gateway = gateway
        self.overlay = overlay
        self.emotion = emotion
        self._render = renderer or (lambda ov, det: render(ov, det, self.s.EXPRESSION_MIN_SCORE))

        self._state = LoopState.IDLE
        self._in_flight = False
        self._ticker: Optional[asyncio.Task] = None
        self._pending: Optional[asyncio.Task] = None
        self._handle: Optional[LoopHandle] = None
        self._started_at: Optional[float] = None
        self.stats = LoopStats()

    # ---- introspection ----
    @property
    def state(self) -> LoopState:
        return self._state

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @property
    def started_at(self) -> Optional[float]:
        return self._started_at

    # ---- lifecycle ----
    def start(self) -> LoopHandle:
        """Begin ticking on the running event loop."""
        if self._handle is not None:
            return self._handle
        if self._state is LoopState.CANCELLED:
            # terminal: hand back a spent token, never start ticking
            self._handle = LoopHandle(self)
            self._handle._cancelled = True
            return self._handle
        self._started_at = time.time()
        self._state = LoopState.WAITING_FOR_READY
        self._handle = LoopHandle(self)
        self._ticker = asyncio.get_running_loop().create_task(self._run())
        logger.info(f"[loop] started interval={self.s.TICK_INTERVAL}s")
        return self._handle

    def cancel(self) -> None:
        if self._handle is None:
            self._state = LoopState.CANCELLED
            return
        self._handle.cancel()

    def _on_cancel(self) -> None:
        self._state = LoopState.CANCELLED
        if self._ticker is not None:
            self._ticker.cancel()
        logger.info(f"[loop] cancelled stats={self.stats.model_dump()}")

    async def dispose(self) -> None:
        """Cancel, then wait for the ticker and any pending inference to wind down."""
        self.cancel()
        if self._ticker is not None:
            try:
                await self._ticker
            except asyncio.CancelledError:
                pass
        if self._pending is not None and not self._pending.done():
            # an unbounded gateway call may never finish; don't wait on it forever
            await asyncio.wait({self._pending},
                               timeout=self.s.inference_timeout or self.s.TICK_INTERVAL)
        self._ticker = None
        self._pending = None

    async def _run(self) -> None:
        while self._state is not LoopState.CANCELLED:
            self.tick()
            await asyncio.sleep(self.s.TICK_INTERVAL)

    # ---- tick ----
    def tick(self) -> Optional[asyncio.Task]:
        """One annotation step. Returns the inference task if one was started."""
        if self._state in (LoopState.IDLE, LoopState.CANCELLED):
            return None
        self.stats.ticks += 1

        if not self.source.is_ready():
            self._state = LoopState.WAITING_FOR_READY
            return None
        self._state = LoopState.RUNNING

        if self._in_flight:
            self.stats.skipped += 1
            logger.debug("[loop] previous inference pending; tick skipped")
            return None

        frame, size = self.source.snapshot()
        if frame is None or size.width <= 0 or size.height <= 0:
            return None
        if self.overlay.match_dimensions(size):
            logger.debug(f"[loop] overlay resized to {size.width}x{size.height}")

        self._in_flight = True
        self.stats.inferences += 1
        self._pending = asyncio.get_running_loop().create_task(self._infer(frame, size))
        self._maybe_log_stats()
        return self._pending

    async def _infer(self, frame, size: FrameSize) -> None:
        try:
            try:
                detection = await asyncio.wait_for(self.gateway.detect(frame),
                                                   timeout=self.s.inference_timeout)
            except asyncio.TimeoutError as e:
                raise InferenceError(f"inference exceeded {self.s.INFERENCE_TIMEOUT}s") from e

            if self._state is LoopState.CANCELLED:
                self.stats.discarded += 1
                logger.debug("[loop] result arrived after cancel; discarded")
                return
            self._apply(detection, size)
        except Exception:
            self.stats.failures += 1
            logger.exception("[loop] inference failed; continuing on next tick")
        finally:
            self._in_flight = False

    def _apply(self, detection: Optional[DetectionResult], size: FrameSize) -> None:
        if detection is None:
            self._render(self.overlay, None)
            self.emotion.set(NONE_LABEL)
            return
        self.stats.detections += 1
        resized = detection.resized(size)
        label = dominant_emotion(resized.expressions)
        self._render(self.overlay, resized)
        self.emotion.set(label)

    def _maybe_log_stats(self) -> None:
        every = self.s.STATS_EVERY
        if every > 0 and self.stats.inferences % every == 0:
            logger.info(
                f"[loop] ticks={self.stats.ticks} skipped={self.stats.skipped} "
                f"inferences={self.stats.inferences} failures={self.stats.failures}"
            )
