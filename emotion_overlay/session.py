# emotion_overlay/session.py
"""
Startup pipeline: load models -> acquire camera -> start the annotation loop.

Each stage fails with its own error type:
- ModelLoadError propagates; nothing is started
- MediaAcquisitionError is logged; the loop still starts and waits for a
  ready frame source indefinitely
"""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from emotion_overlay.config import Settings
from emotion_overlay.errors import MediaAcquisitionError
from emotion_overlay.gateway import DeepFaceGateway, InferenceGateway
from emotion_overlay.loop import AnnotationLoop, LoopHandle
from emotion_overlay.media import FrameSource, acquire
from emotion_overlay.models import LiveStatus, ReadyState
from emotion_overlay.render import OverlaySurface
from emotion_overlay.state import EmotionState

logger = logging.getLogger(__name__)

Acquirer = Callable[[Settings], Awaitable[FrameSource]]


class Session:
    """Everything one live run owns, torn down together by close()."""
    def __init__(self, settings: Settings, source: FrameSource, gateway: InferenceGateway,
                 overlay: OverlaySurface, emotion: EmotionState, loop: AnnotationLoop,
                 handle: LoopHandle):
        self.settings = settings
        self.source = source
        self.gateway = gateway
        self.overlay = overlay
        self.emotion = emotion
        self.loop = loop
        self.handle = handle
        self.closed = False

    def status(self) -> LiveStatus:
        return LiveStatus(
            running=not self.closed,
            started_at=self.loop.started_at,
            loop_state=self.loop.state,
            ready_state=self.source.ready_state,
            frame_size=self.source.size,
            emotion=self.emotion.get(),
            stats=self.loop.stats.model_copy(),
        )

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        await self.loop.dispose()
        # joins the camera reader thread; keep it off the event loop
        await asyncio.to_thread(self.source.release)
        logger.info("[session] closed")


async def start_session(settings: Settings,
                        gateway: Optional[InferenceGateway] = None,
                        acquirer: Optional[Acquirer] = None) -> Session:
    """
    Run the startup pipeline and return a live session.

    Raises:
        ModelLoadError: models failed to load; the loop was not started.
    """
    gateway = gateway or DeepFaceGateway(settings)
    acquirer = acquirer or acquire

    # 1) models (fatal)
    await gateway.load_models()

    # 2) camera (non-fatal)
    try:
        source = await acquirer(settings)
    except MediaAcquisitionError as e:
        logger.error(f"[session] camera unavailable: {e.reason}; waiting without video")
        source = FrameSource()
        source.mark(ReadyState.FAILED)

    # 3) loop
    overlay = OverlaySurface(source.width, source.height)
    emotion = EmotionState()
    loop = AnnotationLoop(source, gateway, overlay, emotion, settings)
    handle = loop.start()
    return Session(settings, source, gateway, overlay, emotion, loop, handle)
