"""Preview window.

- compose_frame: blend the overlay surface onto a video frame and add the
  "Detected Emotion" caption
- run_preview: show composed frames in an OpenCV window until 'q'
"""
from __future__ import annotations
import asyncio
import logging
import cv2
import numpy as np
from typing import Optional

from emotion_overlay.config import Settings
from emotion_overlay.models import NONE_LABEL
from emotion_overlay.render import OverlaySurface

logger = logging.getLogger(__name__)

WINDOW_TITLE = "Facial Emotion Detection (q to quit)"
PLACEHOLDER_SIZE = (480, 640)


def compose_frame(frame: Optional[np.ndarray],
                  overlay: OverlaySurface,
                  emotion: Optional[str]) -> np.ndarray:
    """Return a BGR copy of ``frame`` with the overlay and caption drawn on it."""
    if frame is None:
        frame = np.zeros((*PLACEHOLDER_SIZE, 3), dtype=np.uint8)
    out = frame.copy()
    h, w = out.shape[:2]

    if overlay.width == w and overlay.height == h:
        alpha = overlay.image[:, :, 3:4].astype(np.float32) / 255.0
        if alpha.any():
            blended = out.astype(np.float32) * (1.0 - alpha) + overlay.image[:, :, :3].astype(np.float32) * alpha
            out = blended.astype(np.uint8)

    caption = f"Detected Emotion: {emotion or NONE_LABEL}"
    cv2.putText(out, caption, (10, h - 15), cv2.FONT_HERSHEY_SIMPLEX, 0.7, (0, 0, 0), 4, cv2.LINE_AA)
    cv2.putText(out, caption, (10, h - 15), cv2.FONT_HERSHEY_SIMPLEX, 0.7, (255, 255, 255), 2, cv2.LINE_AA)
    return out


async def run_preview(session, settings: Settings) -> None:
    """
    Show the live video with overlay until 'q' is pressed or the session closes.

    Runs on the session's event loop so the annotation loop keeps ticking
    between frames.
    """
    period = 1.0 / max(1.0, settings.PREVIEW_FPS)
    try:
        while not session.closed:
            annotated = compose_frame(session.source.latest_frame(), session.overlay, session.emotion.get())
            cv2.imshow(WINDOW_TITLE, annotated)
            if (cv2.waitKey(1) & 0xFF) in (ord("q"), ord("Q")):
                logger.info("[display] quit requested")
                break
            await asyncio.sleep(period)
    finally:
        cv2.destroyAllWindows()
