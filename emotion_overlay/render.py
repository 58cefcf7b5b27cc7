"""Overlay rendering.

- OverlaySurface: transparent BGRA canvas kept at the video's native size
- render: clear the surface, then draw the face box and expression score bars

The surface is composited onto the video by ``emotion_overlay.display``.
"""
from __future__ import annotations
import cv2
import numpy as np
from typing import Optional, Tuple

from emotion_overlay.models import EXPRESSIONS, DetectionResult, FrameSize

BOX_COLOR: Tuple[int, int, int, int] = (0, 255, 0, 255)
BAR_COLOR: Tuple[int, int, int, int] = (255, 160, 0, 255)
TEXT_COLOR: Tuple[int, int, int, int] = (255, 255, 255, 255)

BAR_WIDTH = 80
LINE_HEIGHT = 16


class OverlaySurface:
    """Drawable BGRA region laid over the live video."""
    def __init__(self, width: int = 0, height: int = 0):
        self.image = np.zeros((max(0, height), max(0, width), 4), dtype=np.uint8)

    @property
    def width(self) -> int:
        return int(self.image.shape[1])

    @property
    def height(self) -> int:
        return int(self.image.shape[0])

    @property
    def size(self) -> FrameSize:
        return FrameSize(width=self.width, height=self.height)

    def match_dimensions(self, size: FrameSize) -> bool:
        """Resize to ``size`` (dropping the drawing); returns True if it changed."""
        if size.width == self.width and size.height == self.height:
            return False
        self.image = np.zeros((size.height, size.width, 4), dtype=np.uint8)
        return True

    def clear(self) -> None:
        self.image[:] = 0

    def is_blank(self) -> bool:
        return not self.image.any()


def _draw_expressions(img: np.ndarray, detection: DetectionResult, min_score: float) -> None:
    h, w = img.shape[:2]
    x, y, _bw, bh = detection.box.as_int()
    row = min(max(0, y + bh + 4), max(0, h - 1))
    col = min(max(0, x), max(0, w - 1))
    for label in EXPRESSIONS:
        score = float(detection.expressions.get(label, 0.0))
        if score < min_score:
            continue
        top = row
        bottom = min(h - 1, row + LINE_HEIGHT - 4)
        if top >= h:
            break
        fill = int(round(BAR_WIDTH * max(0.0, min(1.0, score))))
        cv2.rectangle(img, (col, top), (col + BAR_WIDTH, bottom), BAR_COLOR, 1)
        if fill > 0:
            cv2.rectangle(img, (col, top), (col + fill, bottom), BAR_COLOR, -1)
        cv2.putText(img, f"{label} ({score:.2f})", (col + BAR_WIDTH + 6, bottom),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.4, TEXT_COLOR, 1, cv2.LINE_AA)
        row += LINE_HEIGHT


def render(overlay: OverlaySurface,
           detection: Optional[DetectionResult] = None,
           min_score: float = 0.1) -> OverlaySurface:
    """Redraw the overlay for one tick.

    Args:
        overlay: target surface (drawn in place)
        detection: resized detection, or None to just clear
        min_score: expressions below this score get no bar

    Returns:
        The same surface.
    """
    overlay.clear()
    if detection is None or overlay.width == 0 or overlay.height == 0:
        return overlay

    img = overlay.image
    h, w = img.shape[:2]
    x, y, bw, bh = detection.box.as_int()
    # clamp to surface bounds
    x = max(0, min(x, w - 1)); y = max(0, min(y, h - 1))
    bw = max(0, min(bw, w - x)); bh = max(0, min(bh, h - y))
    cv2.rectangle(img, (x, y), (x + bw, y + bh), BOX_COLOR, 2)
    if detection.face_confidence is not None:
        cv2.putText(img, f"{detection.face_confidence:.2f}", (x, max(10, y - 6)),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.5, BOX_COLOR, 1, cv2.LINE_AA)

    _draw_expressions(img, detection, min_score)
    return overlay
