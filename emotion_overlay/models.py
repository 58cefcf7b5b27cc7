"""
Pydantic data models and enumerations shared by the overlay components.
"""
from __future__ import annotations
from enum import Enum
from typing import Dict, Iterable, Optional, Tuple
from pydantic import BaseModel, Field

# Fixed enumeration order; ties between equal scores go to the earliest label.
EXPRESSIONS: Tuple[str, ...] = (
    "neutral",
    "happy",
    "sad",
    "angry",
    "fearful",
    "disgusted",
    "surprised",
)

# Sentinel shown when no face is detected
NONE_LABEL = "None"


class ReadyState(str, Enum):
    UNINITIALIZED = "uninitialized"
    ACQUIRING = "acquiring"
    READY = "ready"
    FAILED = "failed"


class LoopState(str, Enum):
    IDLE = "idle"
    WAITING_FOR_READY = "waiting_for_ready"
    RUNNING = "running"
    CANCELLED = "cancelled"


class FrameSize(BaseModel):
    width: int
    height: int


class BoundingBox(BaseModel):
    x: float
    y: float
    w: float
    h: float

    def scaled(self, sx: float, sy: float) -> "BoundingBox":
        return BoundingBox(x=self.x * sx, y=self.y * sy, w=self.w * sx, h=self.h * sy)

    def as_int(self) -> Tuple[int, int, int, int]:
        return int(round(self.x)), int(round(self.y)), int(round(self.w)), int(round(self.h))


class DetectionResult(BaseModel):
    """One inference pass outcome for a single face.

    ``frame_width``/``frame_height`` describe the image the box was measured
    on, so the box can be rescaled onto a display of another size.
    """
    box: BoundingBox
    expressions: Dict[str, float] = Field(default_factory=dict)
    frame_width: int
    frame_height: int
    face_confidence: Optional[float] = None

    def resized(self, display: FrameSize) -> "DetectionResult":
        """Return a copy whose box is expressed in ``display`` coordinates."""
        if display.width == self.frame_width and display.height == self.frame_height:
            return self
        sx = display.width / float(self.frame_width or 1)
        sy = display.height / float(self.frame_height or 1)
        return self.model_copy(update={
            "box": self.box.scaled(sx, sy),
            "frame_width": display.width,
            "frame_height": display.height,
        })


def dominant_emotion(scores: Dict[str, float], order: Iterable[str] = EXPRESSIONS) -> str:
    """
    Label with the maximum score.

    Ties resolve to the label that comes first in ``order``; labels not in
    ``order`` rank after it, in the order they appear in ``scores``.
    Returns NONE_LABEL for empty scores.
    """
    if not scores:
        return NONE_LABEL
    ranked = [k for k in order if k in scores]
    ranked += [k for k in scores if k not in ranked]
    best = ranked[0]
    for label in ranked[1:]:
        if scores[label] > scores[best]:
            best = label
    return best


class LoopStats(BaseModel):
    ticks: int = 0
    skipped: int = 0
    inferences: int = 0
    detections: int = 0
    failures: int = 0
    discarded: int = 0


class LiveStatus(BaseModel):
    running: bool
    started_at: float | None = None
    loop_state: LoopState | None = None
    ready_state: ReadyState | None = None
    frame_size: FrameSize | None = None
    emotion: str = NONE_LABEL
    stats: LoopStats | None = None
