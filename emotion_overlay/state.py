"""
Emotion state: the single value the display layer reads.
"""
from __future__ import annotations
import time
from typing import Optional

from emotion_overlay.models import NONE_LABEL


class EmotionState:
    """Mutable cell holding the latest dominant emotion label.

    Only written from the annotation loop's completion handler, which runs on
    the event loop, so no locking is done here.
    """
    def __init__(self, initial: str = NONE_LABEL):
        self._label = initial
        self._updated_at: Optional[float] = None

    def set(self, label: Optional[str]) -> None:
        self._label = label or NONE_LABEL
        self._updated_at = time.time()

    def get(self) -> str:
        return self._label

    def reset(self) -> None:
        self.set(NONE_LABEL)

    @property
    def updated_at(self) -> Optional[float]:
        return self._updated_at
