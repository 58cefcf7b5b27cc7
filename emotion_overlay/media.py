# emotion_overlay/media.py
"""
Media source adapter.

Opens the webcam with OpenCV and keeps the most recent frame available to the
annotation loop. A background reader thread plays the role of the live video
element: it keeps decoding frames and flips the source to READY once the
first frame arrives.
"""
from __future__ import annotations

import asyncio
import logging
import threading
import time
from typing import Callable, Optional

import cv2
import numpy as np

from emotion_overlay.config import Settings
from emotion_overlay.errors import MediaAcquisitionError
from emotion_overlay.models import FrameSize, ReadyState

logger = logging.getLogger(__name__)

MAX_READ_FAILURES = 50      # consecutive failed reads before the source is FAILED
READ_RETRY_SLEEP = 0.05


class FrameSource:
    """Continuously-updating frame holder with readiness state."""
    def __init__(self):
        self._lock = threading.Lock()
        self._frame: Optional[np.ndarray] = None
        self._width = 0
        self._height = 0
        self._ready_state = ReadyState.UNINITIALIZED

    @property
    def ready_state(self) -> ReadyState:
        with self._lock:
            return self._ready_state

    @property
    def width(self) -> int:
        with self._lock:
            return self._width

    @property
    def height(self) -> int:
        with self._lock:
            return self._height

    @property
    def size(self) -> FrameSize:
        with self._lock:
            return FrameSize(width=self._width, height=self._height)

    def is_ready(self) -> bool:
        return self.ready_state is ReadyState.READY

    def mark(self, state: ReadyState) -> None:
        with self._lock:
            self._ready_state = state

    def publish(self, frame: np.ndarray) -> None:
        """Replace the current frame; the first one makes the source READY."""
        h, w = frame.shape[:2]
        with self._lock:
            self._frame = frame
            self._width, self._height = int(w), int(h)
            if self._ready_state is not ReadyState.FAILED:
                self._ready_state = ReadyState.READY

    def snapshot(self) -> tuple[Optional[np.ndarray], FrameSize]:
        """Current frame and its dimensions, read together."""
        with self._lock:
            return self._frame, FrameSize(width=self._width, height=self._height)

    def latest_frame(self) -> Optional[np.ndarray]:
        with self._lock:
            return self._frame

    def release(self) -> None:
        with self._lock:
            self._frame = None
            self._ready_state = ReadyState.UNINITIALIZED


class CameraFrameSource(FrameSource):
    """FrameSource fed by an opened ``cv2.VideoCapture``."""
    def __init__(self, cap, camera_index: int):
        super().__init__()
        self.camera_index = camera_index
        self._cap = cap
        self._run = False
        self._reader: Optional[threading.Thread] = None

    # ---- lifecycle ----
    def start(self) -> None:
        if self._run:
            return
        self._run = True
        self._reader = threading.Thread(target=self._read_loop, daemon=True)
        self._reader.start()

    def release(self) -> None:
        self._run = False
        if self._reader is not None and self._reader is not threading.current_thread():
            self._reader.join(timeout=1.0)
        self._reader = None
        try:
            self._cap.release()
        except Exception:
            logger.warning(f"[media] camera {self.camera_index} release failed")
        super().release()

    # ---- reader ----
    def _read_loop(self) -> None:
        failures = 0
        while self._run:
            ok, frame = self._cap.read()
            if not ok or frame is None:
                failures += 1
                if failures >= MAX_READ_FAILURES:
                    logger.error(f"[media] camera {self.camera_index} stopped delivering frames")
                    self.mark(ReadyState.FAILED)
                    self._run = False
                    break
                time.sleep(READ_RETRY_SLEEP)
                continue
            failures = 0
            self.publish(frame)
            # VideoCapture.read blocks on the device; just yield the GIL
            time.sleep(0)


async def acquire(settings: Settings,
                  camera_index: Optional[int] = None,
                  capture_factory: Optional[Callable[[int], object]] = None) -> CameraFrameSource:
    """
    Open the camera (video only) and attach a live frame reader.

    Raises:
        MediaAcquisitionError: device missing, busy or access denied.
    """
    idx = settings.CAMERA_INDEX if camera_index is None else camera_index
    factory = capture_factory or cv2.VideoCapture
    logger.debug(f"[media] opening camera index={idx}")
    try:
        cap = await asyncio.to_thread(factory, idx)
    except Exception as e:
        raise MediaAcquisitionError(f"Could not open camera index {idx}: {e}") from e
    if not cap.isOpened():
        try:
            cap.release()
        except Exception:
            logger.debug("[media] release after failed open raised", exc_info=True)
        raise MediaAcquisitionError(f"Could not open camera index {idx}")

    source = CameraFrameSource(cap, idx)
    source.mark(ReadyState.ACQUIRING)
    source.start()
    logger.info(f"[media] camera {idx} attached")
    return source
