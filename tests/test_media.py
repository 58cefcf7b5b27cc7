import asyncio
import time
import numpy as np
import pytest

import emotion_overlay.media as media
from emotion_overlay.config import Settings
from emotion_overlay.errors import MediaAcquisitionError
from emotion_overlay.models import ReadyState


class DummyCap:
    def __init__(self, idx, opened=True, frames=True):
        self.idx = idx
        self.opened = opened
        self.frames = frames
        self.released = False
        self.frame = np.zeros((24, 32, 3), dtype=np.uint8)
    def isOpened(self): return self.opened
    def read(self):
        time.sleep(0.001)
        if not self.frames:
            return False, None
        return True, self.frame.copy()
    def release(self): self.released = True


def _wait_for(pred, timeout=2.0):
    deadline = time.time() + timeout
    while time.time() < deadline:
        if pred():
            return True
        time.sleep(0.01)
    return pred()


def test_publish_sets_ready_and_size():
    src = media.FrameSource()
    assert src.ready_state is ReadyState.UNINITIALIZED
    assert src.snapshot()[0] is None
    src.publish(np.zeros((10, 20, 3), dtype=np.uint8))
    assert src.is_ready()
    assert (src.width, src.height) == (20, 10)
    src.mark(ReadyState.FAILED)
    src.publish(np.zeros((10, 20, 3), dtype=np.uint8))
    assert src.ready_state is ReadyState.FAILED


def test_acquire_attaches_reader():
    caps = []
    def factory(idx):
        caps.append(DummyCap(idx))
        return caps[-1]

    src = asyncio.run(media.acquire(Settings(CAMERA_INDEX=3), capture_factory=factory))
    try:
        assert caps[0].idx == 3
        assert _wait_for(src.is_ready)
        frame, size = src.snapshot()
        assert frame.shape == (24, 32, 3)
        assert (size.width, size.height) == (32, 24)
    finally:
        src.release()
    assert caps[0].released
    assert src.latest_frame() is None


def test_acquire_denied_raises(monkeypatch):
    cap = DummyCap(0, opened=False)
    monkeypatch.setattr(media.cv2, "VideoCapture", lambda idx: cap)
    with pytest.raises(MediaAcquisitionError) as exc:
        asyncio.run(media.acquire(Settings(), camera_index=1))
    assert "1" in exc.value.reason
    assert cap.released


def test_reader_marks_failed_after_repeated_read_errors(monkeypatch):
    monkeypatch.setattr(media, "MAX_READ_FAILURES", 3)
    monkeypatch.setattr(media, "READ_RETRY_SLEEP", 0.0)
    src = asyncio.run(media.acquire(Settings(), capture_factory=lambda idx: DummyCap(idx, frames=False)))
    try:
        assert _wait_for(lambda: src.ready_state is ReadyState.FAILED)
    finally:
        src.release()
