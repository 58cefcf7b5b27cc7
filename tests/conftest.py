import asyncio
import numpy as np
import pytest

from emotion_overlay.models import BoundingBox, DetectionResult


async def settle(n: int = 10):
    """Let pending tasks on the running loop make progress."""
    for _ in range(n):
        await asyncio.sleep(0)


class ControlledGateway:
    """Gateway whose detect() calls stay pending until the test resolves them."""
    def __init__(self):
        self.calls = 0
        self.futures = []

    async def load_models(self):
        return None

    async def detect(self, frame):
        self.calls += 1
        fut = asyncio.get_running_loop().create_future()
        self.futures.append(fut)
        return await fut


class RecordingRenderer:
    def __init__(self):
        self.calls = []

    def __call__(self, overlay, detection):
        self.calls.append((overlay.size, detection))


def make_detection(x=8, y=6, w=8, h=6, frame_w=32, frame_h=24, **scores):
    return DetectionResult(
        box=BoundingBox(x=x, y=y, w=w, h=h),
        expressions=scores or {"neutral": 0.1, "happy": 0.8, "sad": 0.1},
        frame_width=frame_w,
        frame_height=frame_h,
        face_confidence=0.95,
    )


@pytest.fixture
def blank_frame():
    return np.zeros((48, 64, 3), dtype=np.uint8)


@pytest.fixture
def sample_detection():
    return make_detection()
