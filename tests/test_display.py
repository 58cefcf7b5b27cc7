import asyncio
import types
import numpy as np

import emotion_overlay.display as display
from conftest import make_detection
from emotion_overlay.config import Settings
from emotion_overlay.media import FrameSource
from emotion_overlay.render import OverlaySurface, render
from emotion_overlay.state import EmotionState


def test_compose_frame_blends_overlay():
    frame = np.zeros((48, 64, 3), dtype=np.uint8)
    ov = OverlaySurface(64, 48)
    render(ov, make_detection(x=10, y=5, w=20, h=15, frame_w=64, frame_h=48))
    out = display.compose_frame(frame, ov, "happy")
    assert out.shape == frame.shape
    assert out[15, 10, 1] == 255
    # input frame untouched
    assert not frame.any()


def test_compose_frame_without_video_uses_placeholder():
    out = display.compose_frame(None, OverlaySurface(), None)
    assert out.shape == (*display.PLACEHOLDER_SIZE, 3)
    # caption is still drawn
    assert out.any()


def test_compose_frame_skips_mismatched_overlay():
    frame = np.zeros((48, 64, 3), dtype=np.uint8)
    ov = OverlaySurface(10, 10)
    ov.image[:] = 255
    out = display.compose_frame(frame, ov, "sad")
    assert out[0, 0].sum() == 0


def test_run_preview_quits_on_q(monkeypatch):
    shown = []
    monkeypatch.setattr(display.cv2, "imshow", lambda title, img: shown.append(img.shape))
    monkeypatch.setattr(display.cv2, "destroyAllWindows", lambda: None)
    calls = {"n": 0}
    def fake_waitKey(delay):
        calls["n"] += 1
        return ord("q") if calls["n"] > 2 else -1
    monkeypatch.setattr(display.cv2, "waitKey", fake_waitKey)

    source = FrameSource()
    source.publish(np.zeros((24, 32, 3), dtype=np.uint8))
    session = types.SimpleNamespace(closed=False, source=source,
                                    overlay=OverlaySurface(32, 24), emotion=EmotionState())
    asyncio.run(display.run_preview(session, Settings(PREVIEW_FPS=200)))
    assert shown == [(24, 32, 3)] * 3
