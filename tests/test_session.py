import asyncio
import threading
import numpy as np
import pytest

from conftest import make_detection
from emotion_overlay.config import Settings
from emotion_overlay.errors import MediaAcquisitionError, ModelLoadError
from emotion_overlay.media import FrameSource
from emotion_overlay.models import LoopState, ReadyState
from emotion_overlay.session import start_session


class DummyGateway:
    def __init__(self, fail_load=False):
        self.fail_load = fail_load
        self.loaded = False
        self.calls = 0

    async def load_models(self):
        if self.fail_load:
            raise ModelLoadError("no weights")
        self.loaded = True

    async def detect(self, frame):
        self.calls += 1
        return make_detection(surprised=0.8, neutral=0.2)


def test_session_runs_pipeline_in_order():
    async def acquirer(settings):
        src = FrameSource()
        src.publish(np.zeros((24, 32, 3), dtype=np.uint8))
        return src

    async def scenario():
        gw = DummyGateway()
        session = await start_session(Settings(TICK_INTERVAL=0.01), gateway=gw, acquirer=acquirer)
        await asyncio.sleep(0.1)
        status = session.status()
        await session.close()
        await session.close()
        return gw, session, status

    gw, session, status = asyncio.run(scenario())
    assert gw.loaded and gw.calls >= 1
    assert status.running and status.loop_state is LoopState.RUNNING
    assert status.emotion == "surprised"
    assert status.frame_size.width == 32
    assert session.closed and session.loop.state is LoopState.CANCELLED
    assert session.source.latest_frame() is None


def test_model_load_failure_is_fatal():
    acquired = []

    async def acquirer(settings):
        acquired.append(True)
        return FrameSource()

    with pytest.raises(ModelLoadError):
        asyncio.run(start_session(Settings(), gateway=DummyGateway(fail_load=True), acquirer=acquirer))
    assert acquired == []


def test_camera_failure_leaves_loop_waiting():
    async def acquirer(settings):
        raise MediaAcquisitionError("permission denied")

    async def scenario():
        gw = DummyGateway()
        session = await start_session(Settings(TICK_INTERVAL=0.01), gateway=gw, acquirer=acquirer)
        await asyncio.sleep(0.05)
        status = session.status()
        await session.close()
        return gw, status

    gw, status = asyncio.run(scenario())
    assert status.ready_state is ReadyState.FAILED
    assert status.loop_state is LoopState.WAITING_FOR_READY
    assert status.emotion == "None"
    assert gw.calls == 0


def test_close_releases_camera_off_the_event_loop():
    released_on = []

    class TrackingSource(FrameSource):
        def release(self):
            released_on.append(threading.current_thread())
            super().release()

    async def acquirer(settings):
        src = TrackingSource()
        src.publish(np.zeros((24, 32, 3), dtype=np.uint8))
        return src

    async def scenario():
        session = await start_session(Settings(TICK_INTERVAL=0.01), gateway=DummyGateway(), acquirer=acquirer)
        await asyncio.sleep(0.02)
        await session.close()
        return threading.current_thread()

    loop_thread = asyncio.run(scenario())
    assert len(released_on) == 1
    assert released_on[0] is not loop_thread
