"""
REST endpoints for the live overlay session.
"""
import logging
from fastapi import APIRouter, HTTPException

from emotion_overlay.config import Settings
from emotion_overlay.errors import ModelLoadError
from emotion_overlay.models import LiveStatus, NONE_LABEL
from emotion_overlay.session import start_session

live_session = {"session": None, "starting": False}

router = APIRouter()
settings = Settings()
logger = logging.getLogger(__name__)


async def shutdown_session() -> bool:
    session = live_session["session"]
    if session is None:
        return False
    live_session["session"] = None
    await session.close()
    return True


@router.post("/live/start")
async def live_start():
    """
    Load models, open the camera and start the annotation loop.

    Returns:
        dict: {"status": "started"} or {"status": "already_running"}
    """
    if live_session["session"] is not None or live_session["starting"]:
        return {"status": "already_running"}
    # claim the slot before awaiting so overlapping requests see it
    live_session["starting"] = True
    try:
        logger.debug(f"[api] starting session camera={settings.CAMERA_INDEX}")
        live_session["session"] = await start_session(settings)
    except ModelLoadError as e:
        logger.exception("[api] model load failed")
        raise HTTPException(status_code=503, detail=str(e))
    finally:
        live_session["starting"] = False
    return {"status": "started"}


@router.post("/live/stop")
async def live_stop():
    if not await shutdown_session():
        return {"status": "not_running"}
    return {"status": "stopped"}


@router.get("/live/status", response_model=LiveStatus)
async def live_status():
    session = live_session["session"]
    if session is None:
        return LiveStatus(running=False)
    return session.status()


@router.get("/live/emotion")
async def live_emotion():
    """Latest dominant emotion ("None" when idle or no face)."""
    session = live_session["session"]
    return {"emotion": session.emotion.get() if session is not None else NONE_LABEL}
