"""Run the live emotion overlay window.

Usage:
    uvicorn api.main:app --reload  # (separate, for the status API)
    python scripts/live_overlay.py --camera 0 --interval 0.2

Press 'q' to quit the window.
"""
from __future__ import annotations
import argparse
import asyncio
import logging
import sys

from emotion_overlay.config import Settings
from emotion_overlay.display import run_preview
from emotion_overlay.errors import ModelLoadError
from emotion_overlay.session import start_session


async def run(settings: Settings) -> None:
    session = await start_session(settings)
    try:
        await run_preview(session, settings)
    finally:
        await session.close()


def main(argv=None) -> int:
    p = argparse.ArgumentParser(description="Webcam facial emotion overlay")
    p.add_argument("--camera", type=int, default=None, help="Camera index")
    p.add_argument("--interval", type=float, default=None, help="Seconds between inference ticks")
    p.add_argument("--timeout", type=float, default=None, help="Per-inference timeout in seconds (0 disables)")
    p.add_argument("--log-level", default=None, help="Logging level")
    args = p.parse_args(argv)

    overrides = {}
    if args.camera is not None:
        overrides["CAMERA_INDEX"] = args.camera
    if args.interval is not None:
        overrides["TICK_INTERVAL"] = args.interval
    if args.timeout is not None:
        overrides["INFERENCE_TIMEOUT"] = args.timeout
    if args.log_level:
        overrides["LOG_LEVEL"] = args.log_level
    settings = Settings(**overrides)

    logging.basicConfig(level=settings.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    try:
        asyncio.run(run(settings))
    except ModelLoadError as e:
        logging.getLogger(__name__).error(f"startup failed: {e}")
        return 1
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    sys.exit(main())
