"""
Configuration for the live emotion overlay.
"""
from pydantic import BaseModel
import os

DEFAULT_TICK_INTERVAL = 0.2


class Settings(BaseModel):
    """
    Runtime settings with environment-variable overrides.
    """
    CAMERA_INDEX: int = int(os.getenv("CAMERA_INDEX", "0"))
    TICK_INTERVAL: float = float(os.getenv("TICK_INTERVAL", str(DEFAULT_TICK_INTERVAL)))
    # seconds; 0 disables the per-call bound
    INFERENCE_TIMEOUT: float = float(os.getenv("INFERENCE_TIMEOUT", "5.0"))

    DETECTOR_BACKEND: str = os.getenv("DETECTOR_BACKEND", "opencv")
    DETECT_WIDTH: int = int(os.getenv("DETECT_WIDTH", "480"))
    MIN_FACE_CONFIDENCE: float = float(os.getenv("MIN_FACE_CONFIDENCE", "0.5"))
    EXPRESSION_MIN_SCORE: float = float(os.getenv("EXPRESSION_MIN_SCORE", "0.1"))

    PREVIEW_FPS: float = float(os.getenv("PREVIEW_FPS", "30"))
    STATS_EVERY: int = int(os.getenv("STATS_EVERY", "50"))
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    def __init__(self, **data):
        super().__init__(**data)
        backend = ((self.DETECTOR_BACKEND or "").strip().split() or ["opencv"])[0].lower()
        object.__setattr__(self, "DETECTOR_BACKEND", backend)
        if self.TICK_INTERVAL <= 0:
            object.__setattr__(self, "TICK_INTERVAL", DEFAULT_TICK_INTERVAL)
        if self.INFERENCE_TIMEOUT < 0:
            object.__setattr__(self, "INFERENCE_TIMEOUT", 0.0)
        object.__setattr__(self, "LOG_LEVEL", (self.LOG_LEVEL or "INFO").strip().upper())

    @property
    def inference_timeout(self) -> float | None:
        return self.INFERENCE_TIMEOUT or None
