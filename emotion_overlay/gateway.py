"""
Inference gateway: face detection + expression scores with DeepFace.
"""
# emotion_overlay/gateway.py
from __future__ import annotations
from typing import Any, Dict, List, Optional, Protocol, Tuple
import asyncio
import logging

import cv2
import numpy as np

from emotion_overlay.config import Settings
from emotion_overlay.errors import InferenceError, ModelLoadError
from emotion_overlay.models import BoundingBox, DetectionResult, EXPRESSIONS

logger = logging.getLogger(__name__)

# DeepFace label -> overlay label
LABEL_ALIASES = {
    "fear": "fearful",
    "disgust": "disgusted",
    "surprise": "surprised",
}


class InferenceGateway(Protocol):
    """What the annotation loop needs from an inference backend."""

    async def load_models(self) -> None:
        ...

    async def detect(self, frame: np.ndarray) -> Optional[DetectionResult]:
        ...


def _resize_for_detect(img: np.ndarray, target_w: int) -> np.ndarray:
    H, W = img.shape[:2]
    if target_w <= 0 or W <= target_w:
        return img
    scale = target_w / float(W)
    return cv2.resize(img, (target_w, max(1, int(H * scale))), interpolation=cv2.INTER_AREA)


def _normalize_results(raw: Any) -> List[Dict[str, Any]]:
    # DeepFace returns list[dict] or dict depending on version
    if isinstance(raw, dict):
        return [raw]
    if isinstance(raw, list):
        if raw and isinstance(raw[0], list):
            raw = raw[0]
        return [item for item in raw if isinstance(item, dict)]
    return []


def _face_score(item: Dict[str, Any]) -> Tuple[float, float]:
    try:
        conf = float(item.get("face_confidence", 1.0))
    except (TypeError, ValueError):
        conf = 0.0
    reg = item.get("region") or {}
    try:
        area = max(0.0, float(reg.get("w", 0))) * max(0.0, float(reg.get("h", 0)))
    except (TypeError, ValueError):
        area = 0.0
    return conf, area


def normalize_expressions(emotion: Dict[str, Any]) -> Dict[str, float]:
    """Map DeepFace emotion probabilities (0..100) to overlay labels in [0, 1]."""
    raw: Dict[str, float] = {}
    for key, value in (emotion or {}).items():
        try:
            raw[LABEL_ALIASES.get(str(key).lower(), str(key).lower())] = float(value)
        except (TypeError, ValueError):
            continue
    if not raw:
        return {}
    percent = max(raw.values()) > 1.0
    out: Dict[str, float] = {}
    for label in EXPRESSIONS:
        if label in raw:
            v = raw[label] / 100.0 if percent else raw[label]
            out[label] = max(0.0, min(1.0, v))
    return out


class DeepFaceGateway:
    """Runs ``DeepFace.analyze`` in a worker thread, one face per call."""
    def __init__(self, settings: Settings):
        self.s = settings
        self._deepface = None

    @property
    def loaded(self) -> bool:
        return self._deepface is not None

    async def load_models(self) -> None:
        """Import DeepFace and warm up the detector + emotion model.

        Raises:
            ModelLoadError: import or model build failed.
        """
        try:
            from deepface import DeepFace
        except Exception as e:
            raise ModelLoadError("DeepFace import failed. Install/align deepface/tensorflow.") from e

        logger.info(f"[gateway] loading models detector_backend={self.s.DETECTOR_BACKEND}")
        blank = np.zeros((64, 64, 3), dtype=np.uint8)
        try:
            await asyncio.to_thread(self._analyze, DeepFace, blank)
        except Exception as e:
            raise ModelLoadError(f"Emotion model warm-up failed: {e}") from e
        self._deepface = DeepFace
        logger.info("[gateway] models ready")

    async def detect(self, frame: np.ndarray) -> Optional[DetectionResult]:
        if self._deepface is None:
            raise InferenceError("models not loaded")
        return await asyncio.to_thread(self.detect_sync, frame)

    def _analyze(self, DeepFace, img: np.ndarray) -> Any:
        return DeepFace.analyze(
            img,
            actions=["emotion"],
            enforce_detection=False,
            detector_backend=self.s.DETECTOR_BACKEND,
            align=True,
            silent=True,
        )

    def detect_sync(self, frame: np.ndarray) -> Optional[DetectionResult]:
        """Blocking detection on one frame; None when no usable face."""
        small = _resize_for_detect(frame, self.s.DETECT_WIDTH)
        H, W = small.shape[:2]
        results = _normalize_results(self._analyze(self._deepface, small))

        faces = []
        for r in results:
            conf, area = _face_score(r)
            # enforce_detection=False reports the whole image with confidence 0
            if conf < self.s.MIN_FACE_CONFIDENCE or area <= 0:
                continue
            faces.append(r)
        logger.debug(f"[gateway] faces_detected={len(faces)} of {len(results)}")
        if not faces:
            return None

        best = max(faces, key=_face_score)
        reg = best.get("region") or {}
        conf, _ = _face_score(best)
        return DetectionResult(
            box=BoundingBox(
                x=float(reg.get("x", 0)), y=float(reg.get("y", 0)),
                w=float(reg.get("w", 0)), h=float(reg.get("h", 0)),
            ),
            expressions=normalize_expressions(best.get("emotion") or {}),
            frame_width=W,
            frame_height=H,
            face_confidence=conf,
        )
