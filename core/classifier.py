"""
DeepFace adapter: model loading and frame -> ExpressionVector.

DeepFace is imported lazily so tests can monkeypatch sys.modules['deepface'].
"""
from __future__ import annotations
import asyncio
import logging
from typing import Dict, List, Optional

import numpy as np

from core.config import Settings
from core.errors import DetectionFailed, ModelUnavailable
from core.models import Classification, EMOTION_LABELS, ExpressionVector

logger = logging.getLogger(__name__)

# DeepFace label -> canonical label
DEEPFACE_LABELS = {
    "neutral": "neutral",
    "happy": "happy",
    "sad": "sad",
    "angry": "angry",
    "fear": "fearful",
    "disgust": "disgusted",
    "surprise": "surprised",
}

# Process-wide model state, set once by load_models()
_ready: bool = False
_attempted: bool = False
_source: Optional[str] = None


def is_ready() -> bool:
    return _ready


def loaded_source() -> Optional[str]:
    return _source


def _warm_up(backend: str, width: int, height: int) -> None:
    """Load detector, alignment and expression models for one backend."""
    from deepface import DeepFace
    blank = np.zeros((height, width, 3), dtype=np.uint8)
    DeepFace.analyze(
        blank,
        actions=["emotion"],
        enforce_detection=False,
        detector_backend=backend,
        align=True,
    )


def load_models(settings: Settings) -> Optional[str]:
    """
    Try each model source in order and stop at the first one that loads.

    Returns the loaded source name, or None when every source failed. After a
    full failure the classifier stays unavailable for the rest of the process.
    """
    global _ready, _attempted, _source
    if _attempted:
        return _source

    sources = settings.model_sources
    for src in sources:
        try:
            _warm_up(src, settings.FRAME_WIDTH, settings.FRAME_HEIGHT)
        except Exception as e:
            logger.warning(f"[classifier] failed to load from source={src}: {e}")
            continue
        _source = src
        _ready = True
        _attempted = True
        logger.info(f"[classifier] models loaded from source={src}")
        return src

    _attempted = True
    err = ModelUnavailable(sources)
    logger.error(f"[classifier] {err.message} sources={sources}")
    return None


def to_vector(emotion: Dict[str, float]) -> ExpressionVector:
    """Map DeepFace's percent scores onto the canonical [0, 1] vector."""
    scores = {label: 0.0 for label in EMOTION_LABELS}
    for raw_label, value in (emotion or {}).items():
        label = DEEPFACE_LABELS.get(str(raw_label).lower())
        if label is None:
            continue
        scores[label] = min(1.0, max(0.0, float(value) / 100.0))
    return ExpressionVector.from_scores(scores)


def _face_score(r: Dict) -> float:
    conf = r.get("face_confidence")
    if conf is None:
        conf = r.get("detector_score")
    if conf is None:
        return 1.0
    return float(conf)


def select_face(results: List[Dict], min_score: float) -> Optional[Dict]:
    """Highest detector confidence wins; the first one encountered on ties."""
    best = None
    best_score = 0.0
    for r in results or []:
        if not isinstance(r, dict):
            continue
        score = _face_score(r)
        if score < min_score or score <= 0.0:
            continue
        if best is None or score > best_score:
            best, best_score = r, score
    return best


class ExpressionClassifier:
    """Turns a video frame into a raw ExpressionVector for the best face."""

    def __init__(self, settings: Settings):
        self.s = settings
        self._load_lock = asyncio.Lock()

    @property
    def ready(self) -> bool:
        return _ready

    @property
    def unavailable(self) -> bool:
        return _attempted and not _ready

    async def load(self) -> bool:
        async with self._load_lock:
            if not _attempted:
                await asyncio.to_thread(load_models, self.s)
        return _ready

    def _analyze(self, frame: np.ndarray) -> List[Dict]:
        from deepface import DeepFace
        res = DeepFace.analyze(
            frame,
            actions=["emotion"],
            enforce_detection=False,
            detector_backend=_source,
            align=True,
        )
        # DeepFace returns list[dict] or dict depending on version; normalize to list
        return res if isinstance(res, list) else [res]

    async def classify(self, frame: Optional[np.ndarray]) -> Classification:
        if not _ready:
            if _attempted:
                return Classification(flag="MODEL_UNAVAILABLE", error=ModelUnavailable([]).message)
            return Classification(flag="NO_FACE")
        if frame is None:
            return Classification(flag="NO_FACE")

        try:
            results = await asyncio.to_thread(self._analyze, frame)
        except Exception as e:
            err = DetectionFailed(e)
            logger.exception(f"[classifier] inference failed: {err.details['error']}")
            return Classification(flag="DETECTION_FAILED", error=err.message)

        face = select_face(results, self.s.DETECTOR_SCORE_THRESHOLD)
        logger.debug(f"[classifier] faces_detected={len(results)} selected={face is not None}")
        if face is None:
            return Classification(flag="NO_FACE")
        return Classification(vector=to_vector(face.get("emotion") or {}))
