"""
Sampling tick: classify the current frame, pick the dominant emotion,
apply the confidence gate and publish the result (or "no face").
"""
from __future__ import annotations
import asyncio
import logging
from typing import Optional, Tuple

import numpy as np

from core.classifier import ExpressionClassifier
from core.config import Settings
from core.models import Classification, DetectionResult, EMOTION_LABELS, ExpressionVector

logger = logging.getLogger(__name__)


def dominant_emotion(vector: ExpressionVector) -> Tuple[str, float]:
    """
    Scan labels in canonical order; a score equal to the running best also
    replaces it, so among ties the later label wins.
    """
    best_label = EMOTION_LABELS[0]
    best = vector.score(best_label)
    for label in EMOTION_LABELS[1:]:
        s = vector.score(label)
        if s >= best:
            best_label, best = label, s
    return best_label, best


def gate(vector: ExpressionVector, threshold: float) -> Optional[DetectionResult]:
    """DetectionResult for the vector, or None when the dominant score is under threshold."""
    label, confidence = dominant_emotion(vector)
    if confidence < threshold:
        return None
    return DetectionResult(vector=vector, dominant_emotion=label, confidence=confidence)


class EmotionAggregator:
    """Holds the latest gated detection; the only writer of that value."""

    def __init__(self, classifier: ExpressionClassifier, settings: Settings):
        self.classifier = classifier
        self.threshold = settings.CONFIDENCE_GATE
        self._busy = False
        self._epoch = 0
        self._result: Optional[DetectionResult] = None
        self.error: Optional[str] = None
        self.ticks = 0
        self.skipped = 0

    @property
    def result(self) -> Optional[DetectionResult]:
        return self._result

    @property
    def busy(self) -> bool:
        return self._busy

    def invalidate(self) -> None:
        """Make any tick already in flight drop its result instead of publishing it."""
        self._epoch += 1

    async def tick(self, frame: Optional[np.ndarray]) -> bool:
        """
        Run one sampling tick. Returns False when skipped because the previous
        tick's classifier call is still outstanding.
        """
        if self._busy:
            self.skipped += 1
            logger.debug("[aggregator] previous tick still running; skipping")
            return False

        self._busy = True
        epoch = self._epoch
        # _busy clears when the classifier call finishes, not when this tick is cancelled
        inflight = asyncio.ensure_future(self.classifier.classify(frame))
        inflight.add_done_callback(self._release)
        outcome = await asyncio.shield(inflight)

        if epoch != self._epoch:
            logger.debug("[aggregator] session stopped during inference; result discarded")
            return True
        self.ticks += 1
        self._apply(outcome)
        return True

    def _release(self, inflight: asyncio.Future) -> None:
        self._busy = False
        if not inflight.cancelled() and inflight.exception() is not None:
            logger.error(f"[aggregator] classifier call failed: {inflight.exception()!r}")

    def _apply(self, outcome: Classification) -> None:
        if outcome.flag in ("DETECTION_FAILED", "MODEL_UNAVAILABLE"):
            # Keep the last good result; only the message changes
            self.error = outcome.error
            return

        self.error = None
        if outcome.flag == "NO_FACE" or outcome.vector is None:
            self._result = None
            return

        self._result = gate(outcome.vector, self.threshold)
        if self._result is None:
            logger.debug("[aggregator] dominant score under gate; treating as no face")
        else:
            logger.debug(
                f"[aggregator] dominant={self._result.dominant_emotion} "
                f"confidence={self._result.confidence:.2f}"
            )
