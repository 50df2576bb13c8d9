"""Visualization helpers for the live camera window.

- draw_overlays: draw the dominant emotion, its confidence and the per-emotion
  breakdown, or a NO_FACE flag when nothing passed the confidence gate
"""
from __future__ import annotations
import cv2
import numpy as np
from typing import Optional, Tuple

from core.models import DetectionResult

# BGR
EMOTION_COLORS = {
    "happy": (94, 197, 34),
    "sad": (246, 130, 59),
    "angry": (68, 68, 239),
    "surprised": (8, 179, 234),
    "fearful": (247, 85, 168),
    "disgusted": (22, 115, 249),
}
DEFAULT_COLOR = (128, 128, 128)


def confidence_color(confidence: float) -> Tuple[int, int, int]:
    if confidence > 0.7:
        return (0, 200, 0)
    if confidence > 0.5:
        return (0, 200, 255)
    return (0, 0, 255)


def draw_overlays(frame: np.ndarray,
                  detection: Optional[DetectionResult] = None,
                  error: Optional[str] = None) -> np.ndarray:
    """Draw the detection panel on a copy of the frame.

    Args:
        frame: BGR image (never modified; it may be the shared read-only frame)
        detection: current gated result, or None for NO_FACE
        error: optional message shown at the bottom

    Returns:
        Annotated copy of the frame
    """
    out = frame.copy()
    h, w = out.shape[:2]

    if detection is None:
        cv2.putText(out, "NO_FACE", (10, 30), cv2.FONT_HERSHEY_SIMPLEX, 1.0, (0, 0, 255), 2, cv2.LINE_AA)
    else:
        label = f"{detection.dominant_emotion} {detection.confidence * 100:.1f}%"
        color = EMOTION_COLORS.get(detection.dominant_emotion, DEFAULT_COLOR)
        cv2.putText(out, label, (10, 30), cv2.FONT_HERSHEY_SIMPLEX, 0.9, color, 2, cv2.LINE_AA)
        bar_w = int(max(0.0, min(1.0, detection.confidence)) * 120)
        cv2.rectangle(out, (10, 40), (10 + bar_w, 48), confidence_color(detection.confidence), -1)

        # breakdown, highest score first
        rows = sorted(detection.vector.items(), key=lambda kv: kv[1], reverse=True)
        for i, (emo, score) in enumerate(rows):
            y = 70 + i * 18
            if y > h - 5:
                break
            c = EMOTION_COLORS.get(emo, DEFAULT_COLOR)
            cv2.putText(out, f"{emo:<9} {score * 100:5.1f}%", (10, y), cv2.FONT_HERSHEY_SIMPLEX, 0.45, c, 1, cv2.LINE_AA)

    if error:
        cv2.putText(out, error[:60], (10, max(0, h - 10)), cv2.FONT_HERSHEY_SIMPLEX, 0.45, (0, 0, 255), 1, cv2.LINE_AA)
    return out
