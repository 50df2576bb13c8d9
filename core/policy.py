"""
Emotion-driven price window heuristics.

Maps the dominant emotion and the price the user had in mind to a price
window and a short message explaining why the range moved.
"""
from __future__ import annotations
import math
from typing import Optional, Tuple

from core.models import PriceWindow

MIN_FRACTION = 0.3  # min = floor(max * MIN_FRACTION)
MAX_TARGET_PRICE = 1e12

# bucket -> (multiplier, member emotions)
BUCKETS = {
    "budget": (0.6, frozenset({"sad", "angry", "fearful"})),
    "value": (0.8, frozenset({"surprised", "disgusted"})),
    "premium": (1.2, frozenset({"happy"})),
}
SIMILAR = "similar"


def bucket_for(emotion: Optional[str]) -> str:
    """Bucket name for an emotion; neutral, None and unknown labels are 'similar'."""
    label = (emotion or "").strip().lower()
    for name, (_mult, members) in BUCKETS.items():
        if label in members:
            return name
    return SIMILAR


def multiplier_for(emotion: Optional[str]) -> float:
    bucket = bucket_for(emotion)
    if bucket == SIMILAR:
        return 1.0
    return BUCKETS[bucket][0]


def _message(bucket: str, max_price: int, currency: str) -> str:
    if bucket == "budget":
        return (
            "I noticed you might be looking for more budget-friendly options. "
            f"Here are some great alternatives under {currency}{max_price}:"
        )
    if bucket == "value":
        return f"Let me show you some better value options under {currency}{max_price}:"
    if bucket == "premium":
        return f"Great choice! Here are some premium options up to {currency}{max_price} you might love:"
    return "Here are some similar products in your price range:"


def derive(dominant_emotion: Optional[str], target_price: float,
           currency: str = "₹") -> Tuple[PriceWindow, str]:
    """
    Derive the price window and rationale for a dominant emotion.

    Args:
        dominant_emotion: label from the detector, or None when no face.
        target_price: non-negative price the user searched for.
        currency: symbol used in the message.

    Returns:
        (PriceWindow, message)
    """
    if target_price is None or not math.isfinite(float(target_price)) or target_price < 0:
        raise ValueError(f"target_price must be a finite non-negative number, got {target_price!r}")

    bucket = bucket_for(dominant_emotion)
    scaled = float(target_price) * multiplier_for(dominant_emotion)
    if not math.isfinite(scaled):
        raise ValueError(f"target_price {target_price!r} is too large")
    max_price = int(math.floor(scaled))
    min_price = int(math.floor(max_price * MIN_FRACTION))
    return PriceWindow(min=min_price, max=max_price), _message(bucket, max_price, currency)
