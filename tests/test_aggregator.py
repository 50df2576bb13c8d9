import asyncio
import sys
import threading
import time
import types

import numpy as np
import pytest

from core.aggregator import EmotionAggregator, dominant_emotion, gate
from core.classifier import ExpressionClassifier
from core.config import Settings
from core.models import Classification, ExpressionVector
from conftest import FakeDeepFace, df_face


class ScriptedClassifier:
    """Returns queued Classification objects; optionally waits on an event first."""

    def __init__(self, outcomes, hold=None):
        self.outcomes = list(outcomes)
        self.hold = hold
        self.calls = 0

    async def classify(self, frame):
        self.calls += 1
        if self.hold is not None:
            await self.hold.wait()
        return self.outcomes.pop(0)


def face(**scores):
    return Classification(vector=ExpressionVector(**scores))


NO_FACE = Classification(flag="NO_FACE")


def test_unique_maximum_wins():
    assert dominant_emotion(ExpressionVector(angry=0.7, happy=0.2)) == ("angry", 0.7)

def test_tie_goes_to_later_label():
    assert dominant_emotion(ExpressionVector(happy=0.5, sad=0.5))[0] == "sad"
    assert dominant_emotion(ExpressionVector(neutral=0.4, surprised=0.4))[0] == "surprised"
    # all zero: the last label in canonical order
    assert dominant_emotion(ExpressionVector())[0] == "surprised"

@pytest.mark.parametrize("score,published", [(0.29, False), (0.3, True), (0.31, True)])
def test_confidence_gate(score, published):
    res = gate(ExpressionVector(happy=score), 0.3)
    assert (res is not None) == published


def test_tick_publishes_then_clears_on_no_face():
    agg = EmotionAggregator(ScriptedClassifier([face(happy=0.5, sad=0.5), NO_FACE]), Settings())

    asyncio.run(agg.tick(None))
    assert agg.result.dominant_emotion == "sad"
    assert agg.result.confidence == 0.5

    asyncio.run(agg.tick(None))
    assert agg.result is None


def test_low_confidence_clears_published_result():
    agg = EmotionAggregator(ScriptedClassifier([face(happy=0.9), face(happy=0.2, sad=0.1)]), Settings())
    asyncio.run(agg.tick(None))
    asyncio.run(agg.tick(None))
    assert agg.result is None


def test_detection_failure_keeps_last_good_result():
    failed = Classification(flag="DETECTION_FAILED", error="Failed to detect expressions.")
    agg = EmotionAggregator(ScriptedClassifier([face(angry=0.8), failed, face(happy=0.9)]), Settings())

    asyncio.run(agg.tick(None))
    asyncio.run(agg.tick(None))
    assert agg.result.dominant_emotion == "angry"
    assert agg.error == "Failed to detect expressions."

    # next tick proceeds normally and clears the message
    asyncio.run(agg.tick(None))
    assert agg.result.dominant_emotion == "happy"
    assert agg.error is None


def test_overlapping_tick_is_skipped():
    async def scenario():
        hold = asyncio.Event()
        clf = ScriptedClassifier([face(happy=0.9)], hold=hold)
        agg = EmotionAggregator(clf, Settings())
        first = asyncio.create_task(agg.tick(None))
        await asyncio.sleep(0)
        assert agg.busy
        assert await agg.tick(None) is False
        hold.set()
        assert await first is True
        return agg, clf

    agg, clf = asyncio.run(scenario())
    assert clf.calls == 1
    assert agg.skipped == 1
    assert agg.result.dominant_emotion == "happy"


def test_invalidate_discards_in_flight_result():
    async def scenario():
        hold = asyncio.Event()
        agg = EmotionAggregator(ScriptedClassifier([face(happy=0.9)], hold=hold), Settings())
        task = asyncio.create_task(agg.tick(None))
        await asyncio.sleep(0)
        agg.invalidate()
        hold.set()
        await task
        return agg

    agg = asyncio.run(scenario())
    assert agg.result is None
    assert not agg.busy


def test_model_unavailable_keeps_last_result():
    down = Classification(flag="MODEL_UNAVAILABLE", error="Failed to load face detection models.")
    agg = EmotionAggregator(ScriptedClassifier([face(happy=0.9), down]), Settings())
    asyncio.run(agg.tick(None))
    asyncio.run(agg.tick(None))
    assert agg.result.dominant_emotion == "happy"
    assert agg.error == "Failed to load face detection models."


class SlowDeepFace(FakeDeepFace):
    """Blocks inside analyze() and records how many calls overlap."""

    def __init__(self, delay):
        super().__init__()
        self.delay = delay
        self.active = 0
        self.peak = 0
        self._lock = threading.Lock()

    def analyze(self, *args, **kwargs):
        with self._lock:
            self.active += 1
            self.peak = max(self.peak, self.active)
        try:
            time.sleep(self.delay)
            return super().analyze(*args, **kwargs)
        finally:
            with self._lock:
                self.active -= 1


def test_cancelled_tick_holds_guard_until_inference_returns(monkeypatch, loaded_models):
    slow = SlowDeepFace(0.3)
    slow.results = [df_face({"happy": 90.0, "neutral": 10.0})]
    monkeypatch.setitem(sys.modules, "deepface", types.SimpleNamespace(DeepFace=slow))
    frame = np.zeros((48, 64, 3), dtype=np.uint8)

    async def scenario():
        agg = EmotionAggregator(ExpressionClassifier(Settings()), Settings())
        first = asyncio.create_task(agg.tick(frame))
        await asyncio.sleep(0.05)
        first.cancel()
        with pytest.raises(asyncio.CancelledError):
            await first
        agg.invalidate()

        # the worker thread is still inside analyze()
        assert agg.busy
        assert await agg.tick(frame) is False

        for _ in range(100):
            if not agg.busy:
                break
            await asyncio.sleep(0.01)
        assert await agg.tick(frame) is True
        return agg

    agg = asyncio.run(scenario())
    assert slow.peak == 1
    assert len(slow.calls) == 2
    assert agg.skipped == 1
    assert agg.result.dominant_emotion == "happy"
