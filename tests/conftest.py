import sys, types
import numpy as np
import pytest
from pathlib import Path

import core.classifier as classifier

# Base data directory relative to repo root
DATA_DIR = Path(__file__).resolve().parent.parent / "data"


def df_face(scores: dict, confidence: float = 0.9) -> dict:
    """One DeepFace.analyze entry; scores use DeepFace's labels and percent scale."""
    return {
        "emotion": scores,
        "dominant_emotion": max(scores, key=scores.get) if scores else "",
        "region": {"x": 10, "y": 10, "w": 40, "h": 40},
        "face_confidence": confidence,
    }


class FakeDeepFace:
    """Stand-in for deepface.DeepFace; analyze() returns whatever `results` holds."""

    def __init__(self):
        self.results = []
        self.failing_backends = set()
        self.raise_on_analyze = None
        self.calls = []

    def analyze(self, img_path, actions=None, enforce_detection=True, detector_backend="opencv", align=True):
        self.calls.append(detector_backend)
        if detector_backend in self.failing_backends:
            raise OSError(f"weights for {detector_backend} unavailable")
        if self.raise_on_analyze is not None:
            raise self.raise_on_analyze
        return self.results


class DummyCap:
    def __init__(self, opened=True, frames=True):
        self.opened = opened
        self.frames = frames
        self.props = {}
        self.reads = 0
        self.released = False
    def isOpened(self): return self.opened
    def set(self, prop, value):
        self.props[prop] = value
        return True
    def read(self):
        self.reads += 1
        if not self.frames:
            return False, None
        return True, np.zeros((48, 64, 3), dtype=np.uint8)
    def release(self):
        self.released = True


@pytest.fixture
def fake_deepface(monkeypatch):
    fake = FakeDeepFace()
    monkeypatch.setitem(sys.modules, "deepface", types.SimpleNamespace(DeepFace=fake))
    return fake


@pytest.fixture
def fresh_models(monkeypatch):
    """Process-wide classifier state as if nothing had been loaded yet."""
    monkeypatch.setattr(classifier, "_ready", False)
    monkeypatch.setattr(classifier, "_attempted", False)
    monkeypatch.setattr(classifier, "_source", None)


@pytest.fixture
def loaded_models(monkeypatch, fake_deepface):
    monkeypatch.setattr(classifier, "_ready", True)
    monkeypatch.setattr(classifier, "_attempted", True)
    monkeypatch.setattr(classifier, "_source", "opencv")
    return fake_deepface


@pytest.fixture
def catalog_csv_path():
    return DATA_DIR / "catalog.csv"
