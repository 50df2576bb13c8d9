"""
Configuration for the shopping assistant.
"""
from pydantic import BaseModel
import os

class Settings(BaseModel):
    """
    Runtime settings with environment-variable overrides.
    """
    CAMERA_INDEX: int = int(os.getenv("CAMERA_INDEX", "0"))
    FRAME_WIDTH: int = int(os.getenv("FRAME_WIDTH", "640"))
    FRAME_HEIGHT: int = int(os.getenv("FRAME_HEIGHT", "480"))
    TARGET_FPS: float = float(os.getenv("TARGET_FPS", "30"))

    SAMPLE_INTERVAL: float = float(os.getenv("SAMPLE_INTERVAL", "0.5"))
    CONFIDENCE_GATE: float = float(os.getenv("CONFIDENCE_GATE", "0.3"))
    DETECTOR_SCORE_THRESHOLD: float = float(os.getenv("DETECTOR_SCORE_THRESHOLD", "0.3"))
    # Ordered DeepFace detector backends, first one that loads wins
    MODEL_SOURCES: str = os.getenv("MODEL_SOURCES", "opencv,ssd,retinaface")

    CATALOG_BACKEND: str = (os.getenv("CATALOG_BACKEND", "csv") or "csv")
    CATALOG_CSV_PATH: str = os.getenv("CATALOG_CSV_PATH", "data/catalog.csv")
    CATALOG_URL: str | None = os.getenv("CATALOG_URL") or None
    CATALOG_TABLE: str = os.getenv("CATALOG_TABLE", "walamart_data")
    CATALOG_API_KEY: str | None = os.getenv("CATALOG_API_KEY") or None
    CATALOG_LIMIT: int = int(os.getenv("CATALOG_LIMIT", "50"))
    DISPLAY_LIMIT: int = int(os.getenv("DISPLAY_LIMIT", "12"))

    CURRENCY_SYMBOL: str = os.getenv("CURRENCY_SYMBOL", "₹")

    def __init__(self, **data):
        super().__init__(**data)
        # Normalize CATALOG_BACKEND: strip comments/extra words, lower-case, validate
        backend = ((self.CATALOG_BACKEND or "").split() or ["csv"])[0].lower()
        if backend not in ("csv", "rest"):
            backend = "csv"
        object.__setattr__(self, "CATALOG_BACKEND", backend)
        # At most 50 raw records per query and 12 shown
        object.__setattr__(self, "CATALOG_LIMIT", max(1, min(int(self.CATALOG_LIMIT), 50)))
        object.__setattr__(self, "DISPLAY_LIMIT", max(1, min(int(self.DISPLAY_LIMIT), 12, self.CATALOG_LIMIT)))

    @property
    def model_sources(self) -> list[str]:
        return [s.strip().lower() for s in (self.MODEL_SOURCES or "").split(",") if s.strip()]
