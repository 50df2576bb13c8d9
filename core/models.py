"""
Pydantic data models for the detection and recommendation pipeline.
"""
from __future__ import annotations
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterator, List, Literal, Optional, Tuple

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_serializer, field_validator, model_validator

# Canonical label order; the dominant-emotion tie-break depends on it.
EMOTION_LABELS: Tuple[str, ...] = (
    "neutral",
    "happy",
    "sad",
    "angry",
    "fearful",
    "disgusted",
    "surprised",
)

CameraState = Literal["IDLE", "STARTING", "ACTIVE"]
ClassifierFlag = Literal["NO_FACE", "DETECTION_FAILED", "MODEL_UNAVAILABLE"]
SortOrder = Literal["ascending", "descending"]


class ExpressionVector(BaseModel):
    """Per-emotion scores in [0, 1]; not required to sum to 1."""
    model_config = ConfigDict(frozen=True)

    neutral: float = Field(0.0, ge=0.0, le=1.0)
    happy: float = Field(0.0, ge=0.0, le=1.0)
    sad: float = Field(0.0, ge=0.0, le=1.0)
    angry: float = Field(0.0, ge=0.0, le=1.0)
    fearful: float = Field(0.0, ge=0.0, le=1.0)
    disgusted: float = Field(0.0, ge=0.0, le=1.0)
    surprised: float = Field(0.0, ge=0.0, le=1.0)

    @classmethod
    def from_scores(cls, scores: Dict[str, float]) -> "ExpressionVector":
        return cls(**{k: float(scores.get(k, 0.0)) for k in EMOTION_LABELS})

    def score(self, label: str) -> float:
        return float(getattr(self, label))

    def items(self) -> Iterator[Tuple[str, float]]:
        """Yield (label, score) in canonical order."""
        for label in EMOTION_LABELS:
            yield label, self.score(label)

    def as_dict(self) -> Dict[str, float]:
        return dict(self.items())


class DetectionResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    vector: ExpressionVector
    dominant_emotion: str
    confidence: float = Field(..., ge=0.0, le=1.0)


class Classification(BaseModel):
    """Outcome of one classifier call: a vector, or a flag explaining its absence."""
    model_config = ConfigDict(frozen=True)

    vector: Optional[ExpressionVector] = None
    flag: Optional[ClassifierFlag] = None
    error: Optional[str] = None


class PriceWindow(BaseModel):
    model_config = ConfigDict(frozen=True)

    min: int = Field(..., ge=0)
    max: int = Field(..., ge=0)

    @model_validator(mode="after")
    def _check_bounds(self) -> "PriceWindow":
        if self.min > self.max:
            raise ValueError(f"min ({self.min}) must not exceed max ({self.max})")
        return self

    def contains(self, price: Decimal) -> bool:
        return self.min <= price <= self.max


class RecommendationFilters(BaseModel):
    category: Optional[str] = None
    min_price: Optional[int] = Field(None, ge=0)
    max_price: Optional[int] = Field(None, ge=0)
    sort_order: SortOrder = "ascending"

    @field_validator("category")
    @classmethod
    def _blank_category_means_all(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return None if (not v or v.lower() == "all") else v


class Product(BaseModel):
    """Catalog record. Wire names follow the catalog's column names."""
    model_config = ConfigDict(frozen=True)

    id: str
    display_name: str = Field(..., validation_alias=AliasChoices("productDisplayName", "display_name"))
    price: Decimal
    image_ref: str = Field("", validation_alias=AliasChoices("filename", "image_ref"))
    category: str = Field(..., validation_alias=AliasChoices("masterCategory", "category"))
    colour: Optional[str] = Field(None, validation_alias=AliasChoices("baseColour", "colour"))
    article_type: Optional[str] = Field(None, validation_alias=AliasChoices("articleType", "article_type"))
    link: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def _id_to_str(cls, v):
        return str(v)

    @field_validator("price", mode="before")
    @classmethod
    def _parse_price(cls, v) -> Decimal:
        # Price travels as a string; convert it exactly once, here.
        try:
            d = Decimal(str(v).strip())
        except (InvalidOperation, TypeError) as e:
            raise ValueError(f"invalid price: {v!r}") from e
        if not d.is_finite() or d < 0:
            raise ValueError(f"invalid price: {v!r}")
        return d

    @field_validator("colour", "article_type", "link", mode="before")
    @classmethod
    def _nan_to_none(cls, v):
        # pandas hands missing cells over as NaN
        if isinstance(v, float) and v != v:
            return None
        return v

    @field_validator("image_ref", mode="before")
    @classmethod
    def _image_ref_str(cls, v):
        if v is None or (isinstance(v, float) and v != v):
            return ""
        return str(v)

    @field_serializer("price")
    def _price_as_str(self, v: Decimal) -> str:
        return str(v)


class Recommendation(BaseModel):
    products: List[Product] = Field(default_factory=list)
    price_range: Optional[PriceWindow] = None
    message: str = ""
    loading: bool = False


class AssistantStatus(BaseModel):
    camera_state: CameraState
    camera_disabled: bool = False
    model_ready: bool
    detection: Optional[DetectionResult] = None
    error: Optional[str] = None
