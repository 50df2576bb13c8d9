"""
Shopping assistant: the user-facing entry points.

Wires the capture session, the emotion aggregator and the catalog query
together and holds the state a UI reads (detection, recommendations,
price range, message, loading flag, error).
"""
from __future__ import annotations
import logging
from typing import List, Optional

from core.aggregator import EmotionAggregator
from core.capture import CaptureSession
from core.catalog import CatalogQuery, CatalogService, make_catalog
from core.classifier import ExpressionClassifier
from core.config import Settings
from core.errors import CameraAccessDenied, ModelUnavailable
from core.models import (AssistantStatus, DetectionResult, PriceWindow, Product,
                         Recommendation, RecommendationFilters)
from core.policy import derive

logger = logging.getLogger(__name__)


class ShoppingAssistant:
    def __init__(self, settings: Optional[Settings] = None,
                 catalog: Optional[CatalogService] = None,
                 classifier: Optional[ExpressionClassifier] = None):
        self.s = settings or Settings()
        self.classifier = classifier or ExpressionClassifier(self.s)
        self.aggregator = EmotionAggregator(self.classifier, self.s)
        self.session = CaptureSession(self.s, self.aggregator.tick)
        self.catalog = CatalogQuery(
            catalog if catalog is not None else make_catalog(self.s),
            raw_limit=self.s.CATALOG_LIMIT,
            display_limit=self.s.DISPLAY_LIMIT,
        )

        self.camera_disabled = False
        self._camera_error: Optional[str] = None
        self._recommendations: List[Product] = []
        self.price_range: Optional[PriceWindow] = None
        self.message = ""
        self.loading = False

    # ---- camera ----
    async def start_camera(self) -> AssistantStatus:
        """Load models if needed and start the camera; denial disables start for the session."""
        if self.camera_disabled:
            return self.status()

        if not await self.classifier.load():
            self._camera_error = ModelUnavailable(self.s.model_sources).message
            return self.status()

        try:
            await self.session.start()
            self._camera_error = None
        except CameraAccessDenied as e:
            self.camera_disabled = True
            self._camera_error = e.message
            logger.warning(f"[assistant] camera start refused: {e.details}")
        return self.status()

    async def stop_camera(self) -> AssistantStatus:
        self.aggregator.invalidate()
        await self.session.stop()
        return self.status()

    async def aclose(self) -> None:
        """Teardown for shutdown paths; never leaves the camera open."""
        await self.stop_camera()

    @property
    def detection(self) -> Optional[DetectionResult]:
        return self.aggregator.result

    def status(self) -> AssistantStatus:
        return AssistantStatus(
            camera_state=self.session.state,
            camera_disabled=self.camera_disabled,
            model_ready=self.classifier.ready,
            detection=self.aggregator.result,
            error=self._camera_error or self.aggregator.error,
        )

    # ---- recommendations ----
    @property
    def recommendations(self) -> List[Product]:
        return list(self._recommendations)

    def recommendation(self) -> Recommendation:
        return Recommendation(
            products=self.recommendations,
            price_range=self.price_range,
            message=self.message,
            loading=self.loading,
        )

    async def analyze_and_recommend(self, target_price: float,
                                    category: Optional[str] = None) -> Recommendation:
        """Derive a price window from the current detection and fetch products inside it."""
        detection = self.aggregator.result
        emotion = detection.dominant_emotion if detection else None
        window, message = derive(emotion, target_price, currency=self.s.CURRENCY_SYMBOL)
        logger.info(f"[assistant] analyze emotion={emotion} target={target_price} window={window.min}-{window.max}")

        self.price_range = window
        self.message = message
        filters = RecommendationFilters(
            category=category,
            min_price=window.min,
            max_price=window.max,
            sort_order="ascending",
        )
        await self._run_query(filters, window)
        return self.recommendation()

    async def search_by_category(self, category: Optional[str]) -> Recommendation:
        """Plain category listing; no price window is applied."""
        logger.info(f"[assistant] category search category={category!r}")
        await self._run_query(RecommendationFilters(category=category), None)
        return self.recommendation()

    async def get_product(self, product_id: str) -> Optional[Product]:
        return await self.catalog.get_by_id(product_id)

    async def _run_query(self, filters: RecommendationFilters, window: Optional[PriceWindow]) -> None:
        self.loading = True
        # A failed query never leaves the previous listing on display
        self._recommendations = []
        try:
            self._recommendations = await self.catalog.query(filters, window)
        finally:
            self.loading = False
