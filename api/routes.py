"""
REST endpoints for the camera and recommendations.
"""
from typing import Optional
from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field
import logging

from core.assistant import ShoppingAssistant
from core.config import Settings
from core.models import AssistantStatus, Product, Recommendation
from core.policy import MAX_TARGET_PRICE


router = APIRouter()
settings = Settings()
assistant = ShoppingAssistant(settings)
logger = logging.getLogger(__name__)


class AnalyzeRequest(BaseModel):
    target_price: float = Field(..., ge=0, le=MAX_TARGET_PRICE, allow_inf_nan=False,
                                description="Price the user has in mind")
    category: Optional[str] = Field(None, description="Catalog category; empty or 'all' for every category")


@router.post("/camera/start", response_model=AssistantStatus)
async def camera_start():
    """
    Start the webcam and the sampling loop.

    Returns:
        AssistantStatus: camera state, model readiness and current detection.
    """
    status = await assistant.start_camera()
    if status.camera_state != "ACTIVE":
        if status.camera_disabled:
            raise HTTPException(status_code=403, detail=status.error)
        if not status.model_ready:
            raise HTTPException(status_code=503, detail=status.error)
    return status


@router.post("/camera/stop", response_model=AssistantStatus)
async def camera_stop():
    return await assistant.stop_camera()


@router.get("/camera/status", response_model=AssistantStatus)
async def camera_status():
    return assistant.status()


@router.post("/recommendations/analyze", response_model=Recommendation)
async def analyze(req: AnalyzeRequest):
    """
    Use the current expression to derive a price window and fetch products.

    Args:
        req: target price and optional category.

    Returns:
        Recommendation: products, price range and the rationale message.
    """
    logger.debug(f"[api] /recommendations/analyze target_price={req.target_price} category={req.category}")
    try:
        return await assistant.analyze_and_recommend(req.target_price, req.category)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.get("/recommendations/category/{category}", response_model=Recommendation)
async def by_category(category: str):
    return await assistant.search_by_category(category)


@router.get("/recommendations", response_model=Recommendation)
async def current_recommendations():
    return assistant.recommendation()


@router.get("/products/{product_id}", response_model=Product)
async def product_detail(product_id: str):
    product = await assistant.get_product(product_id)
    if product is None:
        raise HTTPException(status_code=404, detail=f"Product not found: {product_id}")
    return product
