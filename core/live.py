# core/live.py
"""
Live camera window.

Runs the assistant's capture + sampling pipeline on the asyncio loop and
shows the latest frame with the current detection drawn on it.
Press 'q' to quit; 'r' asks for recommendations at the configured price.
"""

from __future__ import annotations

import asyncio
import json
from typing import Optional

import cv2

from core.assistant import ShoppingAssistant
from core.config import Settings
from core.visual import draw_overlays

WINDOW_TITLE = "Shopping Assistant (q to quit, r to recommend)"


async def _live_loop(assistant: ShoppingAssistant, target_price: float,
                     category: Optional[str]) -> None:
    status = await assistant.start_camera()
    if status.camera_state != "ACTIVE":
        raise RuntimeError(status.error or "Camera did not start")

    period = 1.0 / max(1.0, float(assistant.s.TARGET_FPS))
    try:
        while assistant.session.active:
            frame = assistant.session.latest_frame
            if frame is not None:
                annotated = draw_overlays(frame, assistant.detection, assistant.status().error)
                cv2.imshow(WINDOW_TITLE, annotated)
            key = cv2.waitKey(1) & 0xFF
            if key == ord("q"):
                break
            if key == ord("r"):
                rec = await assistant.analyze_and_recommend(target_price, category)
                print(rec.message)
                print(json.dumps([p.model_dump(mode="json") for p in rec.products], indent=2, ensure_ascii=False))
            await asyncio.sleep(period)
    finally:
        await assistant.aclose()
        cv2.destroyAllWindows()


def run_live_overlay(settings: Settings, target_price: float = 1000,
                     category: Optional[str] = None,
                     assistant: Optional[ShoppingAssistant] = None) -> None:
    """Open the webcam window and block until the user quits."""
    assistant = assistant or ShoppingAssistant(settings)
    asyncio.run(_live_loop(assistant, target_price, category))
