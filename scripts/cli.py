"""
CLI: watch the camera for a few seconds, then recommend -> JSON.
"""
from __future__ import annotations
import argparse, asyncio, json, os

from core.assistant import ShoppingAssistant
from core.config import Settings


async def recommend_from_camera(assistant: ShoppingAssistant, seconds: float,
                                price: float, category: str | None) -> dict:
    status = await assistant.start_camera()
    try:
        if status.camera_state == "ACTIVE":
            await asyncio.sleep(seconds)
        detection = assistant.detection
        rec = await assistant.analyze_and_recommend(price, category)
    finally:
        await assistant.aclose()
    return {
        "status": assistant.status().model_dump(mode="json"),
        "detection": detection.model_dump(mode="json") if detection else None,
        "recommendation": rec.model_dump(mode="json"),
    }


def main():
    p = argparse.ArgumentParser()
    p.add_argument("--price", type=float, required=True, help="Price the user has in mind")
    p.add_argument("--category", default=None, help="Catalog category (default: all)")
    p.add_argument("--seconds", type=float, default=3.0, help="How long to watch the camera")
    p.add_argument("--out", default="output/recommendation.json", help="Path to output JSON")
    args = p.parse_args()

    assistant = ShoppingAssistant(Settings())
    result = asyncio.run(recommend_from_camera(assistant, args.seconds, args.price, args.category))
    print(json.dumps(result, indent=2, ensure_ascii=False))

    # Also write to file
    os.makedirs(os.path.dirname(args.out) or ".", exist_ok=True)
    with open(args.out, "w", encoding="utf-8") as f:
        json.dump(result, f, indent=2, ensure_ascii=False)
    print(f"✅ Recommendation written to {args.out}")

if __name__ == "__main__":
    main()
