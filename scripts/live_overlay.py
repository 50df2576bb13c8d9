"""Run the live camera window.

Usage:
    uvicorn api.main:app --reload  # (separate, for API)
    python scripts/live_overlay.py --price 1000 --category Apparel

Press 'q' to quit the window, 'r' to print recommendations.
"""
import argparse
import logging

from core.config import Settings
from core.live import run_live_overlay

if __name__ == '__main__':
    p = argparse.ArgumentParser()
    p.add_argument("--price", type=float, default=1000, help="Price the user has in mind")
    p.add_argument("--category", default=None, help="Catalog category (default: all)")
    args = p.parse_args()

    logging.basicConfig(level=logging.INFO)
    run_live_overlay(Settings(), target_price=args.price, category=args.category)
