"""
Product catalog access.

Two backends speak to the external catalog: a local CSV file (pandas) and a
PostgREST/Supabase-style HTTP endpoint (requests). CatalogQuery sits on top of
either one and applies the bounded, filtered, sorted query used for display.
"""
from __future__ import annotations
import asyncio
import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Protocol

import pandas as pd
import requests
from pydantic import ValidationError

from core.config import Settings
from core.errors import CatalogUnavailable
from core.models import PriceWindow, Product, RecommendationFilters, SortOrder

logger = logging.getLogger(__name__)

COLUMNS = ["id", "productDisplayName", "price", "filename", "baseColour",
           "articleType", "masterCategory", "link"]
REQUIRED_COLUMNS = {"id", "productDisplayName", "price", "masterCategory"}


class CatalogService(Protocol):
    async def query(self, category: Optional[str] = None, min_price: Optional[int] = None,
                    max_price: Optional[int] = None, limit: int = 50) -> List[Product]:
        ...

    async def get_by_id(self, product_id: str) -> Optional[Product]:
        ...


def to_products(rows: Iterable[Dict]) -> List[Product]:
    """Validate raw catalog rows; rows that fail validation are dropped."""
    out: List[Product] = []
    for row in rows:
        if not isinstance(row, dict):
            logger.warning(f"[catalog] skipping non-object row: {type(row).__name__}")
            continue
        try:
            out.append(Product.model_validate(row))
        except ValidationError as e:
            logger.warning(f"[catalog] skipping invalid row id={row.get('id')}: {e.errors()[0].get('msg')}")
    return out


class CsvCatalog:
    """Catalog backed by a CSV file with the product dataset's column names."""

    def __init__(self, csv_path: str):
        self.csv_path = csv_path
        self._df: Optional[pd.DataFrame] = None

    def _frame(self) -> pd.DataFrame:
        if self._df is None:
            path = Path(self.csv_path)
            if not path.exists():
                raise CatalogUnavailable(f"catalog file not found: {self.csv_path}")
            try:
                df = pd.read_csv(path, dtype={"id": str, "price": str})
            except (OSError, ValueError, pd.errors.ParserError) as e:
                raise CatalogUnavailable(e) from e
            missing = REQUIRED_COLUMNS - set(df.columns)
            if missing:
                raise CatalogUnavailable(f"catalog file missing columns: {sorted(missing)}")
            logger.info(f"[catalog] loaded {len(df)} products from {self.csv_path}")
            self._df = df
        return self._df

    def _query(self, category, min_price, max_price, limit) -> List[Product]:
        df = self._frame()
        mask = pd.Series(True, index=df.index)
        if category:
            mask &= df["masterCategory"] == category
        if min_price is not None or max_price is not None:
            prices = pd.to_numeric(df["price"], errors="coerce")
            if min_price is not None:
                mask &= prices >= min_price
            if max_price is not None:
                mask &= prices <= max_price
        rows = df[mask].head(limit)
        cols = [c for c in COLUMNS if c in rows.columns]
        return to_products(rows[cols].to_dict("records"))

    def _get(self, product_id: str) -> Optional[Product]:
        df = self._frame()
        rows = df[df["id"] == str(product_id)].head(1)
        products = to_products(rows.to_dict("records"))
        return products[0] if products else None

    async def query(self, category=None, min_price=None, max_price=None, limit=50) -> List[Product]:
        return await asyncio.to_thread(self._query, category, min_price, max_price, limit)

    async def get_by_id(self, product_id: str) -> Optional[Product]:
        return await asyncio.to_thread(self._get, product_id)


class RestCatalog:
    """Catalog table exposed through a PostgREST-compatible endpoint."""

    def __init__(self, base_url: str, table: str, api_key: Optional[str] = None,
                 session: Optional[requests.Session] = None):
        self.url = f"{base_url.rstrip('/')}/rest/v1/{table}"
        self.session = session or requests.Session()
        if api_key:
            self.session.headers.update({"apikey": api_key, "Authorization": f"Bearer {api_key}"})

    def _get_rows(self, params: List[tuple]) -> List[Dict]:
        logger.debug(f"[catalog] GET {self.url} params={params}")
        try:
            resp = self.session.get(self.url, params=params)
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as e:
            raise CatalogUnavailable(e) from e
        if not isinstance(data, list):
            raise CatalogUnavailable(f"unexpected catalog payload: {type(data).__name__}")
        if not all(isinstance(r, dict) for r in data):
            raise CatalogUnavailable("unexpected catalog payload: rows must be objects")
        return data

    def _query(self, category, min_price, max_price, limit) -> List[Product]:
        params: List[tuple] = [("select", ",".join(COLUMNS))]
        if category:
            params.append(("masterCategory", f"eq.{category}"))
        if min_price is not None:
            params.append(("price", f"gte.{min_price}"))
        if max_price is not None:
            params.append(("price", f"lte.{max_price}"))
        params.append(("limit", str(limit)))
        return to_products(self._get_rows(params))

    def _get(self, product_id: str) -> Optional[Product]:
        rows = self._get_rows([("select", "*"), ("id", f"eq.{product_id}"), ("limit", "1")])
        products = to_products(rows)
        return products[0] if products else None

    async def query(self, category=None, min_price=None, max_price=None, limit=50) -> List[Product]:
        return await asyncio.to_thread(self._query, category, min_price, max_price, limit)

    async def get_by_id(self, product_id: str) -> Optional[Product]:
        return await asyncio.to_thread(self._get, product_id)


def make_catalog(settings: Settings) -> CatalogService:
    if settings.CATALOG_BACKEND == "rest":
        if not settings.CATALOG_URL:
            raise ValueError("CATALOG_URL is required when CATALOG_BACKEND=rest")
        return RestCatalog(settings.CATALOG_URL, settings.CATALOG_TABLE, settings.CATALOG_API_KEY)
    return CsvCatalog(settings.CATALOG_CSV_PATH)


def sort_products(products: List[Product], order: SortOrder = "ascending") -> List[Product]:
    return sorted(products, key=lambda p: p.price, reverse=(order == "descending"))


class CatalogQuery:
    """Bounded, filtered and sorted product lookups for display."""

    def __init__(self, service: CatalogService, raw_limit: int = 50, display_limit: int = 12):
        self.service = service
        self.raw_limit = min(int(raw_limit), 50)
        self.display_limit = min(int(display_limit), 12)

    async def query(self, filters: RecommendationFilters,
                    window: Optional[PriceWindow] = None) -> List[Product]:
        """
        Fetch at most raw_limit records, re-check the price window when one was
        given, sort by numeric price and trim to display_limit.
        Catalog failures yield an empty list.
        """
        try:
            products = await self.service.query(
                category=filters.category,
                min_price=filters.min_price,
                max_price=filters.max_price,
                limit=self.raw_limit,
            )
        except CatalogUnavailable as e:
            logger.error(f"[catalog] query failed: {e.message}")
            return []
        except Exception as e:
            err = CatalogUnavailable(e)
            logger.exception(f"[catalog] query failed: {err.message}")
            return []

        products = list(products)[: self.raw_limit]
        if window is not None:
            # Transport may compare prices as text; recheck numerically
            products = [p for p in products if window.contains(p.price)]
        products = sort_products(products, filters.sort_order)
        logger.debug(f"[catalog] category={filters.category} window={window} hits={len(products)}")
        return products[: self.display_limit]

    async def get_by_id(self, product_id: str) -> Optional[Product]:
        try:
            return await self.service.get_by_id(product_id)
        except CatalogUnavailable as e:
            logger.error(f"[catalog] lookup failed id={product_id}: {e.message}")
            return None
        except Exception as e:
            err = CatalogUnavailable(e)
            logger.exception(f"[catalog] lookup failed id={product_id}: {err.message}")
            return None
