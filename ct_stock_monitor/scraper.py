"""stocktrack.ca availability client.

Queries the Canadian Tire availability endpoint for one SKU across the
configured stores and turns the JSON answer into a StockSnapshot.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import List, Optional, Sequence
from urllib.parse import urlencode

import requests

from .config import HTTP_TIMEOUT_SECONDS, Config
from .utils import HTTPError, get_http_session, retryable_request

logger = logging.getLogger(__name__)

AVAILABILITY_ENDPOINT = "https://stocktrack.ca/ct/availability.php"
BRAND = "Canadian Tire"


class StockCheckError(Exception):
    """Raised when availability cannot be fetched or decoded."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass
class StoreStock:
    store: str
    quantity: int
    name: Optional[str] = None
    location: Optional[str] = None
    price: Optional[float] = None

    @property
    def label(self) -> str:
        return self.name or self.store

    def summary(self) -> str:
        info = f"{self.label}: {self.quantity} in stock"
        if self.quantity > 0:
            if self.price:
                info += f" at ${self.price:.2f}"
            if self.location:
                info += f" ({self.location})"
        return info


@dataclass
class StockSnapshot:
    sku: str
    stores: List[StoreStock] = field(default_factory=list)
    name: Optional[str] = None
    url: str = ""

    @property
    def display_name(self) -> str:
        return self.name or self.sku

    def in_stock(self) -> List[StoreStock]:
        return [s for s in self.stores if s.quantity > 0]


@retryable_request
def _get(session: requests.Session, url: str, **kwargs) -> requests.Response:
    """Thin wrapper around session.get with retry policy from utils.retryable_request."""
    return session.get(url, **kwargs)


def build_availability_url(stores: Sequence[str], sku: str) -> str:
    # Commas stay literal; the endpoint expects store=0459,0150.
    query = urlencode({"store": ",".join(stores), "sku": sku, "src": "upc"}, safe=",")
    return f"{AVAILABILITY_ENDPOINT}?{query}"


def _parse_quantity(value, store: str) -> int:
    try:
        qty = int(value)
    except (ValueError, TypeError, OverflowError):
        logger.warning("Store %s: unreadable quantity %r, treating as 0", store, value)
        return 0
    if qty < 0:
        logger.warning("Store %s: negative quantity %d, treating as 0", store, qty)
        return 0
    return qty


def _parse_price(value) -> Optional[float]:
    if value is None:
        return None
    try:
        price = float(value)
    except (ValueError, TypeError):
        return None
    return price if math.isfinite(price) else None


def _parse_aisle(item: dict) -> Optional[str]:
    loc = item.get("Location")
    if not isinstance(loc, dict):
        return None
    aisle = loc.get("Aisle")
    return str(aisle) if aisle else None


def build_store_stocks(items: list, stores: Sequence[str]) -> tuple[List[StoreStock], Optional[str]]:
    """Return (store stocks, product name) for a decoded availability array.

    An empty array means every configured store is out of stock.  A
    non-empty array is trusted as-is: one entry per record, without
    checking it against the requested stores.
    """
    if not items:
        return [StoreStock(store=s, quantity=0) for s in stores], None

    first = items[0] if isinstance(items[0], dict) else {}
    product_name = str(first.get("Description") or "") or None

    out: List[StoreStock] = []
    for item in items:
        if not isinstance(item, dict):
            logger.warning("Skipping non-object availability record: %r", item)
            continue
        store = str(item.get("Store") or "")
        out.append(
            StoreStock(
                store=store,
                quantity=_parse_quantity(item.get("Quantity"), store),
                name=f"{BRAND} {store}",
                location=_parse_aisle(item),
                price=_parse_price(item.get("Price")),
            )
        )
    return out, product_name


def check_stock(config: Config, session: Optional[requests.Session] = None) -> StockSnapshot:
    """Fetch availability for config.sku at config.stores.

    Every failure (status, network, decoding) surfaces as StockCheckError.
    """
    url = build_availability_url(config.stores, config.sku)

    close_session = False
    if session is None:
        session = get_http_session()
        close_session = True

    try:
        logger.info("Fetching data from: %s", url)
        try:
            resp = _get(session, url, timeout=HTTP_TIMEOUT_SECONDS)
        except HTTPError as e:
            raise StockCheckError(f"HTTP error! status: {e.status_code}", status_code=e.status_code) from e
        except requests.RequestException as e:
            raise StockCheckError(f"Request to {url} failed: {e}") from e

        try:
            data = resp.json()
        except ValueError as e:
            # requests.JSONDecodeError is also a RequestException
            raise StockCheckError(f"Response from {url} is not valid JSON: {e}") from e
    finally:
        if close_session:
            session.close()

    if not isinstance(data, list):
        raise StockCheckError(f"Expected a JSON array from {url}, got {type(data).__name__}")

    stocks, product_name = build_store_stocks(data, config.stores)
    logger.debug("Parsed %d store records for SKU %s", len(stocks), config.sku)
    return StockSnapshot(sku=config.sku, stores=stocks, name=product_name, url=url)


__all__ = [
    "AVAILABILITY_ENDPOINT",
    "BRAND",
    "StockCheckError",
    "StoreStock",
    "StockSnapshot",
    "build_availability_url",
    "build_store_stocks",
    "check_stock",
]
