"""Stripe helpers: find-or-create Product, Price and Payment Link for a SKU.

Stripe's own object graph is the idempotency ledger. The Price lookup key
(the SKU) is the primary handle; product search is only needed the first time
a SKU is seen or when its price changes.
"""

from __future__ import annotations

import logging
import time
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Callable, Iterable, Optional

import stripe

from storesync.errors import StripeSyncError

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
BACKOFF_SECONDS = 0.6  # linear: attempt * BACKOFF_SECONDS
PACING_SECONDS = 0.12  # spacing between calls to stay under rate limits
LINK_SOURCE = "notion-sync"


def unit_amount(price: float) -> int:
    """Minor units (cents), rounded half up on the decimal form of the price.

    Rounding the decimal string avoids binary float edges, so 19.995 becomes
    2000. A float product like round(19.995 * 100) gives 1999, which means
    prices synced by older tooling at such edges get a new Stripe price once.
    """
    cents = (Decimal(str(price)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return int(cents)


def _get(obj: Any, key: str, default: Any = None) -> Any:
    if obj is None:
        return default
    if hasattr(obj, "get"):
        value = obj.get(key, default)
    else:
        value = getattr(obj, key, default)
    return default if value is None else value


def _id(obj: Any) -> Optional[str]:
    # expandable fields are either an id string or the expanded object
    if obj is None or isinstance(obj, str):
        return obj
    return _get(obj, "id")


def _items(listing: Any) -> Iterable[Any]:
    if hasattr(listing, "auto_paging_iter"):
        return listing.auto_paging_iter()
    return _get(listing, "data", [])


def _line_item_prices(link: Any) -> list:
    items = _get(link, "line_items", [])
    if not isinstance(items, list):
        items = _get(items, "data", [])
    return [_id(_get(item, "price")) for item in items]


def _quote(value: str) -> str:
    return value.replace("\\", "\\\\").replace("'", "\\'")


class StripeUpserter:
    """Sequential, rate-limit aware upserts against one Stripe account/mode."""

    def __init__(
        self,
        api_key: str,
        mode: str = "live",
        currency: str = "usd",
        link_policy: str = "reuse",
        api_version: Optional[str] = None,
        api: Any = stripe,
        sleep: Callable[[float], None] = time.sleep,
        pacing: float = PACING_SECONDS,
        max_retries: int = MAX_RETRIES,
        backoff: float = BACKOFF_SECONDS,
    ):
        self.api_key = api_key
        self.mode = mode
        self.currency = currency.lower()
        self.link_policy = link_policy
        self.api_version = api_version
        self.api = api
        self.sleep = sleep
        self.pacing = pacing
        self.max_retries = max_retries
        self.backoff = backoff

    # ------------------------------------------------------------------
    def _call(self, fn: Callable[..., Any], **params: Any) -> Any:
        """Run one API call with pacing and linear backoff on 429s."""
        params["api_key"] = self.api_key
        if self.api_version:
            params["stripe_version"] = self.api_version
        attempt = 0
        while True:
            if self.pacing:
                self.sleep(self.pacing)
            try:
                return fn(**params)
            except stripe.RateLimitError:
                attempt += 1
                if attempt > self.max_retries:
                    logger.warning("Rate limited; giving up after %d retries", self.max_retries)
                    raise
                wait = attempt * self.backoff
                logger.warning(
                    "429 Too Many Requests (retry %d/%d). Waiting %.1fs before retry.",
                    attempt, self.max_retries, wait,
                )
                self.sleep(wait)

    # ------------------------------------------------------------------
    def find_product(self, sku: str) -> Optional[Any]:
        query = f"active:'true' AND metadata['sku']:'{_quote(sku)}'"
        try:
            found = self._call(self.api.Product.search, query=query, limit=1)
            data = _get(found, "data", [])
            if data:
                return data[0]
        except stripe.StripeError as e:
            logger.debug("Product search failed for %s (%s); falling back to list", sku, e)
        # search is eventually consistent; a fresh product may only show up in list
        listing = self._call(self.api.Product.list, active=True, limit=100)
        for product in _items(listing):
            if _get(_get(product, "metadata", {}), "sku") == sku:
                return product
        return None

    def ensure_product(self, name: str, sku: str) -> Any:
        product = self.find_product(sku)
        if product is not None:
            logger.debug("Reusing product %s for %s", _id(product), sku)
            return product
        product = self._call(
            self.api.Product.create,
            name=str(name)[:80],
            active=True,
            metadata={"sku": sku},
        )
        logger.info("Created product %s for %s", _id(product), sku)
        return product

    def lookup_price(self, sku: str, expand_product: bool = False) -> Optional[Any]:
        params: dict = {"lookup_keys": [sku], "active": True, "limit": 1}
        if expand_product:
            params["expand"] = ["data.product"]
        listing = self._call(self.api.Price.list, **params)
        data = _get(listing, "data", [])
        return data[0] if data else None

    def ensure_price(self, name: str, sku: str, price: float, currency: Optional[str] = None) -> Any:
        """Return an active price for the SKU with this amount, creating one if needed.

        Prices are immutable: a changed amount or currency gets a new price and
        the lookup key moves to it.
        """
        currency = (currency or self.currency).lower()
        amount = unit_amount(price)
        existing = self.lookup_price(sku)
        product_id = _id(_get(existing, "product")) if existing is not None else None
        if (
            existing is not None
            and _get(existing, "unit_amount") == amount
            and _get(existing, "currency") == currency
        ):
            logger.debug("Reusing price %s for %s", _id(existing), sku)
            return existing

        if product_id is None:
            product_id = _id(self.ensure_product(name, sku))
        created = self._call(
            self.api.Price.create,
            product=product_id,
            currency=currency,
            unit_amount=amount,
            lookup_key=sku,
            transfer_lookup_key=True,
            metadata={"sku": sku},
        )
        if existing is not None:
            logger.info(
                "Price changed for %s (%s -> %s %s); created %s",
                sku, _get(existing, "unit_amount"), amount, currency, _id(created),
            )
        else:
            logger.info("Created price %s for %s", _id(created), sku)
        return created

    def find_payment_link(self, price_id: str) -> Optional[Any]:
        """Active link for this price: tagged via metadata, or with it as its only line item."""
        listing = self._call(
            self.api.PaymentLink.list, active=True, limit=100, expand=["data.line_items"]
        )
        for link in _items(listing):
            if _get(_get(link, "metadata", {}), "price_id") == price_id:
                return link
            # links made before price_id was tagged only carry metadata.sku
            if _line_item_prices(link) == [price_id]:
                return link
        return None

    def ensure_payment_link(self, sku: str, price_id: str) -> Any:
        if self.link_policy == "reuse":
            link = self.find_payment_link(price_id)
            if link is not None:
                logger.debug("Reusing payment link %s for %s", _id(link), sku)
                return link
        link = self._call(
            self.api.PaymentLink.create,
            line_items=[{"price": price_id, "quantity": 1}],
            metadata={"sku": sku, "price_id": price_id, "mode": self.mode, "source": LINK_SOURCE},
        )
        logger.info("Created payment link %s for %s", _id(link), sku)
        return link

    # ------------------------------------------------------------------
    def ensure_link(self, name: str, sku: str, price: float, currency: Optional[str] = None) -> str:
        """Find-or-create product, price and payment link; return the link URL.

        Raises StripeSyncError (carrying the SKU) on any Stripe failure.
        """
        try:
            price_obj = self.ensure_price(name, sku, price, currency)
            link = self.ensure_payment_link(sku, _id(price_obj))
        except stripe.StripeError as e:
            raise StripeSyncError(sku, getattr(e, "user_message", None) or str(e)) from e
        url = _get(link, "url")
        if not url:
            raise StripeSyncError(sku, f"payment link {_id(link)} has no url")
        return url

    def find_price(self, sku: str) -> dict:
        """Diagnostic lookup of the active price holding this SKU's lookup key."""
        try:
            price = self.lookup_price(sku, expand_product=True)
        except stripe.RateLimitError:
            return {"sku": sku, "ok": False, "mode": self.mode, "type": "rate_limit",
                    "message": "Gave up after retries"}
        except stripe.StripeError as e:
            return {"sku": sku, "ok": False, "mode": self.mode, "type": type(e).__name__,
                    "message": str(e)}
        return {
            "sku": sku,
            "ok": price is not None,
            "mode": self.mode,
            "price_id": _id(price),
            "product_id": _id(_get(price, "product")),
            "amount": _get(price, "unit_amount"),
            "currency": _get(price, "currency"),
        }
