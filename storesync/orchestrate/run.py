"""Orchestrator: Notion rows -> Stripe links -> products.json.

Everything runs sequentially. One bad row is logged and never aborts the run;
only configuration problems and failures of the Notion query itself propagate.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

import httpx
from notion_client.errors import HTTPResponseError, RequestTimeoutError

from storesync.catalog.images import cache_images as download_images
from storesync.catalog.writer import write_catalog
from storesync.errors import StripeSyncError
from storesync.models.catalog_schema import CatalogRow, ImageRef, VariantRef
from storesync.models.dto import ProductDTO
from storesync.notion.io import iter_active_pages, write_back_link
from storesync.notion.mapping import page_to_product, plain_value
from storesync.notion.schema import PropertySchema
from storesync.settings import Settings

logger = logging.getLogger(__name__)


@dataclass
class SyncReport:
    rows: List[CatalogRow] = field(default_factory=list)
    skipped: List[Tuple[str, str]] = field(default_factory=list)
    stripe_errors: Dict[str, str] = field(default_factory=dict)
    writeback_errors: Dict[str, str] = field(default_factory=dict)
    path: Optional[str] = None

    @property
    def linked(self) -> int:
        return sum(1 for r in self.rows if r.link)


def _catalog_row(
    product: ProductDTO,
    link: Optional[str],
    cfg: Settings,
    cached: Optional[Dict[str, str]] = None,
) -> CatalogRow:
    # cached is None when caching is off; otherwise only downloaded urls survive
    if cached is None:
        images = [ImageRef(url=u, alt=product.name) for u in product.image_urls]
        variants = [VariantRef(label=label, url=u) for label, u in product.variants]
    else:
        images = [ImageRef(url=cached[u], alt=product.name) for u in product.image_urls if u in cached]
        variants = [VariantRef(label=label, url=cached[u]) for label, u in product.variants if u in cached]
    return CatalogRow(
        id=product.page_id,
        name=product.name,
        sku=product.sku,
        price=product.price,
        currency=cfg.CURRENCY,
        link=link,
        mode=cfg.STRIPE_MODE,
        active=product.active,
        images=images,
        variants=variants,
    )


def sync_catalog(
    cfg: Settings,
    schema: PropertySchema,
    notion,
    upserter,
    *,
    cache_images: bool = False,
    write_back: bool = True,
    image_session=None,
) -> SyncReport:
    """Run one full catalog sync and overwrite the catalog file."""
    logger.info("Sync start | mode=%s currency=%s link_policy=%s", cfg.STRIPE_MODE, cfg.CURRENCY, cfg.LINK_POLICY)
    report = SyncReport()
    target_prop = schema.link_property(cfg.STRIPE_MODE)

    for page in iter_active_pages(notion, cfg.NOTION_DB_ID, schema):
        product, reason = page_to_product(page, schema)
        if product is None:
            logger.info("SKIP (%s) | page=%s", reason, page.get("id"))
            report.skipped.append((page.get("id", ""), reason))
            continue

        link: Optional[str] = None
        try:
            link = upserter.ensure_link(product.name[:80], product.sku, product.price, cfg.CURRENCY)
        except StripeSyncError as e:
            logger.error("Stripe error for %s: %s", product.sku, e.reason)
            report.stripe_errors[product.sku] = e.reason

        if link and write_back and link != product.existing_link(cfg.STRIPE_MODE):
            try:
                write_back_link(notion, product.page_id, target_prop, link)
            except (HTTPResponseError, RequestTimeoutError, httpx.HTTPError) as e:
                # write-back is best effort; the catalog row is still emitted
                logger.warning("Notion update failed for %s: %s", product.sku, e)
                report.writeback_errors[product.sku] = str(e)

        cached = None
        if cache_images:
            cached = download_images(
                product.sku,
                product.image_urls + [u for _, u in product.variants],
                base_dir=cfg.IMAGE_CACHE_DIR,
                session=image_session,
            )
        report.rows.append(_catalog_row(product, link, cfg, cached))

    report.path = write_catalog(report.rows, cfg.CATALOG_PATH)
    logger.info(
        "Sync done | rows=%d linked=%d skipped=%d stripe_errors=%d",
        len(report.rows), report.linked, len(report.skipped), len(report.stripe_errors),
    )
    return report


def check_status(notion, database_id: str, schema: PropertySchema, sample: int = 5) -> dict:
    """Count active rows that have no payment link for each Stripe mode."""
    missing: Dict[str, List[str]] = {"test": [], "live": []}
    total = 0
    for page in iter_active_pages(notion, database_id, schema):
        total += 1
        props = page.get("properties") or {}
        label = plain_value(schema.pick(props, "name")) or page.get("id")
        if not plain_value(props.get(schema.url_test)):
            missing["test"].append(label)
        if not plain_value(props.get(schema.url_live)):
            missing["live"].append(label)
    return {
        "total_active": total,
        "missing_test_count": len(missing["test"]),
        "missing_live_count": len(missing["live"]),
        "sample_missing_test": missing["test"][:sample],
        "sample_missing_live": missing["live"][:sample],
    }


def diag_links(upserter, rows: Iterable[CatalogRow]) -> List[dict]:
    """Check, per catalog row, whether Stripe holds a price under the SKU's lookup key."""
    results = []
    for row in rows:
        if not row.sku:
            continue
        res = upserter.find_price(row.sku)
        logger.debug("diag %s -> %s", row.sku, res)
        results.append(res)
    return results
