"""Render storefront pages from client.json + products.json with Jinja2."""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple

from jinja2 import Environment, FileSystemLoader, select_autoescape

from storesync.catalog.writer import read_catalog, write_catalog
from storesync.errors import CatalogError
from storesync.models.catalog_schema import CatalogRow, ClientConfig
from storesync.storefront.filtering import (
    build_image_deck,
    filter_products,
    money,
    readable,
    start_index,
    theme_vars,
    with_base,
)
from storesync.storefront.stores import list_stores, load_client, read_client

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent / "templates"
MAX_THUMBS = 6
LOAD_ERROR = "Failed to load catalog. Please refresh."

_env: Optional[Environment] = None


def get_env() -> Environment:
    global _env
    if _env is None:
        _env = Environment(
            loader=FileSystemLoader(TEMPLATE_DIR),
            autoescape=select_autoescape(["html"]),
        )
    return _env


def _card(product: CatalogRow, base_path: str) -> dict:
    deck = [with_base(base_path, u) for u in build_image_deck(product)]
    primary = with_base(base_path, product.images[0].url) if product.images else ""
    thumbs = []
    for v in product.variants[:MAX_THUMBS]:
        if not v.url:
            continue
        url = with_base(base_path, v.url)
        thumbs.append({"url": url, "alt": v.label or product.name, "index": start_index(deck, url)})
    return {
        "name": product.name or product.sku or "Product",
        "sku": product.sku,
        "price": money(product.price),
        "link": product.link,
        "primary": primary,
        "primary_alt": (product.images[0].alt if product.images else None) or product.name,
        "primary_index": start_index(deck, primary),
        "thumbs": thumbs,
        "deck": json.dumps(deck),
    }


def render_store(client: ClientConfig, products: Sequence[CatalogRow], base_path: str = "") -> str:
    visible = filter_products(products, client)
    brand = client.brand
    template = get_env().get_template("store.html")
    return template.render(
        client=client,
        title=client.name or client.slug or "Storefront",
        theme=theme_vars(brand),
        logo=with_base(base_path, brand.logo),
        hero=with_base(base_path, brand.hero),
        cards=[_card(p, base_path) for p in visible],
        year=datetime.now(timezone.utc).year,
    )


def render_error(message: str = LOAD_ERROR, title: str = "Storefront") -> str:
    return get_env().get_template("error.html").render(title=title, message=message)


def render_index(stores: Iterable[Tuple[str, str]], base_path: str = "") -> str:
    entries = [
        {"slug": slug, "name": name or readable(slug), "href": with_base(base_path, f"{slug}/")}
        for slug, name in stores
    ]
    return get_env().get_template("index.html").render(
        stores=entries, year=datetime.now(timezone.utc).year
    )


def _write(path: str, html: str) -> str:
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "w", encoding="utf-8") as fh:
        fh.write(html)
    return path


def build_site(
    stores_dir: str,
    catalog_path: str,
    out_dir: str,
    base_path: str = "",
) -> List[str]:
    """Write <out>/index.html and <out>/<slug>/index.html for every store.

    Each store also gets its filtered products.json. If the catalog cannot be
    read, every store page carries the inline load error instead.
    """
    written: List[str] = []
    try:
        products = read_catalog(catalog_path)
    except CatalogError as e:
        logger.error("Catalog unavailable: %s", e)
        products = None

    listing = []
    for slug in list_stores(stores_dir):
        try:
            client = read_client(stores_dir, slug)
        except CatalogError as e:
            logger.error("Skipping store %s: %s", slug, e)
            continue
        listing.append((slug, client.name))
        page = os.path.join(out_dir, slug, "index.html")
        if products is None:
            written.append(_write(page, render_error(title=client.name or slug)))
            continue
        written.append(_write(page, render_store(client, products, base_path)))
        visible = filter_products(products, client)
        written.append(write_catalog(visible, os.path.join(out_dir, slug, "products.json")))
        logger.info("Rendered store %s with %d product(s)", slug, len(visible))

    written.insert(0, _write(os.path.join(out_dir, "index.html"), render_index(listing, base_path)))
    return written


def build_single(client_path: str, catalog_path: str, out_dir: str, base_path: str = "") -> List[str]:
    """Single-store layout: data/client.json rendered to <out>/index.html."""
    client = load_client(client_path)
    page = os.path.join(out_dir, "index.html")
    try:
        products = read_catalog(catalog_path)
    except CatalogError as e:
        logger.error("Catalog unavailable: %s", e)
        return [_write(page, render_error(title=client.name or "Storefront"))]
    visible = filter_products(products, client)
    return [
        _write(page, render_store(client, products, base_path)),
        write_catalog(visible, os.path.join(out_dir, "products.json")),
    ]
