"""Client-side catalog scoping and image-deck helpers."""

from __future__ import annotations

import re
from typing import Dict, List, Optional, Sequence

from storesync.models.catalog_schema import Brand, CatalogRow, ClientConfig

THEME_DEFAULTS = {
    "accent": "#22c55e",
    "text": "#e7f3ea",
    "bg1": "#0b1316",
    "bg2": "#0f1a1f",
}


def filter_products(products: Sequence[CatalogRow], client: ClientConfig) -> List[CatalogRow]:
    """Scope the catalog to one storefront.

    A non-empty allowlist wins outright; otherwise prefixes apply; with
    neither, every row passes. Inactive rows are always dropped.
    """
    allow = {str(s).strip() for s in (client.sku_allowlist or []) if str(s).strip()}
    prefixes = [p for p in (client.sku_prefixes or []) if p]
    out = list(products)
    if allow:
        out = [p for p in out if p.sku in allow]
    elif prefixes:
        out = [p for p in out if p.sku and any(p.sku.startswith(pre) for pre in prefixes)]
    return [p for p in out if p.active]


def build_image_deck(product: CatalogRow) -> List[str]:
    """Ordered, de-duplicated image URLs: primary images first, then variants."""
    deck: List[str] = []
    for url in [i.url for i in product.images] + [v.url for v in product.variants]:
        if url and url not in deck:
            deck.append(url)
    return deck


def start_index(deck: Sequence[str], url: Optional[str]) -> int:
    try:
        return deck.index(url)
    except ValueError:
        return 0


def theme_vars(brand: Brand) -> Dict[str, str]:
    accent = brand.accent or brand.primary or THEME_DEFAULTS["accent"]
    return {
        "--accent": accent,
        "--primary": brand.primary or accent,
        "--text": brand.text or THEME_DEFAULTS["text"],
        "--bg1": brand.bg1 or THEME_DEFAULTS["bg1"],
        "--bg2": brand.bg2 or THEME_DEFAULTS["bg2"],
    }


def with_base(base_path: str, p: Optional[str]) -> str:
    """Prefix site-relative asset paths with the deployment base path."""
    if not p:
        return ""
    if re.match(r"^https?://", p, re.IGNORECASE) or p.startswith("data:"):
        return p
    base = (base_path or "").rstrip("/")
    if base and p.startswith(base + "/"):
        return p
    if p.startswith("/"):
        return base + p
    if p.startswith("./"):
        p = p[2:]
    return f"{base}/{p}"


def money(n) -> str:
    return f"${float(n or 0):.2f}"


def readable(slug: str) -> str:
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), re.sub(r"[-_]", " ", slug))
