"""Decode Notion property envelopes into plain values and catalog products."""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Tuple

from storesync.models.dto import ProductDTO
from storesync.notion.schema import PropertySchema

logger = logging.getLogger(__name__)


def file_urls(prop: Optional[dict]) -> List[str]:
    """URLs of a `files` property: external links or Notion-hosted (time-limited) files."""
    if not prop or prop.get("type") != "files":
        return []
    urls = []
    for f in prop.get("files") or []:
        url = (f.get("external") or {}).get("url") or (f.get("file") or {}).get("url")
        if url:
            urls.append(url)
    return urls


def plain_value(prop: Optional[dict]) -> Any:
    """Return the plain value of a property, or None when absent or of an unknown kind."""
    if not prop:
        return None
    kind = prop.get("type")
    if kind in ("title", "rich_text"):
        return "".join(t.get("plain_text", "") for t in prop.get(kind) or []).strip()
    if kind == "number":
        return prop.get("number")
    if kind == "checkbox":
        return bool(prop.get("checkbox"))
    if kind == "url":
        return prop.get("url") or None
    if kind in ("select", "status"):
        return (prop.get(kind) or {}).get("name")
    if kind == "files":
        return file_urls(prop)
    return None


def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool)


def page_to_product(page: dict, schema: PropertySchema) -> Tuple[Optional[ProductDTO], str]:
    """Map one Notion page to a ProductDTO.

    Returns (product, "") on success or (None, reason) when the row must be
    skipped. Skips never raise.
    """
    props = page.get("properties") or {}
    name = plain_value(schema.pick(props, "name"))
    sku = plain_value(schema.pick(props, "sku"))
    price = plain_value(schema.pick(props, "price"))
    active = plain_value(props.get(schema.active))

    missing = []
    if not name:
        missing.append("name")
    if not sku:
        missing.append("sku")
    if not _is_number(price):
        missing.append("price")
    if missing:
        return None, "missing fields: " + ", ".join(missing)

    images: List[str] = []
    for field in schema.image_fields:
        images.extend(file_urls(props.get(field)))
    variants = []
    for field in schema.variant_fields:
        for url in file_urls(props.get(field)):
            variants.append((field, url))

    product = ProductDTO(
        page_id=page.get("id", ""),
        name=str(name),
        sku=str(sku),
        price=price,
        active=bool(active) if active is not None else True,
        image_urls=images,
        variants=variants,
        link_live=plain_value(props.get(schema.url_live)),
        link_test=plain_value(props.get(schema.url_test)),
    )
    return product, ""
