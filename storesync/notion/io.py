"""Notion I/O helpers: client bootstrap, paginated queries and link write-back."""

from __future__ import annotations

from typing import Any, Dict, Iterator, Optional
import logging

from notion_client import Client

from storesync.errors import ConfigError
from storesync.notion.schema import PropertySchema

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


def get_client(token: Optional[str]) -> Client:
    if not token:
        raise ConfigError("NOTION_TOKEN not configured in environment")
    return Client(auth=token)


def active_filter(schema: PropertySchema) -> Dict[str, Any]:
    return {"property": schema.active, "checkbox": {"equals": True}}


def iter_active_pages(
    client, database_id: str, schema: PropertySchema, page_size: int = MAX_PAGE_SIZE
) -> Iterator[dict]:
    """Yield every page with Active = true, following Notion's cursor pagination.

    Each call starts a fresh query, so a run can simply iterate again.
    """
    page_size = max(1, min(int(page_size), MAX_PAGE_SIZE))
    cursor: Optional[str] = None
    batch = 0
    while True:
        kwargs: Dict[str, Any] = {
            "database_id": database_id,
            "filter": active_filter(schema),
            "page_size": page_size,
        }
        if cursor:
            kwargs["start_cursor"] = cursor
        resp = client.databases.query(**kwargs)
        batch += 1
        results = resp.get("results", [])
        logger.debug("Notion query batch %d returned %d pages", batch, len(results))
        for page in results:
            yield page
        cursor = resp.get("next_cursor") if resp.get("has_more") else None
        if not cursor:
            break


def write_back_link(client, page_id: str, property_name: str, url: Optional[str]) -> None:
    """Store the payment link URL on the Notion row (url property)."""
    client.pages.update(page_id=page_id, properties={property_name: {"url": url}})
    logger.debug("Wrote %s on page %s", property_name, page_id)
