"""Explore the products database schema and dump its properties for local inspection.

Usage: `storesync inspect-schema` (NOTION_TOKEN and NOTION_DB_ID must be set).
The dump helps when the column names differ from the property schema file.
"""
from __future__ import annotations

import json
import os
import logging

from storesync.notion.schema import PropertySchema

logger = logging.getLogger(__name__)

DUMP_PATH = os.path.join("data", "notion_db_properties.json")


def dump_db_props(client, db_id: str) -> dict:
    meta = client.databases.retrieve(database_id=db_id)
    props = meta.get("properties", {})
    # simplify to property_name -> type
    simple = {k: v.get("type") for k, v in props.items()}
    return {"id": db_id, "properties": simple}


def unmapped_fields(dump: dict, schema: PropertySchema) -> list[str]:
    """Schema fields with no matching column in the dumped database."""
    columns = set(dump.get("properties", {}))
    missing = []
    for field in ("name", "active", "price", "sku", "url_live", "url_test"):
        if not any(alias in columns for alias in schema.aliases(field)):
            missing.append(field)
    for field in schema.image_fields + schema.variant_fields:
        if field not in columns:
            missing.append(field)
    return missing


def write_dump(dump: dict, path: str = DUMP_PATH) -> str:
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "w", encoding="utf8") as fh:
        json.dump(dump, fh, ensure_ascii=False, indent=2)
    logger.info("Wrote %s", path)
    return path
