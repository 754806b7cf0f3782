"""Read and write the denormalized products.json catalog."""

from __future__ import annotations

import json
import logging
import os
from typing import Iterable, List, Union

from pydantic import ValidationError

from storesync.errors import CatalogError
from storesync.models.catalog_schema import CatalogRow

logger = logging.getLogger(__name__)


def _as_dict(row: Union[CatalogRow, dict]) -> dict:
    if isinstance(row, CatalogRow):
        return row.model_dump(mode="json")
    return CatalogRow.model_validate(row).model_dump(mode="json")


def write_catalog(rows: Iterable[Union[CatalogRow, dict]], path: str) -> str:
    """Overwrite `path` with the full catalog; there is no append or partial mode."""
    data = [_as_dict(r) for r in rows]
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)
        f.write("\n")
    logger.info("Wrote %d catalog row(s) to %s", len(data), path)
    return path


def read_catalog(path: str) -> List[CatalogRow]:
    if not os.path.exists(path):
        raise CatalogError(f"Catalog file not found: {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise CatalogError(f"Catalog file {path} is not valid JSON: {e}") from e
    if not isinstance(data, list):
        raise CatalogError(f"Catalog file {path} must hold a JSON array")
    try:
        return [CatalogRow.model_validate(r) for r in data]
    except ValidationError as e:
        raise CatalogError(f"Invalid catalog row in {path}: {e}") from e
