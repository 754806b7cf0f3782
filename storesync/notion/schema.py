"""Notion column names used by the sync, loaded from a JSON file.

Each scalar field accepts either one property name or a list of aliases; the
first alias present on a page wins. Image and variant fields are lists of
`files` properties read in order.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from storesync.errors import ConfigError

logger = logging.getLogger(__name__)

Names = Union[str, List[str]]


class PropertySchema(BaseModel):
    name: Names = "Product Name"
    active: str = "Active"
    price: Names = "Price"
    sku: Names = "Product SKU"
    url_live: str = "PaymentURL"
    url_test: str = "Stripe Link (Test)"
    image_fields: List[str] = Field(default_factory=lambda: ["Image"])
    variant_fields: List[str] = Field(default_factory=lambda: ["Variant 1", "Variant 2"])

    def aliases(self, field: str) -> List[str]:
        value = getattr(self, field)
        if isinstance(value, str):
            return [value]
        return list(value)

    def pick(self, properties: dict, field: str) -> Optional[dict]:
        """Return the first property envelope matching one of the field's aliases."""
        for name in self.aliases(field):
            if name in properties:
                return properties[name]
        return None

    def link_property(self, mode: str) -> str:
        return self.url_test if mode == "test" else self.url_live


def load_schema(path: Optional[Union[str, Path]] = None) -> PropertySchema:
    if path is None:
        return PropertySchema()
    p = Path(path)
    if not p.exists():
        raise ConfigError(f"Notion property schema not found: {p}")
    try:
        with open(p, "r", encoding="utf8") as fh:
            data = json.load(fh)
        schema = PropertySchema.model_validate(data)
    except (json.JSONDecodeError, ValidationError) as e:
        raise ConfigError(f"Invalid Notion property schema {p}: {e}") from e
    logger.debug("Loaded Notion property schema from %s", p)
    return schema
