"""Locate storefront client configs on disk.

Multi-store layout: <stores_dir>/<slug>/client.json. A single-store setup
keeps one data/client.json next to products.json.
"""

from __future__ import annotations

import json
import logging
import os
from typing import List

from pydantic import ValidationError

from storesync.errors import CatalogError
from storesync.models.catalog_schema import ClientConfig

logger = logging.getLogger(__name__)

CLIENT_FILE = "client.json"


def list_stores(stores_dir: str) -> List[str]:
    if not os.path.isdir(stores_dir):
        return []
    return sorted(
        n for n in os.listdir(stores_dir)
        if os.path.isfile(os.path.join(stores_dir, n, CLIENT_FILE))
    )


def load_client(path: str) -> ClientConfig:
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = json.load(fh)
        return ClientConfig.model_validate(data)
    except FileNotFoundError as e:
        raise CatalogError(f"Client config not found: {path}") from e
    except (json.JSONDecodeError, ValidationError) as e:
        raise CatalogError(f"Invalid client config {path}: {e}") from e


def read_client(stores_dir: str, slug: str) -> ClientConfig:
    if slug not in list_stores(stores_dir):
        raise CatalogError(f"Unknown store: {slug}")
    client = load_client(os.path.join(stores_dir, slug, CLIENT_FILE))
    if not client.slug:
        client.slug = slug
    return client
