"""Request-time storefront server.

Serves the same pages `build-site` writes, reading client.json and
products.json on every request so a fresh sync shows up without a rebuild.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException
from fastapi.responses import HTMLResponse, JSONResponse

from storesync.catalog.writer import read_catalog
from storesync.errors import CatalogError
from storesync.settings import settings
from storesync.storefront.filtering import filter_products
from storesync.storefront.render import render_error, render_index, render_store
from storesync.storefront.stores import list_stores, read_client

logger = logging.getLogger(__name__)

NO_STORE = {"Cache-Control": "no-store"}

app = FastAPI(title="storesync storefronts")


def _client_or_404(slug: str):
    try:
        return read_client(settings.STORES_DIR, slug)
    except CatalogError as e:
        raise HTTPException(status_code=404, detail=str(e))


@app.get("/", response_class=HTMLResponse)
def index():
    stores = []
    for slug in list_stores(settings.STORES_DIR):
        try:
            stores.append((slug, read_client(settings.STORES_DIR, slug).name))
        except CatalogError as e:
            logger.warning("Skipping store %s: %s", slug, e)
    return HTMLResponse(render_index(stores), headers=NO_STORE)


@app.get("/{slug}/", response_class=HTMLResponse)
def storefront(slug: str):
    client = _client_or_404(slug)
    try:
        products = read_catalog(settings.CATALOG_PATH)
    except CatalogError as e:
        logger.error("Catalog unavailable for %s: %s", slug, e)
        return HTMLResponse(render_error(title=client.name or slug), headers=NO_STORE)
    return HTMLResponse(render_store(client, products), headers=NO_STORE)


@app.get("/{slug}/products.json")
def store_products(slug: str):
    client = _client_or_404(slug)
    try:
        products = read_catalog(settings.CATALOG_PATH)
    except CatalogError as e:
        raise HTTPException(status_code=503, detail=str(e))
    rows = [p.model_dump(mode="json") for p in filter_products(products, client)]
    return JSONResponse(rows, headers=NO_STORE)
