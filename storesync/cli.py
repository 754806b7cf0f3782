"""Typer CLI for storesync (sync, check-status, diag-links, build-site, serve)."""

from __future__ import annotations

import json

import typer
from rich.console import Console
from rich.markup import escape

from dotenv import load_dotenv
# load .env immediately so subsequent imports (which read settings at import time)
# pick up values from the .env file
load_dotenv()

# Configure top-level logging early so other modules pick it up.
import logging
from storesync.settings import settings

log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
handlers = [logging.StreamHandler()]
if settings.LOG_FILE:
    handlers.append(logging.FileHandler(settings.LOG_FILE))
logging.basicConfig(
    level=log_level,
    format="%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
    handlers=handlers,
)

# Quiet noisy third-party loggers while keeping our app logs
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("urllib3").setLevel(logging.WARNING)
logging.getLogger("stripe").setLevel(logging.WARNING)
logging.getLogger("notion_client").setLevel(logging.WARNING)

from storesync.catalog.writer import read_catalog
from storesync.commerce.stripe_io import StripeUpserter
from storesync.errors import ConfigError
from storesync.notion import explore_schema
from storesync.notion.io import get_client
from storesync.notion.schema import load_schema
from storesync.orchestrate import run as orchestrator
from storesync.settings import validate_required
from storesync.storefront.render import build_single, build_site

app = typer.Typer(help="Sync a Notion product database to Stripe and render storefronts.")
console = Console()


def _fail(e: Exception) -> None:
    if isinstance(e, ConfigError):
        console.print(f"[red]Configuration error:[/red] {escape(str(e))}")
    else:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
    raise typer.Exit(code=1)


def _upserter() -> StripeUpserter:
    return StripeUpserter(
        api_key=settings.stripe_key,
        mode=settings.STRIPE_MODE,
        currency=settings.CURRENCY,
        link_policy=settings.LINK_POLICY,
        api_version=settings.STRIPE_API_VERSION,
    )


@app.command()
def sync(
    cache_images: bool = typer.Option(False, "--cache-images", help="Download product images into IMAGE_CACHE_DIR."),
    write_back: bool = typer.Option(True, "--write-back/--no-write-back", help="Store payment links on the Notion rows."),
):
    """Pull active Notion rows, ensure Stripe links, write products.json."""
    try:
        validate_required()
        schema = load_schema(settings.schema_path)
        console.print(f"\\[sync] Mode={settings.STRIPE_MODE}  Currency={settings.CURRENCY}")
        report = orchestrator.sync_catalog(
            settings,
            schema,
            get_client(settings.NOTION_TOKEN),
            _upserter(),
            cache_images=cache_images,
            write_back=write_back,
        )
    except Exception as e:
        _fail(e)
    console.print(f"Done. {len(report.rows)} product(s) processed. Wrote {report.path}")
    if report.skipped:
        console.print(f"[yellow]Skipped {len(report.skipped)} row(s) with missing fields.[/yellow]")
    if report.stripe_errors:
        console.print(f"[yellow]{len(report.stripe_errors)} row(s) have no Stripe link:[/yellow] {escape(', '.join(report.stripe_errors))}")


@app.command("check-status")
def check_status():
    """Count active rows missing a test or live payment link."""
    try:
        validate_required(stripe=False)
        schema = load_schema(settings.schema_path)
        summary = orchestrator.check_status(get_client(settings.NOTION_TOKEN), settings.NOTION_DB_ID, schema)
    except Exception as e:
        _fail(e)
    console.print_json(json.dumps(summary))


@app.command("diag-links")
def diag_links():
    """Check which catalog SKUs have an active Stripe price under their lookup key."""
    try:
        validate_required(notion=False)
        rows = read_catalog(settings.CATALOG_PATH)
        results = orchestrator.diag_links(_upserter(), rows)
    except Exception as e:
        _fail(e)
    for res in results:
        console.print_json(json.dumps(res))


@app.command("build-site")
def build_site_cmd(
    out: str = typer.Option("site", help="Output directory."),
    base_path: str = typer.Option("", help="URL prefix the site is served under."),
    client: str = typer.Option(None, help="Single-store client.json (e.g. data/client.json)."),
):
    """Render static storefront pages for every store."""
    try:
        if client:
            written = build_single(client, settings.CATALOG_PATH, out, base_path)
        else:
            written = build_site(settings.STORES_DIR, settings.CATALOG_PATH, out, base_path)
    except Exception as e:
        _fail(e)
    console.print(f"Wrote {len(written)} file(s) under {out}")


@app.command()
def serve(host: str = "127.0.0.1", port: int = 8000):
    """Serve storefronts at request time."""
    import uvicorn

    uvicorn.run("storesync.server:app", host=host, port=port, log_level=settings.LOG_LEVEL.lower())


@app.command("inspect-schema")
def inspect_schema():
    """Dump the Notion database's property types and report unmapped columns."""
    try:
        validate_required(stripe=False)
        dump = explore_schema.dump_db_props(get_client(settings.NOTION_TOKEN), settings.NOTION_DB_ID)
        path = explore_schema.write_dump(dump)
        missing = explore_schema.unmapped_fields(dump, load_schema(settings.schema_path))
    except Exception as e:
        _fail(e)
    console.print(f"Wrote {path}")
    if missing:
        console.print(f"[yellow]No column found for:[/yellow] {', '.join(missing)}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
