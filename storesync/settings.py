"""Application settings loaded from environment (and .env).

This module provides a small Settings holder backed by environment variables.
Keep this file simple and import `settings` from other modules; tests build a
fresh `Settings()` after patching the environment.
"""
from __future__ import annotations

from dataclasses import dataclass, field
import os
from pathlib import Path

from storesync.errors import ConfigError

# Default Notion property map, editable without touching code.
DEFAULT_SCHEMA_PATH = Path(__file__).parent / "schemas" / "notion_properties.json"

STRIPE_MODES = ("live", "test")
LINK_POLICIES = ("reuse", "fresh")


def _get(name: str, default: str | None = None) -> str | None:
    v = os.getenv(name)
    if v is None or v == "":
        return default
    return v


def _env(name: str, default: str | None = None):
    return field(default_factory=lambda: _get(name, default))


@dataclass
class Settings:
    # Notion
    NOTION_TOKEN: str | None = _env("NOTION_TOKEN")
    NOTION_DB_ID: str | None = _env("NOTION_DB_ID")
    # Optional JSON file overriding the Notion column names
    NOTION_SCHEMA_PATH: str | None = _env("NOTION_SCHEMA_PATH")

    # Stripe
    STRIPE_API_KEY_LIVE: str | None = _env("STRIPE_API_KEY_LIVE")
    STRIPE_API_KEY_TEST: str | None = _env("STRIPE_API_KEY_TEST")
    STRIPE_MODE: str = _env("STRIPE_MODE", "live")
    STRIPE_API_VERSION: str = _env("STRIPE_API_VERSION", "2024-06-20")
    CURRENCY: str = _env("CURRENCY", "usd")
    # reuse: one payment link per price; fresh: new link on every sync run
    LINK_POLICY: str = _env("LINK_POLICY", "reuse")

    # Files
    CATALOG_PATH: str = _env("CATALOG_PATH", os.path.join("data", "products.json"))
    STORES_DIR: str = _env("STORES_DIR", os.path.join("public", "stores"))
    IMAGE_CACHE_DIR: str = _env("IMAGE_CACHE_DIR", os.path.join("assets", "products"))

    # Logging configuration
    # LOG_LEVEL can be DEBUG, INFO, WARNING, ERROR, or CRITICAL
    LOG_LEVEL: str = _env("LOG_LEVEL", "INFO")
    # Optional path to write logs to a file; if unset, logs go to stderr
    LOG_FILE: str | None = _env("LOG_FILE")

    def __post_init__(self) -> None:
        self.STRIPE_MODE = (self.STRIPE_MODE or "live").strip().lower()
        self.CURRENCY = (self.CURRENCY or "usd").strip().lower()
        self.LINK_POLICY = (self.LINK_POLICY or "reuse").strip().lower()

    @property
    def stripe_key_name(self) -> str:
        return "STRIPE_API_KEY_TEST" if self.STRIPE_MODE == "test" else "STRIPE_API_KEY_LIVE"

    @property
    def stripe_key(self) -> str | None:
        if self.STRIPE_MODE == "test":
            return self.STRIPE_API_KEY_TEST
        return self.STRIPE_API_KEY_LIVE

    @property
    def schema_path(self) -> Path:
        if self.NOTION_SCHEMA_PATH:
            return Path(self.NOTION_SCHEMA_PATH)
        return DEFAULT_SCHEMA_PATH


settings = Settings()


def validate_required(cfg: Settings | None = None, *, notion: bool = True, stripe: bool = True) -> None:
    """Validate required secrets and raise a helpful ConfigError if missing.

    Checks happen at runtime so callers can load a .env first. Commands that
    only talk to one of the two APIs pass ``notion=False`` or ``stripe=False``.
    """
    cfg = cfg or settings
    problems = []
    if cfg.STRIPE_MODE not in STRIPE_MODES:
        problems.append(f"STRIPE_MODE must be one of {', '.join(STRIPE_MODES)} (got '{cfg.STRIPE_MODE}')")
    if cfg.LINK_POLICY not in LINK_POLICIES:
        problems.append(f"LINK_POLICY must be one of {', '.join(LINK_POLICIES)} (got '{cfg.LINK_POLICY}')")

    missing = []
    if notion:
        if not cfg.NOTION_TOKEN:
            missing.append("NOTION_TOKEN")
        if not cfg.NOTION_DB_ID:
            missing.append("NOTION_DB_ID")
    if stripe and cfg.STRIPE_MODE in STRIPE_MODES and not cfg.stripe_key:
        missing.append(f"{cfg.stripe_key_name} (Stripe {cfg.STRIPE_MODE} secret key)")

    if missing:
        problems.insert(0, "Missing required environment variables: " + ", ".join(missing))
    if problems:
        msg = "\n".join(problems) + "\nPlease set them in your .env or environment and try again."
        raise ConfigError(msg)
