"""Exception types shared across the sync and render paths."""

from __future__ import annotations


class StoresyncError(RuntimeError):
    """Base class for errors raised by storesync."""


class ConfigError(StoresyncError):
    """Missing or invalid configuration; fatal before any network call."""


class CatalogError(StoresyncError):
    """A catalog or client config file could not be read."""


class StripeSyncError(StoresyncError):
    """A Stripe call failed for one catalog row."""

    def __init__(self, sku: str, message: str):
        super().__init__(f"{sku}: {message}")
        self.sku = sku
        self.reason = message
