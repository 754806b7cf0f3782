from __future__ import annotations

from typing import List, Optional, Tuple


class ProductDTO:
    """One qualifying Notion row, decoded into plain values."""

    def __init__(
        self,
        page_id: str,
        name: str,
        sku: str,
        price: float,
        active: bool = True,
        image_urls: Optional[List[str]] = None,
        variants: Optional[List[Tuple[str, str]]] = None,
        link_live: Optional[str] = None,
        link_test: Optional[str] = None,
    ):
        self.page_id = page_id
        self.name = name
        self.sku = sku
        self.price = price
        self.active = active
        self.image_urls = image_urls or []
        self.variants = variants or []
        self.link_live = link_live
        self.link_test = link_test

    def existing_link(self, mode: str) -> Optional[str]:
        return self.link_test if mode == "test" else self.link_live

    def __repr__(self) -> str:
        return f"ProductDTO(sku={self.sku!r}, name={self.name!r}, price={self.price!r})"
