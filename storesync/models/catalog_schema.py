from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Literal, Optional, Union


class ImageRef(BaseModel):
    url: str
    alt: Optional[str] = None


class VariantRef(BaseModel):
    label: Optional[str] = None
    url: str


class CatalogRow(BaseModel):
    id: str
    name: str
    sku: str
    price: Union[int, float]
    currency: str = "usd"
    link: Optional[str] = None
    mode: Literal["live", "test"] = "live"
    active: bool = True
    images: List[ImageRef] = Field(default_factory=list)
    variants: List[VariantRef] = Field(default_factory=list)

    @field_validator("images", mode="before")
    @classmethod
    def _coerce_images(cls, v):
        # older catalogs stored bare cached paths instead of {url, alt}
        if v is None:
            return []
        return [{"url": i} if isinstance(i, str) else i for i in v]

    @field_validator("variants", mode="before")
    @classmethod
    def _coerce_variants(cls, v):
        return v or []


class Brand(BaseModel):
    model_config = ConfigDict(extra="ignore")

    logo: Optional[str] = None
    hero: Optional[str] = None
    accent: Optional[str] = None
    primary: Optional[str] = None
    text: Optional[str] = None
    bg1: Optional[str] = None
    bg2: Optional[str] = None


class ClientConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = None
    slug: Optional[str] = None
    brand: Brand = Field(default_factory=Brand)
    sku_allowlist: Optional[List[str]] = None
    sku_prefixes: Optional[List[str]] = None
