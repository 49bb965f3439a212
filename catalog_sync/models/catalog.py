"""
Pydantic models for the catalog snapshot mirrored from the remote sheet.
"""

from datetime import datetime

from pydantic import BaseModel, Field


class Product(BaseModel):
    """A single catalog product, mapped from one row of the items tab."""

    id: str
    image_filename: str = ""
    company: str = ""
    model: str = ""
    price: str | float = ""
    warranty: str = ""
    category: str = ""
    description: str | None = None
    order: int | None = None
    # Column EY, e.g. "Gen.Perfect threading:: Sv.Happy Stitch"
    feature_keys: str | None = None

    def feature_key_list(self) -> list[str]:
        if not self.feature_keys:
            return []
        return [k.strip() for k in self.feature_keys.split("::") if k.strip()]


class FeatureRecord(BaseModel):
    """A feature lookup row: key, display label and an optional media reference."""

    key: str
    label: str = ""
    url: str | None = None


class CatalogMeta(BaseModel):
    """Version marker of the cached snapshot and the time it was written locally."""

    version: str
    last_updated: datetime


class CatalogSnapshot(BaseModel):
    """
    The complete local mirror of the remote catalog at one point in time.

    A snapshot is only ever produced from a single transactional read, so
    `products`, `meta`, `features` and `raw_rows` always belong to the same write.
    """

    products: list[Product]
    meta: CatalogMeta
    features: list[FeatureRecord] = Field(default_factory=list)
    raw_rows: list[list[str]] | None = None

    @property
    def version(self) -> str:
        return self.meta.version
