"""StagedAssetSet: index of media uploaded before a tenant identifier exists."""

import json
import uuid
from datetime import datetime
from enum import StrEnum

from sqlalchemy import Text
from sqlmodel import Column, Field, SQLModel

from salon_landing.models.base import TimestampMixin


class AssetCategory(StrEnum):
    LOGO = "logo"
    SERVICES = "services"
    PRODUCTS = "products"
    STAFF = "staff"
    GALLERY = "gallery"


# services + products make up the catalog
CATALOG_CATEGORIES = (AssetCategory.SERVICES, AssetCategory.PRODUCTS)
LIST_CATEGORIES = (
    AssetCategory.SERVICES,
    AssetCategory.PRODUCTS,
    AssetCategory.STAFF,
    AssetCategory.GALLERY,
)


class StagingStatus(StrEnum):
    PENDING = "pending"
    PROMOTED = "promoted"
    REJECTED = "rejected"


def _json_list_column() -> Column:
    return Column(Text, nullable=False, server_default="[]")


class StagedAssetSet(TimestampMixin, SQLModel, table=True):
    __tablename__ = "staged_asset_sets"

    staging_key: str = Field(primary_key=True, max_length=100)
    intake_request_id: uuid.UUID | None = Field(default=None, nullable=True, index=True)

    logo: str = Field(default="", max_length=2048)
    # JSON arrays of URLs, in upload order
    services: str = Field(default="[]", sa_column=_json_list_column())
    products: str = Field(default="[]", sa_column=_json_list_column())
    staff: str = Field(default="[]", sa_column=_json_list_column())
    gallery: str = Field(default="[]", sa_column=_json_list_column())

    status: StagingStatus = Field(default=StagingStatus.PENDING)

    def urls(self, category: AssetCategory) -> list[str]:
        if category == AssetCategory.LOGO:
            return [self.logo] if self.logo else []
        return json.loads(getattr(self, category.value) or "[]")

    def append(self, category: AssetCategory, url: str) -> None:
        if category == AssetCategory.LOGO:
            # Only one logo; a new upload replaces it
            self.logo = url
            return
        current = self.urls(category)
        current.append(url)
        setattr(self, category.value, json.dumps(current))


# ── Pydantic schemas ─────────────────────────────────────────

class StagedAssetCreate(SQLModel):
    category: AssetCategory
    url: str = Field(min_length=1, max_length=2048)


class StagedAssetSetRead(SQLModel):
    staging_key: str
    intake_request_id: uuid.UUID | None
    logo: str
    services: list[str]
    products: list[str]
    staff: list[str]
    gallery: list[str]
    status: StagingStatus
    created_at: datetime
    updated_at: datetime
