"""StoredDocument: one row per document of the shared tenant document store."""

from sqlalchemy import Text
from sqlmodel import Column, Field, SQLModel

from salon_landing.models.base import TimestampMixin


class StoredDocument(TimestampMixin, SQLModel, table=True):
    __tablename__ = "documents"

    # Slash-separated path, e.g. "tenants/bellaspa/staff/Xk2...". Even number of segments.
    path: str = Field(primary_key=True, max_length=1024)
    # Collection path the document lives in, e.g. "tenants/bellaspa/staff"
    collection: str = Field(max_length=1024, nullable=False, index=True)
    # JSON object
    data: str = Field(default="{}", sa_column=Column(Text, nullable=False, server_default="{}"))
