"""
Database Schemas

MongoDB collection schemas as Pydantic models. Attribute names are snake_case;
stored documents and API payloads use the camelCase aliases.
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CollectionSchema(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True)


# Collection: products
class Product(CollectionSchema):
    name: str = Field(..., description="Product name")
    price: float = Field(..., description="Unit price")
    stock: float = Field(0, description="Units in stock")
    image_base64: str = Field(..., alias="imageBase64", description="Base64 encoded image")
    image_mime_type: str = Field("image/jpeg", alias="imageMimeType")
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")


# Collection: users (provisioned outside this service)
class User(CollectionSchema):
    username: str = Field(..., description="Unique login name")
    password: str = Field(..., description="Plain text password")
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")


# Collection: searchlogs (no routes read or write it yet)
class SearchLog(CollectionSchema):
    client: Optional[str] = None
    query: str
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")
