"""
Business Category Model
Platform-wide categories businesses are listed under (grooming salon, vet clinic...)
"""

import re
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict

from app.models.common import BaseDocument, generate_id


def slugify(name: str) -> str:
    """'Dog Walking & Sitting' -> 'dog-walking-sitting'"""
    cleaned = re.sub(r"[^a-z0-9 ]", "", name.lower())
    return re.sub(r"\s+", "-", cleaned.strip())


class CategoryMetadata(BaseModel):
    tags: list[str] = Field(default_factory=list)
    allow_custom_services: bool = True
    requires_special_license: bool = False


class BusinessCategory(BaseDocument):
    """Business category document model"""
    category_id: str = Field(default_factory=lambda: generate_id("cat"))
    name: str
    slug: str
    description: Optional[str] = None
    icon: str = "BuildingOfficeIcon"
    color: str = "#3B82F6"
    is_active: bool = True
    display_order: int = 0
    metadata: CategoryMetadata = Field(default_factory=CategoryMetadata)
    created_by: str


class BusinessCategoryCreate(BaseModel):
    name: str = Field(min_length=2, max_length=60)
    description: Optional[str] = Field(None, max_length=500)
    icon: Optional[str] = None
    color: Optional[str] = Field(None, pattern=r"^#[0-9A-Fa-f]{6}$")
    is_active: bool = True
    display_order: int = Field(default=0, ge=0)
    metadata: CategoryMetadata = Field(default_factory=CategoryMetadata)

    model_config = ConfigDict(str_strip_whitespace=True)


class BusinessCategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=60)
    description: Optional[str] = Field(None, max_length=500)
    icon: Optional[str] = None
    color: Optional[str] = Field(None, pattern=r"^#[0-9A-Fa-f]{6}$")
    is_active: Optional[bool] = None
    display_order: Optional[int] = Field(None, ge=0)
    metadata: Optional[CategoryMetadata] = None

    model_config = ConfigDict(str_strip_whitespace=True)


class DisplayOrderItem(BaseModel):
    category_id: str
    display_order: int = Field(ge=0)


class DisplayOrderUpdate(BaseModel):
    categories: list[DisplayOrderItem] = Field(min_length=1)


class BusinessCategoryResponse(BaseModel):
    category_id: str
    name: str
    slug: str
    description: Optional[str] = None
    icon: str
    color: str
    is_active: bool
    display_order: int
    metadata: CategoryMetadata
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CategorySummary(BaseModel):
    """Category as embedded in public business listings"""
    category_id: str
    name: str
    slug: str
    description: Optional[str] = None
    icon: str
    color: str
    display_order: int = 0

    model_config = ConfigDict(from_attributes=True)
