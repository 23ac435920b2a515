# backend/schemas/product.py
from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import Optional, List
from datetime import datetime
from decimal import Decimal


# Base configuration for ORM compatibility
class ORMBase(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# Image attached to a newly created product
class ProductImageIn(BaseModel):
    location: str = Field(min_length=1)
    is_primary: bool = False


# Schema for creating a new product
class ProductCreate(BaseModel):
    name: str = Field(min_length=1)
    description: str = ""
    price: Decimal = Field(ge=0, max_digits=12, decimal_places=2)
    stock_quantity: int = Field(ge=0)
    images: List[ProductImageIn] = Field(default_factory=list)
    category_ids: List[int] = Field(default_factory=list)

    @field_validator("images")
    @classmethod
    def _one_primary_image(cls, images: List[ProductImageIn]) -> List[ProductImageIn]:
        if images and sum(1 for img in images if img.is_primary) != 1:
            raise ValueError("exactly one image must be marked as primary")
        return images


# Request bodies for managing a product's images and categories
class ProductImagesPayload(BaseModel):
    images: List[ProductImageIn]

class ProductImageIdsPayload(BaseModel):
    image_ids: List[int]

class ProductCategoryIdsPayload(BaseModel):
    category_ids: List[int]


# Commands validated inside the product handlers
class AddProductImagesCommand(BaseModel):
    images: List[ProductImageIn] = Field(min_length=1)

class RemoveProductImagesCommand(BaseModel):
    image_ids: List[int] = Field(min_length=1)

class ProductCategoriesCommand(BaseModel):
    category_ids: List[int] = Field(min_length=1)


# Schema for partial product updates
class ProductEditRequest(BaseModel):
    """Schema for PATCH requests - all fields optional."""
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    stock_quantity: Optional[int] = Field(None, ge=0)


class ProductImageOut(ORMBase):
    id: int
    location: str
    is_primary: bool


class CategoryRef(ORMBase):
    id: int
    name: str


# Schema for returning product details
class ProductOut(ORMBase):
    id: int
    name: str
    description: str
    price: Decimal
    stock_quantity: int
    added_date: datetime
    last_modified: datetime
    images: List[ProductImageOut] = []
    categories: List[CategoryRef] = []


# Paginated product list
class ProductsPage(BaseModel):
    items: List[ProductOut]
    total: int
    page: int
    page_size: int
