from pydantic import BaseModel, Field, validator
from typing import Optional, List
from datetime import datetime
from decimal import Decimal

from models.product import ProductStatus

class ProductBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=200, description="Product title")
    description: str = Field(..., min_length=1, max_length=2000, description="Product description")
    price_amount: Decimal = Field(..., gt=0, description="Price must be greater than 0")
    price_currency: Optional[str] = Field(None, min_length=3, max_length=3, description="ISO currency code")
    category: str = Field(..., min_length=1, max_length=100)
    condition: str = Field(..., min_length=1, max_length=100)
    images: List[str] = Field(default=[], description="Ordered list of image URLs")
    location_city: Optional[str] = Field(None, max_length=100)
    location_country: Optional[str] = Field(None, max_length=100)

    @validator('title')
    def validate_title(cls, v):
        if not v or not v.strip():
            raise ValueError('Product title cannot be empty')
        return v.strip()

    @validator('price_currency')
    def validate_currency(cls, v):
        return v.upper() if v else v

class ProductCreate(ProductBase):
    pass

class ProductUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    price_amount: Optional[Decimal] = Field(None, gt=0)
    category: Optional[str] = Field(None, max_length=100)
    condition: Optional[str] = Field(None, max_length=100)
    images: Optional[List[str]] = None
    status: Optional[ProductStatus] = None
    # Optimistic concurrency: reject the edit if the product moved on
    expected_version: Optional[int] = Field(None, ge=1)

    @validator('title')
    def validate_title(cls, v):
        if v is not None and not v.strip():
            raise ValueError('Product title cannot be empty')
        return v.strip() if v else v

class ProductSummary(BaseModel):
    id: str
    title: str
    images: List[str] = []
    price_amount: Decimal
    price_currency: str
    status: ProductStatus

    class Config:
        from_attributes = True

class ProductResponse(ProductSummary):
    seller_id: str
    description: str
    category: str
    condition: str
    location_city: Optional[str] = None
    location_country: Optional[str] = None
    saves: int = 0
    is_active: bool
    version: int
    created_at: datetime
    updated_at: datetime
