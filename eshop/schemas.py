from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, PositiveInt, field_validator
from pydantic.alias_generators import to_camel
from pydantic.config import ConfigDict

SortKey = Literal["name", "priceAsc", "priceDesc", "rating"]

MAX_PAGE_SIZE = 100
# largest OFFSET the database driver can bind (signed 64-bit)
MAX_OFFSET = 2 ** 63 - 1


class ShopModel(BaseModel):
    """Snake_case attributes, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class MessageResponse(ShopModel):
    success: bool
    message: str


# -------------------- Categories --------------------
class CategoryCreate(ShopModel):
    name: str = Field(..., min_length=1, max_length=100)
    icon: Optional[str] = None
    color: Optional[str] = None


class CategoryUpdate(ShopModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    icon: Optional[str] = None
    color: Optional[str] = None


class CategoryRead(ShopModel):
    id: int
    name: str
    icon: Optional[str] = None
    color: Optional[str] = None


# -------------------- Products --------------------
class ProductCreate(ShopModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1)
    rich_description: str = ""
    brand: str = ""
    price: Decimal = Field(default=Decimal("0"), ge=0)
    category: int
    count_in_stock: int = Field(..., ge=0, le=255)
    rating: float = Field(default=0, ge=0)
    num_reviews: int = Field(default=0, ge=0)
    is_featured: bool = False


class ProductUpdate(ShopModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    rich_description: Optional[str] = None
    brand: Optional[str] = None
    price: Optional[Decimal] = Field(default=None, ge=0)
    category: Optional[int] = None
    count_in_stock: Optional[int] = Field(default=None, ge=0, le=255)
    rating: Optional[float] = Field(default=None, ge=0)
    num_reviews: Optional[int] = Field(default=None, ge=0)
    is_featured: Optional[bool] = None


class ProductRead(ShopModel):
    id: int
    name: str
    description: str
    rich_description: str
    image: str
    images: List[str] = []
    brand: str
    price: Decimal
    category: Optional[CategoryRead] = None
    count_in_stock: int
    rating: float
    num_reviews: int
    is_featured: bool
    date_created: datetime


class ProductQuery(ShopModel):
    categories: Optional[str] = None
    search_text: Optional[str] = None
    sort: Optional[SortKey] = None
    page_index: List[int] = []

    @field_validator("page_index")
    def page_and_size(cls, v: List[int]):
        if not v:
            return v
        if len(v) != 2:
            raise ValueError("pageIndex must be given twice: page number, then page size")
        page, size = v
        if page < 1 or size < 1:
            raise ValueError("page number and page size must be positive")
        if size > MAX_PAGE_SIZE:
            raise ValueError(f"page size must be at most {MAX_PAGE_SIZE}")
        if size * (page - 1) > MAX_OFFSET:
            raise ValueError("page number is too large")
        return v


class ProductPage(ShopModel):
    count: int
    products: List[ProductRead]


# -------------------- Users --------------------
class UserRegister(ShopModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., min_length=3, max_length=254)
    password: str = Field(..., min_length=1)
    phone: str = ""
    is_admin: bool = False
    street: str = ""
    apartment: str = ""
    zip: str = ""
    city: str = ""
    country: str = ""


class UserUpdate(ShopModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    email: Optional[str] = Field(default=None, min_length=3, max_length=254)
    password: Optional[str] = None
    phone: Optional[str] = None
    is_admin: Optional[bool] = None
    street: Optional[str] = None
    apartment: Optional[str] = None
    zip: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None


class UserRead(ShopModel):
    id: int
    name: str
    email: str
    phone: str
    is_admin: bool
    street: str
    apartment: str
    zip: str
    city: str
    country: str


class UserSummary(ShopModel):
    id: int
    name: str


class LoginRequest(ShopModel):
    email: str
    password: str


class LoginResponse(ShopModel):
    user: str
    token: str


# -------------------- Orders --------------------
class LineItemIn(ShopModel):
    product: PositiveInt
    quantity: PositiveInt

    @field_validator("product", mode="before")
    def product_id(cls, v):
        # storefront carts send the whole product object
        if isinstance(v, dict):
            return v.get("id")
        return v


class OrderCreate(ShopModel):
    order_items: List[LineItemIn] = Field(..., min_length=1)
    shipping_address1: str = Field(..., min_length=1)
    shipping_address2: str = ""
    city: str = Field(..., min_length=1)
    zip: str = Field(..., min_length=1)
    country: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)
    status: str = "Pending"
    user: PositiveInt


class OrderStatusUpdate(ShopModel):
    status: str = Field(..., min_length=1)


class OrderItemRead(ShopModel):
    id: int
    quantity: int
    product: Optional[ProductRead] = None


class OrderRead(ShopModel):
    id: int
    order_items: List[OrderItemRead] = []
    shipping_address1: str
    shipping_address2: str
    city: str
    zip: str
    country: str
    phone: str
    status: str
    total_price: Decimal
    user: Optional[UserSummary] = None
    date_of_order: datetime


class CheckoutSession(ShopModel):
    id: str


class OrderDeleteResponse(MessageResponse):
    deleted_items: int
