"""
Database Schemas for the storefront

Each Pydantic model describes the payload for a MongoDB collection.
Collection names: "user", "category", "product", "orderitem", "order".
"""
from typing import List, Optional
from pydantic import BaseModel, Field, EmailStr

# ------------ Users ------------
class UserBase(BaseModel):
    name: str = Field(..., min_length=1, description="Full name")
    email: EmailStr = Field(..., description="Login email, unique")
    phone: Optional[str] = None
    street: Optional[str] = None
    apartment: Optional[str] = None
    zip: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None

class UserRegister(UserBase):
    password: str = Field(..., min_length=1)
    # accepted but ignored: self-service accounts are never admins
    is_admin: bool = False

class UserCreate(UserBase):
    password: str = Field(..., min_length=1)
    is_admin: bool = False

class UserLogin(BaseModel):
    email: EmailStr
    password: str

class LoginResponse(BaseModel):
    user: EmailStr
    token: str

# ------------ Catalog ------------
class CategoryIn(BaseModel):
    name: str = Field(..., min_length=1)
    icon: Optional[str] = None
    color: Optional[str] = None

class ProductIn(BaseModel):
    """Full product representation used for create and full-replace update."""
    name: str = Field(..., min_length=1)
    description: str = ""
    rich_description: str = ""
    image: str = ""
    images: List[str] = []
    brand: str = ""
    price: float = Field(0, ge=0)
    category: str = Field(..., description="Category id")
    count_in_stock: int = Field(..., ge=0, le=255)
    rating: float = 0
    num_reviews: int = Field(0, ge=0)
    is_featured: bool = False

# ------------ Orders ------------
class CartLine(BaseModel):
    product: str = Field(..., description="Product id")
    quantity: int = Field(..., ge=1)

class ShippingInfo(BaseModel):
    shipping_address1: str
    shipping_address2: Optional[str] = None
    city: str
    zip: str
    country: str
    phone: str

class OrderCreate(ShippingInfo):
    order_items: List[CartLine]
    status: str = Field("Pending", min_length=1)
    user: Optional[str] = Field(None, description="User id; defaults to the caller")

class OrderStatusUpdate(BaseModel):
    status: str = Field(..., min_length=1)
