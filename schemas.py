"""
Database Schemas for plantNet

Each Pydantic model represents a collection in MongoDB.
Collection names are plural lowercase (e.g., Plant -> "plants").
"""
from enum import Enum
from typing import Optional

from pydantic import BaseModel, EmailStr, Field


class Role(str, Enum):
    CUSTOMER = "customer"
    SELLER = "seller"
    ADMIN = "admin"


class UserStatus(str, Enum):
    REQUESTED = "Requested"
    VERIFIED = "Verified"


class OrderStatus(str, Enum):
    PENDING = "Pending"
    IN_PROGRESS = "In Progress"
    DELIVERED = "Delivered"


class User(BaseModel):
    name: Optional[str] = None
    email: EmailStr
    image: Optional[str] = Field(None, description="Photo URL")
    role: Role = Role.CUSTOMER
    status: Optional[UserStatus] = None


class Person(BaseModel):
    """Denormalized snapshot of a user embedded in plants and orders."""
    name: Optional[str] = None
    email: EmailStr
    image: Optional[str] = None


class Plant(BaseModel):
    name: str
    category: str
    description: Optional[str] = None
    price: float = Field(..., ge=0)
    quantity: int = Field(..., ge=0, description="Units in stock")
    image: Optional[str] = None
    seller: Person


class Order(BaseModel):
    plantId: str = Field(..., description="Plant id kept as a string, converted at query time")
    customer: Person
    seller: EmailStr
    quantity: int = Field(..., ge=1)
    price: float = Field(..., ge=0, description="Line total paid for the order")
    address: str
    status: OrderStatus = OrderStatus.PENDING
    transactionId: Optional[str] = None

# The Flames database viewer will automatically read these from /schema
