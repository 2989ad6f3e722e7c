"""
Database Schemas for Storefront POS

Each stored Pydantic model represents a collection in MongoDB. Collection name is the lowercase of the class name.
Request models validate bodies at the HTTP boundary.
"""

from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class User(BaseModel):
    name: Optional[str] = None
    email: str
    password: str = Field(..., description="bcrypt hash, never the plain password")
    photo: Optional[str] = None
    role: str = Field("user", description="user role: user, admin")


class Product(BaseModel):
    name: Optional[str] = None
    category: Optional[str] = None
    size: Optional[str] = None
    barcode: Optional[str] = None
    price: Optional[str] = Field(None, description="kept as text, no numeric validation")
    photo: str = ""


class TransactionItem(BaseModel):
    product: str = Field(..., description="Product _id, not checked for existence")
    quantity: Optional[Union[int, float]] = None


class Transaction(BaseModel):
    items: List[TransactionItem]


# Request bodies

class Credentials(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class ProductRef(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str = Field(..., alias="_id")


class TransactionItemIn(BaseModel):
    product: ProductRef
    quantity: Optional[Union[int, float]] = None


class TransactionCreate(BaseModel):
    items: Optional[List[TransactionItemIn]] = None
