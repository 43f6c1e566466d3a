"""
Database Schemas for the Book Rental service

Each Pydantic model represents a MongoDB collection.
Collection name is lowercase of the class name.
- User -> "user"
- Book -> "book"
- Rental -> "rental"
- Review -> "review"
- Setting -> "setting"
"""

from pydantic import BaseModel, Field, EmailStr
from typing import Optional
from datetime import datetime

class User(BaseModel):
    name: str = Field(..., description="Full name")
    email: Optional[EmailStr] = Field(None, description="Unique email address")
    password: str = Field(..., description="bcrypt hash (legacy rows may hold plaintext until next login)")
    role: str = Field("user", description="Role: user, admin")
    address: Optional[str] = None
    phone: Optional[str] = None

class Book(BaseModel):
    title: str = Field(..., description="Book title")
    author: str = Field(..., description="Author")
    category: Optional[str] = None
    stock: int = Field(1, ge=0, description="Copies available to rent")
    isRented: bool = Field(False, description="True when stock has reached zero")
    avgRating: float = Field(0.0, ge=0, le=5, description="Mean review rating, two decimals")
    ratingCount: int = Field(0, ge=0, description="Number of reviews")

class Rental(BaseModel):
    userId: str = Field(..., description="Opaque user id")
    bookId: str = Field(..., description="Book _id (string)")
    bookTitle: str = Field(..., description="Title at rental time")
    renterName: str
    renterAddress: str
    renterPhone: str
    rentalDate: datetime
    dueDate: Optional[datetime] = None
    returnDate: Optional[datetime] = None
    returned: bool = False
    lateFeeCharged: float = Field(0, ge=0)

class Review(BaseModel):
    bookId: str = Field(..., description="Book _id (string)")
    userId: str = Field(..., description="Reviewer id")
    renterName: str = Field(..., description="Name from the reviewer's last rental, else the user id")
    rating: int = Field(..., ge=1, le=5, description="Rating 1-5")
    review: Optional[str] = Field(None, description="Optional review text")
    rentalDate: Optional[datetime] = None
    returnDate: Optional[datetime] = None
    createdAt: Optional[datetime] = None

class Setting(BaseModel):
    lateFeePerDay: float = Field(20, ge=0, description="Late fee charged per started day")
