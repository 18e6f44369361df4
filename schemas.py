"""
Database Schemas for the Course Marketplace

Each Pydantic model describes the documents of one MongoDB collection or the
body of a write route. Collection names are plural and fixed in database.py
(User -> "users", ClassItem -> "classes", CartItem -> "cart", ...).
Record models allow extra fields: the stores are schema-less and clients may
send profile or display fields the API does not interpret.
"""
from datetime import datetime, timezone
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["admin", "instructor", "student"]
ClassStatus = Literal["pending", "approved", "denied"]

# Stored and compared exactly as sent; lookups by email are case-sensitive
Email = Annotated[str, Field(pattern=r"^[^\s@]+@[^\s@]+$")]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(BaseModel):
    model_config = ConfigDict(extra="allow")

    email: Email = Field(..., description="Email address, unique per user")
    role: Role = Field("student", description="Access role")
    name: Optional[str] = Field(None, description="Display name")
    address: Optional[str] = None
    about: Optional[str] = None
    photoUrl: Optional[str] = Field(None, description="Avatar URL")
    skills: Optional[Union[List[str], str]] = None


class UpdateUserBody(BaseModel):
    name: str
    email: Email
    option: Role = Field(..., description="New role for the user")
    address: Optional[str] = None
    about: Optional[str] = None
    photoUrl: Optional[str] = None
    skills: Optional[Union[List[str], str]] = None


class ClassItem(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str = Field(..., description="Class title")
    description: Optional[str] = None
    price: float = Field(0.0, ge=0, description="Price in dollars")
    availableSeats: int = Field(0, ge=0, description="Seats still open")
    videoLink: Optional[str] = None
    image: Optional[str] = None
    instructorName: Optional[str] = None
    instructorEmail: Optional[Email] = Field(None, description="Owning instructor, defaults to the caller")
    submitted: datetime = Field(default_factory=utcnow)


class UpdateClassBody(BaseModel):
    name: str
    description: Optional[str] = None
    price: float = Field(..., ge=0)
    availableSeats: int = Field(..., ge=0)
    videoLink: Optional[str] = None


class StatusChange(BaseModel):
    status: ClassStatus
    reason: Optional[str] = None


class CartItem(BaseModel):
    model_config = ConfigDict(extra="allow")

    classId: str = Field(..., description="Hex id of the class")
    userMail: Optional[Email] = Field(None, description="Cart owner, defaults to the caller")
    date: datetime = Field(default_factory=utcnow)


class AppliedInstructor(BaseModel):
    model_config = ConfigDict(extra="allow")

    email: Email = Field(..., description="Applicant email")
    name: Optional[str] = None
    experience: Optional[str] = None
    date: datetime = Field(default_factory=utcnow)
