"""
Database Schemas

Each Pydantic model below represents a MongoDB collection. The collection
name is the lowercase of the class name. Example: class Doctor -> "doctor".

Request-only models (suffix In) describe JSON bodies accepted by the API;
the fields the server owns (author, timestamps, linkage arrays) are filled
in by the service layer.
"""

from pydantic import BaseModel, ConfigDict, Field, EmailStr
from typing import Optional, List, Literal

AuthorType = Literal["User", "Doctor"]
AppointmentStatus = Literal["scheduled", "completed", "cancelled"]


# Core identities
class User(BaseModel):
    name: str = Field(..., min_length=1, description="Full name")
    email: Optional[EmailStr] = Field(None, description="Contact email")


class DaySlots(BaseModel):
    date: str = Field(..., description="YYYY-MM-DD")
    slots: List[str] = Field(default_factory=list, description="e.g. 09:00, 09:30")


class Doctor(BaseModel):
    name: str = Field(..., min_length=1, description="Full name")
    email: Optional[EmailStr] = Field(None, description="Contact email")
    specialization: str = Field(..., min_length=1, description="Primary specialization")
    available_slots: List[DaySlots] = Field(default_factory=list)


# Appointments
class Appointment(BaseModel):
    doctor_id: str = Field(..., description="Doctor reference id")
    date: str = Field(..., description="YYYY-MM-DD")
    slot: str = Field(..., description="One of the doctor's offered slots for that date")
    reason: Optional[str] = None


class AvailabilityIn(DaySlots):
    pass


class AppointmentStatusIn(BaseModel):
    status: AppointmentStatus


# Forum
class Post(BaseModel):
    content: str
    author: str = Field(..., description="User or Doctor id")
    author_type: AuthorType
    comments: List[str] = Field(default_factory=list, description="Top-level comment ids")


class Comment(BaseModel):
    content: str
    author: str = Field(..., description="User or Doctor id")
    author_type: AuthorType
    post: str = Field(..., description="Owning post id")
    parent_comment: Optional[str] = Field(None, description="Parent comment id, None when top-level")
    replies: List[str] = Field(default_factory=list, description="Child comment ids")


# Content is optional here so an empty body is reported as 400 by the service, not 422
class PostIn(BaseModel):
    content: Optional[str] = None


class CommentIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    content: Optional[str] = None
    parent_comment_id: Optional[str] = Field(None, alias="parentCommentId")
