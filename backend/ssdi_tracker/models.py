"""SQLModel data models.

This module defines the application's database tables using SQLModel.
Each class maps to a table and uses relationships where appropriate.
All timestamps are written in UTC.
"""

from typing import Optional
from sqlmodel import SQLModel, Field, Relationship
from datetime import datetime
from typing import List

from .utils.clock import utc_now

SECTION_STATUSES = ("complete", "in-progress", "needs-attention")
DOCUMENT_STATUSES = ("uploaded", "pending", "missing")
DOCUMENT_CATEGORIES = ("personal", "medical", "legal", "employment", "government")
COMMUNICATION_TYPES = ("email", "letter", "phone_call", "online_message", "deadline", "appointment")
TRACKING_SOURCES = ("social_security", "ssa_gov", "phone", "mail", "email")
PRIORITIES = ("high", "medium", "low")


class User(SQLModel, table=True):
    """A registered applicant.

    Fields:
    - `username`: unique login name
    - `password_hash`: hashed password string (never store plaintext)
    - `application_id`: the SSA application reference, when known
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(index=True, nullable=False, unique=True)
    password_hash: str
    name: Optional[str] = None
    application_id: Optional[str] = None
    email: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)


class Section(SQLModel, table=True):
    """A grouping of required documents (e.g. "Medical Evidence")."""
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key='user.id', index=True)
    name: str
    description: Optional[str] = None
    status: str = "in-progress"
    order: int = 0
    documents: List['Document'] = Relationship(back_populates='section')


class Document(SQLModel, table=True):
    """A required document belonging to a `Section`.

    `uploaded_at` is set when the status becomes `uploaded` and is what
    the dashboard uses to list recently completed uploads.
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    section_id: int = Field(foreign_key='section.id', index=True)
    user_id: int = Field(foreign_key='user.id', index=True)
    name: str
    description: Optional[str] = None
    file_name: Optional[str] = None
    file_size: Optional[int] = None
    status: str = Field(default="pending", index=True)
    uploaded_at: Optional[datetime] = None
    contact_info: Optional[str] = None
    notes: Optional[str] = None
    category: str = "personal"
    section: Optional[Section] = Relationship(back_populates='documents')


class TrackingEntry(SQLModel, table=True):
    """A logged SSA communication or deadline.

    An entry needs attention while `is_action_required` is set and
    `action_completed_at` is empty.
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key='user.id', index=True)
    type: str
    title: str
    description: str
    received_at: datetime
    source: str
    priority: str
    is_action_required: bool = False
    action_deadline: Optional[datetime] = None
    action_completed_at: Optional[datetime] = None
    notes: Optional[str] = None
    attachment_file_name: Optional[str] = Field(default=None, index=True)
    attachment_file_size: Optional[int] = None
    created_at: datetime = Field(default_factory=utc_now)


class Contact(SQLModel, table=True):
    """Someone the applicant corresponds with (doctor, SSA officer, lawyer)."""
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key='user.id', index=True)
    name: str
    role: Optional[str] = None
    email: str
    created_at: datetime = Field(default_factory=utc_now)


class GoogleIntegration(SQLModel, table=True):
    """Credentials of the Google account connected by a user.

    Tokens are obtained by an external OAuth exchange and `access_token`
    holds them Fernet-encrypted. Only one integration exists per user.
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key='user.id', unique=True)
    email: str
    access_token: str
    expiry_date: datetime
    scopes: str
    created_at: datetime = Field(default_factory=utc_now)
