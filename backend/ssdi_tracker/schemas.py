"""Pydantic request/response schemas used by the API.

Schemas keep API input/output shapes stable and provide validation for
controller handlers and tests. Enumerated fields use `Literal` so bad
values are rejected before reaching a service.
"""

from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Literal, Optional

from .utils.clock import as_utc

SectionStatus = Literal["complete", "in-progress", "needs-attention"]
DocumentStatus = Literal["uploaded", "pending", "missing"]
CommunicationType = Literal["email", "letter", "phone_call", "online_message", "deadline", "appointment"]
TrackingSource = Literal["social_security", "ssa_gov", "phone", "mail", "email"]
Priority = Literal["high", "medium", "low"]


class RegisterIn(BaseModel):
    """Payload for user registration/login endpoints."""
    username: str
    password: str
    name: Optional[str] = None
    application_id: Optional[str] = None
    email: Optional[str] = None


class TokenOut(BaseModel):
    """Authentication response containing an access token."""
    access_token: str


class _RowOut(BaseModel):
    """Base for responses built from table rows; timestamps are emitted in UTC."""
    model_config = ConfigDict(from_attributes=True)

    @field_validator("*", mode="after")
    @classmethod
    def _utc(cls, value):
        if isinstance(value, datetime):
            return as_utc(value)
        return value


class UserOut(_RowOut):
    id: int
    username: str
    name: Optional[str] = None
    application_id: Optional[str] = None
    email: Optional[str] = None


class SectionIn(BaseModel):
    name: str = Field(min_length=1, max_length=256)
    description: Optional[str] = None
    status: SectionStatus = "in-progress"
    order: int = 0


class SectionStatusIn(BaseModel):
    status: SectionStatus


class SectionOut(_RowOut):
    id: int
    user_id: int
    name: str
    description: Optional[str] = None
    status: str
    order: int


class DocumentUpdate(BaseModel):
    """Partial update of a document; only provided fields change."""
    status: Optional[DocumentStatus] = None
    notes: Optional[str] = None
    contact_info: Optional[str] = None


class DocumentOut(_RowOut):
    id: int
    section_id: int
    user_id: int
    name: str
    description: Optional[str] = None
    file_name: Optional[str] = None
    file_size: Optional[int] = None
    status: str
    uploaded_at: Optional[datetime] = None
    contact_info: Optional[str] = None
    notes: Optional[str] = None
    category: str


class TrackingEntryOut(_RowOut):
    id: int
    user_id: int
    type: str
    title: str
    description: str
    received_at: datetime
    source: str
    priority: str
    is_action_required: bool
    action_deadline: Optional[datetime] = None
    action_completed_at: Optional[datetime] = None
    notes: Optional[str] = None
    attachment_file_name: Optional[str] = None
    attachment_file_size: Optional[int] = None
    created_at: datetime


class ContactIn(BaseModel):
    name: str = Field(min_length=1, max_length=256)
    role: Optional[str] = None
    email: str = Field(min_length=3, max_length=256, pattern=r"^[^@\s]+@[^@\s]+$")


class ContactUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=256)
    role: Optional[str] = None
    email: Optional[str] = Field(default=None, min_length=3, max_length=256, pattern=r"^[^@\s]+@[^@\s]+$")


class ContactOut(_RowOut):
    id: int
    user_id: int
    name: str
    role: Optional[str] = None
    email: str
    created_at: datetime


class GoogleIntegrationIn(BaseModel):
    """Credentials produced by an OAuth exchange performed elsewhere."""
    email: str
    access_token: str
    expiry_date: datetime
    scopes: str


class EmailIn(BaseModel):
    """Request to send an email, optionally attaching uploaded documents."""
    to: str = Field(min_length=3, pattern=r"^[^@\s]+@[^@\s]+$")
    subject: str = Field(min_length=1)
    body: str = Field(min_length=1)
    attachmentIds: List[int] = Field(default_factory=list)
