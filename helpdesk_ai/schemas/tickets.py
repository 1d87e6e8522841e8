from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import ConfigDict, Field
from pydantic.alias_generators import to_camel

from helpdesk_ai.agents.base import CamelModel
from helpdesk_ai.db.models import Priority, ResponseFormat, TicketStatus, UserRole


class OrmModel(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class CategoryOut(OrmModel):
    id: str
    name: str
    description: Optional[str] = None


class CategoryCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=120)
    description: Optional[str] = None


class UserOut(OrmModel):
    id: str
    name: str
    email: str
    role: UserRole


class UserCreate(CamelModel):
    email: str = Field(..., min_length=3, max_length=255)
    name: str = Field(..., min_length=1, max_length=255)
    role: UserRole = UserRole.USER


class CommentOut(OrmModel):
    id: str
    content: str
    ticket_id: str
    author: UserOut
    created_at: datetime


class CommentCreate(CamelModel):
    content: str = Field(..., min_length=1)
    author_id: str


class TicketOut(OrmModel):
    """Public view of a ticket. The hidden training solution is never exposed."""

    id: str
    title: str
    description: str
    device: Optional[str] = None
    additional_info: Optional[str] = None
    priority: Priority
    status: TicketStatus
    response_format: ResponseFormat
    user_profile: Optional[str] = None
    category: CategoryOut
    created_by: UserOut
    assigned_to: Optional[UserOut] = None
    created_at: datetime
    updated_at: datetime
    comments: List[CommentOut] = Field(default_factory=list)


class TicketListResponse(CamelModel):
    tickets: List[TicketOut]


class TicketCreate(CamelModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1)
    category_id: str
    created_by_id: str
    priority: Priority = Priority.MEDIUM
    device: Optional[str] = Field(default=None, max_length=200)
    additional_info: Optional[str] = None
    response_format: ResponseFormat = ResponseFormat.TEKSTI
    assigned_to_id: Optional[str] = None


class TicketUpdate(CamelModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, min_length=1)
    category_id: Optional[str] = None
    priority: Optional[Priority] = None
    status: Optional[TicketStatus] = None
    device: Optional[str] = Field(default=None, max_length=200)
    additional_info: Optional[str] = None
    response_format: Optional[ResponseFormat] = None
    assigned_to_id: Optional[str] = None
