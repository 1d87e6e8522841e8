"""Database models and session helpers."""

from .models import (  # noqa: F401
    Base,
    Category,
    Comment,
    Priority,
    ResponseFormat,
    Ticket,
    TicketEmbedding,
    TicketStatus,
    User,
    UserRole,
)
from .session import create_db_engine, create_session_factory, ensure_schema  # noqa: F401

__all__ = [
    "Base",
    "Category",
    "Comment",
    "Priority",
    "ResponseFormat",
    "Ticket",
    "TicketEmbedding",
    "TicketStatus",
    "User",
    "UserRole",
    "create_db_engine",
    "create_session_factory",
    "ensure_schema",
]
