"""
ORM models for tickets, their conversation and their embedding vectors.
"""
import enum
import uuid
from datetime import datetime, timezone

from pgvector.sqlalchemy import Vector
from sqlalchemy import Column, DateTime, Enum, ForeignKey, String, Text
from sqlalchemy.orm import declarative_base, relationship

from helpdesk_ai.settings import settings

Base = declarative_base()


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Priority(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class TicketStatus(str, enum.Enum):
    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    RESOLVED = "RESOLVED"
    CLOSED = "CLOSED"


class ResponseFormat(str, enum.Enum):
    TEKSTI = "TEKSTI"
    KUVA = "KUVA"
    VIDEO = "VIDEO"


class UserRole(str, enum.Enum):
    USER = "USER"
    SUPPORT = "SUPPORT"
    ADMIN = "ADMIN"


class Category(Base):
    __tablename__ = "categories"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(120), unique=True, nullable=False)
    description = Column(Text)

    tickets = relationship("Ticket", back_populates="category")


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_new_id)
    email = Column(String(255), unique=True, nullable=False)
    name = Column(String(255), nullable=False)
    role = Column(Enum(UserRole), nullable=False, default=UserRole.USER)


class Ticket(Base):
    __tablename__ = "tickets"

    id = Column(String(36), primary_key=True, default=_new_id)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    device = Column(String(200))
    additional_info = Column(Text)
    priority = Column(Enum(Priority), nullable=False, default=Priority.MEDIUM)
    status = Column(Enum(TicketStatus), nullable=False, default=TicketStatus.OPEN)
    response_format = Column(Enum(ResponseFormat), nullable=False, default=ResponseFormat.TEKSTI)
    # Training tickets only: simulated requester persona and the hidden solution.
    user_profile = Column(String(50))
    solution = Column(Text)

    category_id = Column(String(36), ForeignKey("categories.id"), nullable=False)
    created_by_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    assigned_to_id = Column(String(36), ForeignKey("users.id"))

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    category = relationship("Category", back_populates="tickets")
    created_by = relationship("User", foreign_keys=[created_by_id])
    assigned_to = relationship("User", foreign_keys=[assigned_to_id])
    comments = relationship(
        "Comment",
        back_populates="ticket",
        order_by="Comment.created_at",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Ticket(id={self.id}, title='{self.title[:50]}')>"


class Comment(Base):
    __tablename__ = "comments"

    id = Column(String(36), primary_key=True, default=_new_id)
    content = Column(Text, nullable=False)
    ticket_id = Column(String(36), ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, index=True)
    author_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    ticket = relationship("Ticket", back_populates="comments")
    author = relationship("User")


class TicketEmbedding(Base):
    __tablename__ = "ticket_embeddings"

    ticket_id = Column(String(36), ForeignKey("tickets.id", ondelete="CASCADE"), primary_key=True)
    embedding = Column(Vector(settings.pgvector_dimension), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)
