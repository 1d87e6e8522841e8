from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import selectinload, sessionmaker

from helpdesk_ai.db.models import (
    Category,
    Comment,
    Priority,
    ResponseFormat,
    Ticket,
    TicketStatus,
    User,
    UserRole,
)
from helpdesk_ai.services.ticket_ai_service import TicketAIService, TicketContent
from helpdesk_ai.settings import settings

logger = logging.getLogger(__name__)

_UUID = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE)

UPDATABLE_FIELDS = frozenset(
    {
        "title",
        "description",
        "device",
        "additional_info",
        "priority",
        "status",
        "response_format",
        "category_id",
        "assigned_to_id",
        "user_profile",
        "solution",
    }
)


class TicketNotFoundError(LookupError):
    pass


def _ticket_options():
    return (
        selectinload(Ticket.category),
        selectinload(Ticket.created_by),
        selectinload(Ticket.assigned_to),
        selectinload(Ticket.comments).selectinload(Comment.author),
    )


class TicketService:
    """Ticket, comment and category persistence.

    Writes keep the embedding index in step through ``TicketAIService`` when AI
    is configured. Those calls are best effort and never fail the write.
    """

    def __init__(self, session_factory: sessionmaker, *, ticket_ai: Optional[TicketAIService] = None) -> None:
        self._session_factory = session_factory
        self._ticket_ai = ticket_ai

    # Tickets -----------------------------------------------------------------

    def list_tickets(
        self,
        *,
        status: Optional[TicketStatus] = None,
        priority: Optional[Priority] = None,
        category_id: Optional[str] = None,
        assigned_to_id: Optional[str] = None,
    ) -> List[Ticket]:
        stmt = select(Ticket).options(*_ticket_options()).order_by(Ticket.created_at.desc())
        if status is not None:
            stmt = stmt.where(Ticket.status == status)
        if priority is not None:
            stmt = stmt.where(Ticket.priority == priority)
        if category_id:
            stmt = stmt.where(Ticket.category_id == category_id)
        if assigned_to_id:
            stmt = stmt.where(Ticket.assigned_to_id == assigned_to_id)
        with self._session_factory() as session:
            return list(session.scalars(stmt).all())

    def get_ticket(self, ticket_id: str) -> Optional[Ticket]:
        stmt = select(Ticket).options(*_ticket_options()).where(Ticket.id == ticket_id)
        with self._session_factory() as session:
            return session.scalars(stmt).first()

    def create_ticket(
        self,
        *,
        title: str,
        description: str,
        category_id: str,
        created_by_id: str,
        priority: Priority = Priority.MEDIUM,
        device: Optional[str] = None,
        additional_info: Optional[str] = None,
        response_format: ResponseFormat = ResponseFormat.TEKSTI,
        assigned_to_id: Optional[str] = None,
        user_profile: Optional[str] = None,
        solution: Optional[str] = None,
    ) -> Ticket:
        ticket = Ticket(
            title=title,
            description=description,
            category_id=category_id,
            created_by_id=created_by_id,
            priority=priority,
            device=device,
            additional_info=additional_info,
            response_format=response_format,
            assigned_to_id=assigned_to_id,
            user_profile=user_profile,
            solution=solution,
        )
        with self._session_factory() as session:
            session.add(ticket)
            session.commit()
            ticket_id = ticket.id

        logger.info("tickets.created", extra={"ticket_id": ticket_id})
        stored = self._require(ticket_id)
        self._after_upsert(stored)
        return stored

    def update_ticket(self, ticket_id: str, changes: Dict[str, Any]) -> Ticket:
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")
        with self._session_factory() as session:
            ticket = session.get(Ticket, ticket_id)
            if ticket is None:
                raise TicketNotFoundError(ticket_id)
            for key, value in changes.items():
                setattr(ticket, key, value)
            session.commit()

        logger.info("tickets.updated", extra={"ticket_id": ticket_id, "fields": sorted(changes)})
        stored = self._require(ticket_id)
        self._after_upsert(stored)
        return stored

    def delete_ticket(self, ticket_id: str) -> bool:
        with self._session_factory() as session:
            ticket = session.get(Ticket, ticket_id)
            if ticket is None:
                return False
            session.delete(ticket)
            session.commit()

        logger.info("tickets.deleted", extra={"ticket_id": ticket_id})
        if self._ai_enabled():
            self._ticket_ai.handle_ticket_deletion(ticket_id)
        return True

    # Comments ----------------------------------------------------------------

    def add_comment(self, ticket_id: str, *, content: str, author_id: str) -> Comment:
        with self._session_factory() as session:
            if session.get(Ticket, ticket_id) is None:
                raise TicketNotFoundError(ticket_id)
            comment = Comment(ticket_id=ticket_id, content=content, author_id=author_id)
            session.add(comment)
            session.commit()
            comment_id = comment.id

        stmt = select(Comment).options(selectinload(Comment.author)).where(Comment.id == comment_id)
        with self._session_factory() as session:
            return session.scalars(stmt).one()

    def list_comments(self, ticket_id: str) -> List[Comment]:
        stmt = (
            select(Comment)
            .options(selectinload(Comment.author))
            .where(Comment.ticket_id == ticket_id)
            .order_by(Comment.created_at.asc())
        )
        with self._session_factory() as session:
            return list(session.scalars(stmt).all())

    # Categories and users ----------------------------------------------------

    def list_categories(self) -> List[Category]:
        with self._session_factory() as session:
            return list(session.scalars(select(Category).order_by(Category.name)).all())

    def create_category(self, name: str, description: Optional[str] = None) -> Category:
        category = Category(name=name, description=description)
        with self._session_factory() as session:
            session.add(category)
            session.commit()
        return category

    def find_category(self, reference: str) -> Optional[Category]:
        """Look a category up by id, or by a case-insensitive fragment of its name."""
        with self._session_factory() as session:
            if _UUID.match(reference):
                return session.get(Category, reference)
            stmt = (
                select(Category)
                .where(func.lower(Category.name).contains(reference.lower()))
                .order_by(Category.name)
            )
            return session.scalars(stmt).first()

    def get_user(self, user_id: str) -> Optional[User]:
        with self._session_factory() as session:
            return session.get(User, user_id)

    def create_user(self, *, email: str, name: str, role: UserRole = UserRole.USER) -> User:
        user = User(email=email, name=name, role=role)
        with self._session_factory() as session:
            session.add(user)
            session.commit()
        return user

    def find_admin_user(self) -> Optional[User]:
        stmt = select(User).where(User.role == UserRole.ADMIN).order_by(User.email)
        with self._session_factory() as session:
            return session.scalars(stmt).first()

    # Internals ---------------------------------------------------------------

    def _require(self, ticket_id: str) -> Ticket:
        ticket = self.get_ticket(ticket_id)
        if ticket is None:
            raise TicketNotFoundError(ticket_id)
        return ticket

    def _ai_enabled(self) -> bool:
        if self._ticket_ai is None:
            return False
        if not settings.ai_configured:
            logger.debug("tickets.ai_hook.skipped", extra={"reason": "ai_not_configured"})
            return False
        return True

    def _after_upsert(self, ticket: Ticket) -> None:
        if self._ai_enabled():
            self._ticket_ai.process_ticket(TicketContent.from_model(ticket))
