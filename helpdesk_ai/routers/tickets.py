from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Response
from sqlalchemy.exc import IntegrityError

from helpdesk_ai.agents.base import AgentControlledError
from helpdesk_ai.db.models import Priority, TicketStatus
from helpdesk_ai.schemas import (
    CategoryCreate,
    CategoryOut,
    CommentCreate,
    CommentOut,
    ErrorResponse,
    TicketCreate,
    TicketListResponse,
    TicketOut,
    TicketUpdate,
    UserCreate,
    UserOut,
)
from helpdesk_ai.services.container import get_ticket_service
from helpdesk_ai.services.ticket_service import TicketNotFoundError, TicketService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["tickets"], responses={404: {"model": ErrorResponse}})


def _not_found(ticket_id: str) -> AgentControlledError:
    logger.info("tickets.not_found", extra={"ticket_id": ticket_id})
    return AgentControlledError(error="ticket_not_found", status_code=404, details="Ticket not found.")


def _integrity_error(exc: IntegrityError) -> AgentControlledError:
    logger.warning("tickets.integrity_error", extra={"error": str(exc.orig)})
    return AgentControlledError(
        error="invalid_reference", status_code=409, details="Referenced record is missing or already exists."
    )


@router.get("/tickets", response_model=TicketListResponse)
def list_tickets(
    status: Optional[TicketStatus] = None,
    priority: Optional[Priority] = None,
    category_id: Optional[str] = None,
    assigned_to_id: Optional[str] = None,
    service: TicketService = Depends(get_ticket_service),
):
    tickets = service.list_tickets(
        status=status, priority=priority, category_id=category_id, assigned_to_id=assigned_to_id
    )
    return TicketListResponse(tickets=[TicketOut.model_validate(ticket) for ticket in tickets])


@router.get("/tickets/{ticket_id}", response_model=TicketOut)
def get_ticket(ticket_id: str, service: TicketService = Depends(get_ticket_service)):
    ticket = service.get_ticket(ticket_id)
    if ticket is None:
        raise _not_found(ticket_id)
    return TicketOut.model_validate(ticket)


@router.post("/tickets", response_model=TicketOut, status_code=201)
def create_ticket(payload: TicketCreate, service: TicketService = Depends(get_ticket_service)):
    try:
        ticket = service.create_ticket(**payload.model_dump())
    except IntegrityError as exc:
        raise _integrity_error(exc) from exc
    return TicketOut.model_validate(ticket)


@router.put("/tickets/{ticket_id}", response_model=TicketOut)
def update_ticket(ticket_id: str, payload: TicketUpdate, service: TicketService = Depends(get_ticket_service)):
    try:
        ticket = service.update_ticket(ticket_id, payload.model_dump(exclude_unset=True))
    except TicketNotFoundError as exc:
        raise _not_found(ticket_id) from exc
    except IntegrityError as exc:
        raise _integrity_error(exc) from exc
    return TicketOut.model_validate(ticket)


@router.delete("/tickets/{ticket_id}", status_code=204)
def delete_ticket(ticket_id: str, service: TicketService = Depends(get_ticket_service)):
    if not service.delete_ticket(ticket_id):
        raise _not_found(ticket_id)
    return Response(status_code=204)


@router.get("/tickets/{ticket_id}/comments", response_model=List[CommentOut])
def list_comments(ticket_id: str, service: TicketService = Depends(get_ticket_service)):
    if service.get_ticket(ticket_id) is None:
        raise _not_found(ticket_id)
    return [CommentOut.model_validate(comment) for comment in service.list_comments(ticket_id)]


@router.post("/tickets/{ticket_id}/comments", response_model=CommentOut, status_code=201)
def add_comment(ticket_id: str, payload: CommentCreate, service: TicketService = Depends(get_ticket_service)):
    try:
        comment = service.add_comment(ticket_id, content=payload.content, author_id=payload.author_id)
    except TicketNotFoundError as exc:
        raise _not_found(ticket_id) from exc
    except IntegrityError as exc:
        raise _integrity_error(exc) from exc
    return CommentOut.model_validate(comment)


@router.get("/categories", response_model=List[CategoryOut])
def list_categories(service: TicketService = Depends(get_ticket_service)):
    return [CategoryOut.model_validate(category) for category in service.list_categories()]


@router.post("/categories", response_model=CategoryOut, status_code=201)
def create_category(payload: CategoryCreate, service: TicketService = Depends(get_ticket_service)):
    try:
        category = service.create_category(payload.name, payload.description)
    except IntegrityError as exc:
        raise _integrity_error(exc) from exc
    return CategoryOut.model_validate(category)


@router.post("/users", response_model=UserOut, status_code=201)
def create_user(payload: UserCreate, service: TicketService = Depends(get_ticket_service)):
    try:
        user = service.create_user(email=payload.email, name=payload.name, role=payload.role)
    except IntegrityError as exc:
        raise _integrity_error(exc) from exc
    return UserOut.model_validate(user)
