from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from helpdesk_ai.agents.base import AgentControlledError, CommentSnapshot, TicketSnapshot
from helpdesk_ai.agents.chat_agent import ChatAgent, build_conversation_history
from helpdesk_ai.agents.support_agent import SupportAgent
from helpdesk_ai.agents.ticket_generator import TicketGenerator
from helpdesk_ai.schemas import (
    ChatReplyRequest,
    ChatReplyResponse,
    ErrorResponse,
    ProcessTicketRequest,
    ProcessTicketResponse,
    SearchTicketsResponse,
    SimilarTicketItem,
    SimilarTicketsRequest,
    SimilarTicketsResponse,
    SupportAgentRequest,
    SupportAgentResponse,
    TicketOut,
    TrainingTicketRequest,
)
from helpdesk_ai.services.container import (
    get_chat_agent,
    get_support_agent,
    get_ticket_ai_service,
    get_ticket_generator,
    get_ticket_service,
)
from helpdesk_ai.services.embeddings import EmbeddingError
from helpdesk_ai.services.llm_provider import LLMProviderError, StructuredOutputError
from helpdesk_ai.services.rate_limit import AIRateLimiter, get_ai_rate_limiter
from helpdesk_ai.services.ticket_ai_service import TicketAIService, TicketContent
from helpdesk_ai.services.ticket_service import TicketService
from helpdesk_ai.services.vector_store import SimilarTicket, VectorStoreError
from helpdesk_ai.settings import settings

logger = logging.getLogger(__name__)


def require_ai_configuration() -> None:
    if not settings.ai_configured:
        logger.warning("ai.not_configured")
        raise AgentControlledError(
            error="ai_not_configured",
            status_code=503,
            details="AI services are not properly configured. Please check your API keys.",
        )


def enforce_rate_limit(request: Request, limiter: AIRateLimiter = Depends(get_ai_rate_limiter)) -> None:
    if not settings.ai_rate_limit_enabled:
        return
    client = request.client.host if request.client else "anonymous"
    result = limiter.check(
        client,
        limit=settings.ai_rate_limit_max_requests,
        window_seconds=settings.ai_rate_limit_time_window,
    )
    if not result.allowed:
        raise AgentControlledError(
            error="rate_limited",
            status_code=429,
            details=f"Too many AI requests. Retry in {result.retry_after} seconds.",
        )


router = APIRouter(
    prefix="/ai",
    tags=["ai"],
    dependencies=[Depends(require_ai_configuration), Depends(enforce_rate_limit)],
    responses={400: {"model": ErrorResponse}, 429: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)


def _require_feature(enabled: bool, feature: str) -> None:
    if not enabled:
        raise AgentControlledError(error="feature_disabled", status_code=403, details=f"{feature} is disabled.")


def _items(matches: List[SimilarTicket]) -> List[SimilarTicketItem]:
    return [SimilarTicketItem(ticket_id=match.ticket_id, similarity=match.similarity) for match in matches]


def _comment_snapshots(comments) -> List[CommentSnapshot]:
    return [
        CommentSnapshot(
            id=comment.id,
            content=comment.content,
            author_id=comment.author_id,
            author_name=comment.author.name if comment.author else "Tuntematon",
            created_at=comment.created_at,
        )
        for comment in comments
    ]


@router.post("/support-agent", response_model=SupportAgentResponse, response_model_exclude_none=True)
def run_support_agent(
    payload: SupportAgentRequest,
    agent: SupportAgent = Depends(get_support_agent),
    tickets: TicketService = Depends(get_ticket_service),
):
    query = (payload.query or "").strip()
    if not query:
        raise AgentControlledError(error="query_required", details="Query is required.")

    comments: Optional[List[CommentSnapshot]] = None
    if payload.include_comments:
        comments = []
        if payload.ticket_id:
            try:
                comments = _comment_snapshots(tickets.list_comments(payload.ticket_id))
            except SQLAlchemyError:
                logger.exception("ai.support_agent.comments_error", extra={"ticket_id": payload.ticket_id})

    snapshot = TicketSnapshot(
        id=payload.ticket_id,
        title=payload.ticket_title or "",
        description=payload.ticket_description or "",
        category=payload.ticket_category,
        priority=payload.ticket_priority,
        status=payload.ticket_status,
        comments=comments,
    )
    state = agent.run(query, snapshot)
    if state.error:
        logger.warning("ai.support_agent.partial", extra={"ticket_id": state.ticket_id, "error": state.error})
    return SupportAgentResponse.model_validate(state.model_dump(include=set(SupportAgentResponse.model_fields)))


@router.post("/similar-tickets", response_model=SimilarTicketsResponse)
def similar_tickets(payload: SimilarTicketsRequest, service: TicketAIService = Depends(get_ticket_ai_service)):
    if not payload.ticket_title or not payload.ticket_description:
        raise AgentControlledError(error="invalid_request", details="Ticket title and description are required.")
    content = TicketContent(
        title=payload.ticket_title,
        description=payload.ticket_description,
        category=payload.ticket_category,
    )
    try:
        matches = service.find_similar_tickets_for_ticket(content, payload.limit)
    except (EmbeddingError, VectorStoreError) as exc:
        logger.error("ai.similar_tickets.error", extra={"error": str(exc)})
        raise AgentControlledError(
            error="similar_tickets_failed", status_code=500, details="Failed to find similar tickets."
        ) from exc
    return SimilarTicketsResponse(similar_tickets=_items(matches))


@router.get("/search-tickets", response_model=SearchTicketsResponse)
def search_tickets(
    query: Optional[str] = Query(default=None),
    limit: Optional[int] = Query(default=None, ge=1, le=50),
    service: TicketAIService = Depends(get_ticket_ai_service),
):
    if not query or not query.strip():
        raise AgentControlledError(error="query_required", details="Query is required.")
    try:
        matches = service.search_tickets(query.strip(), limit)
    except (EmbeddingError, VectorStoreError) as exc:
        logger.error("ai.search_tickets.error", extra={"error": str(exc)})
        raise AgentControlledError(error="search_failed", status_code=500, details="Failed to search tickets.") from exc
    return SearchTicketsResponse(results=_items(matches))


@router.post("/process-ticket", response_model=ProcessTicketResponse)
def process_ticket(payload: ProcessTicketRequest, service: TicketAIService = Depends(get_ticket_ai_service)):
    if not payload.ticket_id or not payload.ticket_title or not payload.ticket_description:
        raise AgentControlledError(
            error="invalid_request", details="Ticket ID, title, and description are required."
        )
    content = TicketContent(
        id=payload.ticket_id,
        title=payload.ticket_title,
        description=payload.ticket_description,
        category=payload.ticket_category,
        device=payload.device_info,
        additional_info=payload.additional_info,
    )
    if not service.process_ticket(content):
        return JSONResponse(status_code=500, content={"success": False, "error": "Failed to process ticket"})
    return ProcessTicketResponse(success=True, message="Ticket processed successfully")


@router.post(
    "/chat-response",
    response_model=ChatReplyResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
def chat_response(
    payload: ChatReplyRequest,
    agent: ChatAgent = Depends(get_chat_agent),
    tickets: TicketService = Depends(get_ticket_service),
):
    """Reply as the ticket's requester to a support comment.

    When ``supportUserId`` is given, the support comment and the simulated reply
    are both stored on the ticket.
    An unknown ``supportUserId`` is rejected with 409 before the model is called.
    """
    _require_feature(settings.enable_agent_chat, "Agent chat")
    ticket = tickets.get_ticket(payload.ticket_id)
    if ticket is None:
        raise AgentControlledError(error="ticket_not_found", status_code=404, details="Ticket not found.")
    if payload.support_user_id and tickets.get_user(payload.support_user_id) is None:
        raise AgentControlledError(error="invalid_reference", status_code=409, details="Support user not found.")

    history = build_conversation_history(
        _comment_snapshots(ticket.comments),
        creator_id=ticket.created_by_id,
        creator_name=ticket.created_by.name,
    )
    snapshot = TicketSnapshot(
        id=ticket.id,
        title=ticket.title,
        description=ticket.description,
        category=ticket.category.name if ticket.category else None,
        priority=ticket.priority.value,
        device=ticket.device,
        additional_info=ticket.additional_info,
        user_profile=ticket.user_profile,
    )
    result = agent.generate_chat_response(
        ticket=snapshot,
        history=history,
        support_comment=payload.support_comment,
        user_name=ticket.created_by.name,
        solution=ticket.solution,
    )

    if payload.support_user_id:
        try:
            tickets.add_comment(ticket.id, content=payload.support_comment, author_id=payload.support_user_id)
            tickets.add_comment(ticket.id, content=result.response_text, author_id=ticket.created_by_id)
        except IntegrityError as exc:
            logger.warning("ai.chat_response.integrity_error", extra={"ticket_id": ticket.id, "error": str(exc.orig)})
            raise AgentControlledError(
                error="invalid_reference",
                status_code=409,
                details="Referenced record is missing or already exists.",
            ) from exc
    return ChatReplyResponse(response_text=result.response_text, evaluation=result.evaluation)


@router.post("/training-tickets", response_model=TicketOut, status_code=201)
def create_training_ticket(
    payload: TrainingTicketRequest,
    generator: TicketGenerator = Depends(get_ticket_generator),
    tickets: TicketService = Depends(get_ticket_service),
):
    _require_feature(settings.enable_solution_recommender, "Training ticket generation")
    try:
        ticket = generator.create_training_ticket(
            tickets,
            complexity=payload.complexity,
            category=payload.category,
            user_profile=payload.user_profile,
            response_format=payload.response_format,
            assign_to_id=payload.assign_to_id,
        )
    except (LLMProviderError, StructuredOutputError) as exc:
        logger.error("ai.training_ticket.error", extra={"error": str(exc)})
        raise AgentControlledError(
            error="training_ticket_failed", status_code=500, details=f"Failed to generate ticket: {exc}"
        ) from exc
    return TicketOut.model_validate(ticket)
