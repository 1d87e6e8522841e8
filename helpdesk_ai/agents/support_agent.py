from __future__ import annotations

import logging
import time
from typing import List, Optional, Sequence, Tuple

from helpdesk_ai.agents.base import (
    ANALYSIS_FAILED_ERROR,
    DEFAULT_TICKET_ANALYSIS,
    FALLBACK_NEXT_STEPS,
    RESPONSE_FAILED_ERROR,
    SIMILAR_TICKET_TITLE,
    AgentState,
    CommentSnapshot,
    SimilarTicketRef,
    TicketAnalysis,
    TicketSnapshot,
    fallback_support_response,
)
from helpdesk_ai.agents.prompts import (
    ANALYSIS_INSTRUCTIONS,
    RESPONSE_INSTRUCTIONS,
    build_analysis_prompt,
    build_response_prompt,
)
from helpdesk_ai.services.knowledge import KnowledgeSource, StaticKnowledgeSource
from helpdesk_ai.services.llm_provider import LLMProvider, LLMProviderError, ModelTier, StructuredOutputError
from helpdesk_ai.services.ticket_ai_service import TicketAIService, TicketContent

logger = logging.getLogger(__name__)

NO_TITLE = "No title provided"
NO_DESCRIPTION = "No description provided"


class SupportAgent:
    """Suggests a reply for a ticket: analyse, find similar tickets, gather knowledge, respond.

    Only the analysis step is load-bearing. Similar tickets and knowledge degrade
    to empty lists, and a failed response call falls back to a canned reply.
    """

    name = "support"

    def __init__(
        self,
        provider: LLMProvider,
        ticket_ai: TicketAIService,
        knowledge: Optional[KnowledgeSource] = None,
    ) -> None:
        self._provider = provider
        self._ticket_ai = ticket_ai
        self._knowledge = knowledge or StaticKnowledgeSource()

    def run(self, query: str, ticket: Optional[TicketSnapshot] = None) -> AgentState:
        title = ticket.title if ticket and ticket.title else NO_TITLE
        description = ticket.description if ticket and ticket.description else NO_DESCRIPTION
        comments = ticket.comments if ticket else None

        state = AgentState(
            user_query=query,
            ticket_id=ticket.id if ticket else None,
            ticket_title=title,
            ticket_description=description,
            ticket_category=ticket.category if ticket else None,
            ticket_priority=ticket.priority if ticket else None,
            ticket_status=ticket.status if ticket else None,
        )
        logger.info(
            "support_agent.start",
            extra={"ticket_id": state.ticket_id, "comment_count": len(comments or [])},
        )
        start = time.perf_counter()

        try:
            state.analysis_result = self.analyze_ticket(
                title=title,
                description=description,
                category=state.ticket_category,
                status=state.ticket_status,
                priority=state.ticket_priority,
                comments=comments,
            )
        except Exception:
            logger.exception("support_agent.analyze.error", extra={"ticket_id": state.ticket_id})
            state.error = ANALYSIS_FAILED_ERROR
            return state

        state.relevant_tickets = self.find_similar_tickets(title, description, state.ticket_category)
        state.relevant_knowledge = self.retrieve_knowledge(state.analysis_result, query, comments)

        try:
            state.suggested_response, state.next_steps = self.generate_response(
                title=title,
                description=description,
                category=state.ticket_category,
                analysis=state.analysis_result,
                knowledge=state.relevant_knowledge,
                comments=comments,
            )
        except Exception:
            logger.exception("support_agent.respond.error", extra={"ticket_id": state.ticket_id})
            state.error = RESPONSE_FAILED_ERROR
            return state

        logger.info(
            "support_agent.completed",
            extra={
                "ticket_id": state.ticket_id,
                "similar_tickets": len(state.relevant_tickets),
                "latency_ms": round((time.perf_counter() - start) * 1000, 2),
            },
        )
        return state

    def analyze_ticket(
        self,
        *,
        title: str,
        description: str,
        category: Optional[str],
        status: Optional[str],
        priority: Optional[str],
        comments: Optional[Sequence[CommentSnapshot]],
    ) -> TicketAnalysis:
        prompt = build_analysis_prompt(
            title=title,
            description=description,
            category=category,
            status=status,
            priority=priority,
            comments=comments,
        )
        return self._provider.generate_model(prompt, ANALYSIS_INSTRUCTIONS, TicketAnalysis, ModelTier.advanced)

    def find_similar_tickets(self, title: str, description: str, category: Optional[str]) -> List[SimilarTicketRef]:
        content = TicketContent(title=title, description=description, category=category)
        try:
            matches = self._ticket_ai.find_similar_tickets_for_ticket(content)
        except Exception:
            logger.exception("support_agent.similar_tickets.error")
            return []
        return [
            SimilarTicketRef(id=match.ticket_id, title=SIMILAR_TICKET_TITLE, similarity=match.similarity)
            for match in matches
        ]

    def retrieve_knowledge(
        self,
        analysis: Optional[TicketAnalysis],
        query: str,
        comments: Optional[Sequence[CommentSnapshot]],
    ) -> List[str]:
        category = analysis.problem_category if analysis else "general"
        try:
            knowledge = list(self._knowledge.lookup(category, query))
        except Exception:
            logger.exception("support_agent.knowledge.error", extra={"category": category})
            return []
        if comments:
            knowledge.append(f"Tiketillä on {len(comments)} kommenttia, joissa keskustellaan ongelmasta.")
        return knowledge

    def generate_response(
        self,
        *,
        title: str,
        description: str,
        category: Optional[str],
        analysis: Optional[TicketAnalysis],
        knowledge: Sequence[str],
        comments: Optional[Sequence[CommentSnapshot]],
    ) -> Tuple[str, List[str]]:
        prompt = build_response_prompt(
            title=title,
            description=description,
            category=category,
            analysis=analysis or DEFAULT_TICKET_ANALYSIS,
            knowledge=knowledge,
            comments=comments,
        )
        try:
            data = self._provider.generate_structured(prompt, RESPONSE_INSTRUCTIONS, ModelTier.standard)
            response_text = data.get("responseText")
            if not isinstance(response_text, str) or not response_text.strip():
                raise StructuredOutputError("Response reply has no responseText.", raw_text=str(data))
        except (LLMProviderError, StructuredOutputError) as exc:
            logger.warning("support_agent.respond.fallback", extra={"error": str(exc)})
            return fallback_support_response(title, category), list(FALLBACK_NEXT_STEPS)

        steps = data.get("nextStepsRecommendation") or []
        if isinstance(steps, str):
            steps = [steps]
        return response_text.strip(), [str(step) for step in steps]
