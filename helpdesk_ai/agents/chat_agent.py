from __future__ import annotations

import json
import logging
from typing import List, Optional, Sequence

from helpdesk_ai.agents.base import (
    CHAT_EMPTY_REPLY_MESSAGE,
    CHAT_ERROR_MESSAGE,
    CLASSIFIER_LABELS,
    MISSING_SOLUTION_TEXT,
    CamelModel,
    CommentSnapshot,
    ConversationMessage,
    ProgressLabel,
    TicketSnapshot,
)
from helpdesk_ai.agents.progress import estimate_solution_progress
from helpdesk_ai.agents.prompts import build_chat_prompt, build_chat_system_prompt, build_progress_prompt
from helpdesk_ai.services.llm_provider import LLMProvider, ModelTier
from helpdesk_ai.settings import settings

logger = logging.getLogger(__name__)

EVALUATOR_LLM = "llm"
EVALUATOR_KEYWORD = "keyword"
DEFAULT_USER_PROFILE = "student"
NOT_DEFINED = "Ei määritelty"

_COMPLEXITY_BY_PRIORITY = {
    "LOW": "simple",
    "MEDIUM": "moderate",
    "HIGH": "complex",
    "CRITICAL": "complex",
}

_SKILL_BY_COMPLEXITY = {
    "simple": "vähäinen",
    "moderate": "keskitasoinen",
    "complex": "hyvä",
}


class ChatAgentResponse(CamelModel):
    response_text: str
    evaluation: ProgressLabel


def normalize_progress_label(raw: Optional[str]) -> ProgressLabel:
    """Map a classifier reply to a label. Only an exact label matches; anything else becomes PROGRESSING."""
    for label in CLASSIFIER_LABELS:
        if raw == label.value:
            return label
    logger.warning("chat_agent.evaluation.unexpected", extra={"value": (raw or "")[:50]})
    return ProgressLabel.PROGRESSING


def complexity_for_priority(priority: Optional[str]) -> str:
    return _COMPLEXITY_BY_PRIORITY.get((priority or "").upper(), "moderate")


def skill_level_for_complexity(complexity: str) -> str:
    return _SKILL_BY_COMPLEXITY.get(complexity, "hyvä")


def build_conversation_history(
    comments: Sequence[CommentSnapshot],
    *,
    creator_id: Optional[str],
    creator_name: str,
) -> List[ConversationMessage]:
    """Label every comment not written by the ticket creator as a support message."""
    history: List[ConversationMessage] = []
    for comment in comments:
        is_support = comment.author_id != creator_id
        history.append(
            ConversationMessage(
                role="support" if is_support else "user",
                name="Support" if is_support else creator_name,
                content=comment.content,
                timestamp=comment.created_at.isoformat() if comment.created_at else None,
            )
        )
    return history


def _history_json(history: Sequence[ConversationMessage]) -> str:
    return json.dumps([message.model_dump() for message in history], ensure_ascii=False)


class ChatAgent:
    """Plays the ticket's requester in a training conversation."""

    name = "chat"

    def __init__(self, provider: LLMProvider, *, evaluator: Optional[str] = None) -> None:
        mode = (evaluator or settings.chat_progress_evaluator).strip().lower()
        if mode not in (EVALUATOR_LLM, EVALUATOR_KEYWORD):
            raise ValueError(f"Unknown progress evaluator: {mode!r}")
        self._provider = provider
        self.evaluator = mode

    def evaluate_progress(
        self,
        ticket: TicketSnapshot,
        support_comment: str,
        solution: Optional[str],
        history: Sequence[ConversationMessage],
    ) -> ProgressLabel:
        if self.evaluator == EVALUATOR_KEYWORD:
            return estimate_solution_progress(support_comment, solution, history)

        prompt = build_progress_prompt(
            title=ticket.title,
            description=ticket.description,
            device=ticket.device or NOT_DEFINED,
            additional_info=ticket.additional_info or "",
            solution=solution or MISSING_SOLUTION_TEXT,
            conversation_history=_history_json(history),
            support_comment=support_comment,
        )
        raw = self._provider.generate(prompt)
        return normalize_progress_label(raw)

    def generate_chat_response(
        self,
        *,
        ticket: TicketSnapshot,
        history: Sequence[ConversationMessage],
        support_comment: str,
        user_name: str,
        solution: Optional[str] = None,
    ) -> ChatAgentResponse:
        user_profile = ticket.user_profile or DEFAULT_USER_PROFILE
        complexity = complexity_for_priority(ticket.priority)
        logger.info(
            "chat_agent.start",
            extra={
                "ticket_id": ticket.id,
                "evaluator": self.evaluator,
                "history_length": len(history),
                "has_solution": bool(solution),
            },
        )

        try:
            evaluation = self.evaluate_progress(ticket, support_comment, solution, history)
            system_prompt = build_chat_system_prompt(
                user_name=user_name,
                user_profile=user_profile,
                technical_skill_level=skill_level_for_complexity(complexity),
            )
            prompt = build_chat_prompt(
                title=ticket.title,
                description=ticket.description,
                category=ticket.category or NOT_DEFINED,
                device=ticket.device or NOT_DEFINED,
                additional_info=ticket.additional_info or "",
                progress=evaluation.value,
                conversation_history=_history_json(history),
                support_comment=support_comment,
                solution=solution or "Ei tietoa",
            )
            reply = self._provider.generate_response(
                system_prompt=system_prompt,
                user_message=prompt,
                tier=ModelTier.standard,
                temperature=min(settings.llm_standard_temperature + 0.2, 2.0),
            )
        except Exception:
            logger.exception("chat_agent.error", extra={"ticket_id": ticket.id})
            return ChatAgentResponse(response_text=CHAT_ERROR_MESSAGE, evaluation=ProgressLabel.ERROR)

        logger.info("chat_agent.completed", extra={"ticket_id": ticket.id, "evaluation": evaluation.value})
        return ChatAgentResponse(response_text=(reply or "").strip() or CHAT_EMPTY_REPLY_MESSAGE, evaluation=evaluation)
