from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from helpdesk_ai.agents.base import AgentControlledError, TicketSnapshot
from helpdesk_ai.agents.prompts import TICKET_INSTRUCTIONS, build_solution_prompt, build_ticket_prompt
from helpdesk_ai.db.models import Priority, ResponseFormat, Ticket
from helpdesk_ai.services.llm_provider import LLMProvider, StructuredOutputError
from helpdesk_ai.services.ticket_service import TicketService
from helpdesk_ai.settings import settings

logger = logging.getLogger(__name__)

COMPLEXITY_LEVELS = ("simple", "moderate", "complex")
DEFAULT_PRIORITIES = {
    "simple": Priority.LOW,
    "moderate": Priority.MEDIUM,
    "complex": Priority.HIGH,
}
DEFAULT_USER_PROFILE = "student"
SOLUTION_FAILED_MESSAGE = "Ratkaisun luominen epäonnistui."


@dataclass
class GeneratedTicket:
    title: str
    description: str
    device: str
    additional_info: str
    priority: Priority
    response_format: ResponseFormat
    user_profile: str


def _parse_enum(enum_cls, value):
    if isinstance(value, str):
        try:
            return enum_cls(value.strip().upper())
        except ValueError:
            return None
    return None


class TicketGenerator:
    """Writes realistic training tickets, and their hidden solutions, with the language model."""

    name = "ticket_generator"

    def __init__(self, provider: LLMProvider, *, max_description_length: Optional[int] = None) -> None:
        self._provider = provider
        self.max_description_length = max_description_length or settings.training_max_description_length

    def generate_ticket(
        self,
        *,
        category: str,
        complexity: str = "moderate",
        user_profile: str = DEFAULT_USER_PROFILE,
        response_format: Optional[str] = None,
    ) -> GeneratedTicket:
        complexity = (complexity or "").strip().lower()
        if complexity not in COMPLEXITY_LEVELS:
            raise AgentControlledError(
                error="invalid_complexity",
                details=f"Complexity must be one of: {', '.join(COMPLEXITY_LEVELS)}",
                agent=self.name,
            )
        requested_format = None
        if response_format:
            requested_format = _parse_enum(ResponseFormat, response_format)
            if requested_format is None:
                raise AgentControlledError(
                    error="invalid_response_format",
                    details=f"Response format must be one of: {', '.join(item.value for item in ResponseFormat)}",
                    agent=self.name,
                )

        prompt = build_ticket_prompt(complexity=complexity, category=category.strip(), user_profile=user_profile.strip())
        data = self._provider.generate_structured(prompt, TICKET_INSTRUCTIONS)

        title = str(data.get("title") or "").strip()
        description = str(data.get("description") or "").strip()
        if not title or not description:
            raise StructuredOutputError("Generated ticket is missing a title or description.", raw_text=str(data))

        priority = _parse_enum(Priority, data.get("priority")) or DEFAULT_PRIORITIES.get(complexity, Priority.MEDIUM)
        fmt = requested_format or _parse_enum(ResponseFormat, data.get("responseFormat")) or ResponseFormat.TEKSTI

        if len(description) > self.max_description_length:
            description = description[: self.max_description_length]

        return GeneratedTicket(
            title=title,
            description=description,
            device=str(data.get("device") or ""),
            additional_info=str(data.get("additionalInfo") or ""),
            priority=priority,
            response_format=fmt,
            user_profile=user_profile,
        )

    def generate_solution(self, ticket: TicketSnapshot) -> str:
        prompt = build_solution_prompt(
            title=ticket.title,
            description=ticket.description,
            device=ticket.device or "",
            additional_info=ticket.additional_info or "",
            category=ticket.category or "",
        )
        try:
            return self._provider.generate(prompt)
        except Exception:
            logger.exception("ticket_generator.solution.error", extra={"ticket_id": ticket.id})
            return SOLUTION_FAILED_MESSAGE

    def create_training_ticket(
        self,
        tickets: TicketService,
        *,
        complexity: str = "moderate",
        category: Optional[str] = None,
        user_profile: Optional[str] = None,
        response_format: Optional[str] = None,
        assign_to_id: Optional[str] = None,
    ) -> Ticket:
        """Generate a ticket and its solution, then store it as created by an admin user."""
        category_ref = category or settings.training_default_category
        category_record = tickets.find_category(category_ref)
        if category_record is None:
            raise AgentControlledError(
                error="category_not_found",
                status_code=404,
                details=f'Category "{category_ref}" not found',
                agent=self.name,
            )
        admin = tickets.find_admin_user()
        if admin is None:
            raise AgentControlledError(
                error="admin_user_missing",
                status_code=409,
                details="No admin user found to create the training ticket",
                agent=self.name,
            )

        draft = self.generate_ticket(
            category=category_record.name,
            complexity=complexity,
            user_profile=user_profile or DEFAULT_USER_PROFILE,
            response_format=response_format,
        )
        solution = self.generate_solution(
            TicketSnapshot(
                title=draft.title,
                description=draft.description,
                device=draft.device,
                additional_info=draft.additional_info,
                category=category_record.name,
            )
        )
        ticket = tickets.create_ticket(
            title=draft.title,
            description=draft.description,
            category_id=category_record.id,
            created_by_id=admin.id,
            priority=draft.priority,
            device=draft.device,
            additional_info=draft.additional_info,
            response_format=draft.response_format,
            assigned_to_id=assign_to_id,
            user_profile=draft.user_profile,
            solution=solution,
        )
        logger.info(
            "ticket_generator.created",
            extra={"ticket_id": ticket.id, "complexity": complexity, "priority": draft.priority.value},
        )
        return ticket
