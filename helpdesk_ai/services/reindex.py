from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List

from helpdesk_ai.services.ticket_ai_service import TicketAIService, TicketContent
from helpdesk_ai.services.ticket_service import TicketService

logger = logging.getLogger(__name__)


@dataclass
class ReindexResult:
    dry_run: bool
    total: int = 0
    indexed: int = 0
    failed_ids: List[str] = field(default_factory=list)


def reindex_tickets(tickets: TicketService, ticket_ai: TicketAIService, *, dry_run: bool = False) -> ReindexResult:
    """Re-embed every stored ticket. Individual failures are collected, not raised."""
    stored = tickets.list_tickets()
    result = ReindexResult(dry_run=dry_run, total=len(stored))
    if dry_run:
        logger.info("reindex.dry_run", extra={"total": result.total})
        return result

    for ticket in stored:
        if ticket_ai.process_ticket(TicketContent.from_model(ticket)):
            result.indexed += 1
        else:
            result.failed_ids.append(ticket.id)

    logger.info(
        "reindex.completed",
        extra={"total": result.total, "indexed": result.indexed, "failed": len(result.failed_ids)},
    )
    return result
