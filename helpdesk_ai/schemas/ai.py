from __future__ import annotations

from typing import List, Optional

from pydantic import Field

from helpdesk_ai.agents.base import CamelModel, ProgressLabel, SimilarTicketRef, TicketAnalysis


class SupportAgentRequest(CamelModel):
    query: Optional[str] = Field(default=None, max_length=4000)
    ticket_id: Optional[str] = None
    ticket_title: Optional[str] = None
    ticket_description: Optional[str] = None
    ticket_category: Optional[str] = None
    ticket_priority: Optional[str] = None
    ticket_status: Optional[str] = None
    include_comments: bool = False


class SupportAgentResponse(CamelModel):
    user_query: str
    ticket_id: Optional[str] = None
    analysis_result: Optional[TicketAnalysis] = None
    relevant_tickets: Optional[List[SimilarTicketRef]] = None
    relevant_knowledge: Optional[List[str]] = None
    suggested_response: Optional[str] = None
    next_steps: Optional[List[str]] = None
    error: Optional[str] = None


class SimilarTicketsRequest(CamelModel):
    ticket_title: Optional[str] = None
    ticket_description: Optional[str] = None
    ticket_category: Optional[str] = None
    limit: Optional[int] = Field(default=None, ge=1, le=50)


class SimilarTicketItem(CamelModel):
    ticket_id: str
    similarity: float


class SimilarTicketsResponse(CamelModel):
    similar_tickets: List[SimilarTicketItem]


class SearchTicketsResponse(CamelModel):
    results: List[SimilarTicketItem]


class ProcessTicketRequest(CamelModel):
    ticket_id: Optional[str] = None
    ticket_title: Optional[str] = None
    ticket_description: Optional[str] = None
    ticket_category: Optional[str] = None
    device_info: Optional[str] = None
    additional_info: Optional[str] = None


class ProcessTicketResponse(CamelModel):
    success: bool
    message: Optional[str] = None


class ChatReplyRequest(CamelModel):
    ticket_id: str = Field(..., min_length=1)
    support_comment: str = Field(..., min_length=1, max_length=4000)
    support_user_id: Optional[str] = None


class ChatReplyResponse(CamelModel):
    response_text: str
    evaluation: ProgressLabel


class TrainingTicketRequest(CamelModel):
    complexity: str = "moderate"
    category: Optional[str] = None
    user_profile: Optional[str] = None
    response_format: Optional[str] = None
    assign_to_id: Optional[str] = None
