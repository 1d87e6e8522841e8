from .ai import (
    ChatReplyRequest,
    ChatReplyResponse,
    ProcessTicketRequest,
    ProcessTicketResponse,
    SearchTicketsResponse,
    SimilarTicketItem,
    SimilarTicketsRequest,
    SimilarTicketsResponse,
    SupportAgentRequest,
    SupportAgentResponse,
    TrainingTicketRequest,
)
from .common import ErrorResponse
from .tickets import (
    CategoryCreate,
    CategoryOut,
    CommentCreate,
    CommentOut,
    TicketCreate,
    TicketListResponse,
    TicketOut,
    TicketUpdate,
    UserCreate,
    UserOut,
)

__all__ = [
    "CategoryCreate",
    "CategoryOut",
    "ChatReplyRequest",
    "ChatReplyResponse",
    "CommentCreate",
    "CommentOut",
    "ErrorResponse",
    "ProcessTicketRequest",
    "ProcessTicketResponse",
    "SearchTicketsResponse",
    "SimilarTicketItem",
    "SimilarTicketsRequest",
    "SimilarTicketsResponse",
    "SupportAgentRequest",
    "SupportAgentResponse",
    "TicketCreate",
    "TicketListResponse",
    "TicketOut",
    "TicketUpdate",
    "TrainingTicketRequest",
    "UserCreate",
    "UserOut",
]
