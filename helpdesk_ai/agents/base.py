from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class ProgressLabel(str, Enum):
    EARLY = "EARLY"
    PROGRESSING = "PROGRESSING"
    CLOSE = "CLOSE"
    SOLVED = "SOLVED"
    ERROR = "ERROR"
    UNKNOWN = "UNKNOWN"


CLASSIFIER_LABELS = (ProgressLabel.EARLY, ProgressLabel.PROGRESSING, ProgressLabel.CLOSE, ProgressLabel.SOLVED)


class ProblemComplexity(str, Enum):
    Simple = "Simple"
    Moderate = "Moderate"
    Complex = "Complex"


COMPLEXITY_LABELS_FI = {
    ProblemComplexity.Simple: "Helppo",
    ProblemComplexity.Moderate: "Keskivaikea",
    ProblemComplexity.Complex: "Monimutkainen",
}


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


_LIST_FIELDS = ("keyInsights", "possibleCauses", "missingInformation", "potentialSolutions")
_TEXT_FIELDS = ("estimatedTimeToResolve", "recommendedApproach")


def _complexity_from_label(value: Any) -> ProblemComplexity:
    """Accept English or Finnish labels in any case; anything else is Moderate."""
    if isinstance(value, ProblemComplexity):
        return value
    candidate = str(value or "").strip().lower()
    for complexity, finnish in COMPLEXITY_LABELS_FI.items():
        if candidate in (complexity.value.lower(), finnish.lower()):
            return complexity
    return ProblemComplexity.Moderate


class TicketAnalysis(CamelModel):
    problem_category: str
    problem_complexity: ProblemComplexity = ProblemComplexity.Moderate
    estimated_time_to_resolve: str = ""
    key_insights: List[str] = Field(default_factory=list)
    possible_causes: List[str] = Field(default_factory=list)
    missing_information: List[str] = Field(default_factory=list)
    recommended_approach: str = ""
    potential_solutions: List[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _unwrap_and_coerce(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        # Some replies wrap the object as {"analysis": {...}}.
        wrapped = data.get("analysis")
        data = dict(wrapped if isinstance(wrapped, dict) and wrapped else data)
        for key in _LIST_FIELDS:
            value = data.get(key)
            if value is None:
                data.pop(key, None)
            elif isinstance(value, (str, int, float)):
                data[key] = [str(value)]
            elif isinstance(value, list):
                data[key] = [str(item) for item in value if item is not None]
        for key in _TEXT_FIELDS:
            value = data.get(key)
            if value is None:
                data.pop(key, None)
            elif isinstance(value, list):
                data[key] = " ".join(str(item) for item in value)
            elif not isinstance(value, str):
                data[key] = str(value)
        return data

    @field_validator("problem_complexity", mode="before")
    @classmethod
    def _map_complexity(cls, value: Any) -> ProblemComplexity:
        return _complexity_from_label(value)


class CommentSnapshot(CamelModel):
    content: str
    author_name: str
    author_id: Optional[str] = None
    id: Optional[str] = None
    created_at: Optional[datetime] = None


class TicketSnapshot(CamelModel):
    """Ticket fields an agent reads. Built from a request body or a stored ticket."""

    title: str
    description: str
    id: Optional[str] = None
    category: Optional[str] = None
    priority: Optional[str] = None
    status: Optional[str] = None
    device: Optional[str] = None
    additional_info: Optional[str] = None
    user_profile: Optional[str] = None
    comments: Optional[List[CommentSnapshot]] = None


class SimilarTicketRef(CamelModel):
    id: str
    title: str
    similarity: float


class ConversationMessage(CamelModel):
    role: str
    name: str
    content: str
    timestamp: Optional[str] = None


class AgentState(CamelModel):
    user_query: str
    ticket_id: Optional[str] = None
    ticket_title: Optional[str] = None
    ticket_description: Optional[str] = None
    ticket_category: Optional[str] = None
    ticket_priority: Optional[str] = None
    ticket_status: Optional[str] = None
    analysis_result: Optional[TicketAnalysis] = None
    relevant_tickets: Optional[List[SimilarTicketRef]] = None
    relevant_knowledge: Optional[List[str]] = None
    suggested_response: Optional[str] = None
    next_steps: Optional[List[str]] = None
    error: Optional[str] = None


class AgentControlledError(Exception):
    """Raised when a predictable failure should reach the client as a JSON error."""

    def __init__(self, *, error: str, status_code: int = 400, details: Optional[str] = None, agent: Optional[str] = None) -> None:
        super().__init__(error)
        self.error = error
        self.details = details
        self.status_code = status_code
        self.agent = agent


DEFAULT_TICKET_ANALYSIS = TicketAnalysis(
    problem_category="Määrittämätön ongelma",
    problem_complexity=ProblemComplexity.Moderate,
    estimated_time_to_resolve="Tuntematon",
    key_insights=["Analyysia ei saatavilla"],
    possible_causes=["Tietoja ei saatavilla"],
    missing_information=["Täydelliset tiketin tiedot"],
    recommended_approach="Tarkista tiketin tiedot",
    potential_solutions=["Kerää lisätietoa ongelmasta"],
)

FALLBACK_NEXT_STEPS = (
    "Ask for more details about the issue",
    "Check similar tickets for potential solutions",
    "Escalate to specialized support if needed",
)

SIMILAR_TICKET_TITLE = "Samankaltainen tiketti"

ANALYSIS_FAILED_ERROR = "Failed to analyze the ticket"
RESPONSE_FAILED_ERROR = "Failed to generate response"

CHAT_ERROR_MESSAGE = "Valitettavasti kohtasin odottamattoman ongelman enkä voi vastata juuri nyt."
CHAT_EMPTY_REPLY_MESSAGE = "Pahoittelut, en osaa vastata tähän tällä hetkellä."
MISSING_SOLUTION_TEXT = "Ratkaisua ei löytynyt."


def fallback_support_response(ticket_title: str, ticket_category: Optional[str] = None) -> str:
    return (
        "Hello,\n\n"
        f'Thank you for submitting your ticket about "{ticket_title}".\n\n'
        f"Based on the information provided, this appears to be a {ticket_category or 'technical'} issue. "
        "To help resolve this efficiently, could you please provide more details about the specific problem "
        "you're experiencing?\n\n"
        "In the meantime, I'll research similar issues and prepare some potential solutions.\n\n"
        "Thank you for your patience.\n\n"
        "Best regards,\nSupport Team"
    )
