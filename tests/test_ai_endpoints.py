from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import IntegrityError

from conftest import HashingEmbedder, StubProvider
from helpdesk_ai.agents.base import ANALYSIS_FAILED_ERROR
from helpdesk_ai.agents.chat_agent import ChatAgent
from helpdesk_ai.agents.support_agent import SupportAgent
from helpdesk_ai.agents.ticket_generator import TicketGenerator
from helpdesk_ai.db.models import UserRole
from helpdesk_ai.main import app
from helpdesk_ai.services import container
from helpdesk_ai.services.knowledge import StaticKnowledgeSource
from helpdesk_ai.services.llm_provider import LLMProviderError
from helpdesk_ai.services.rate_limit import AIRateLimiter, get_ai_rate_limiter
from helpdesk_ai.services.ticket_ai_service import TicketAIService, TicketContent
from helpdesk_ai.services.ticket_service import TicketService
from helpdesk_ai.settings import settings

ANALYSIS = {
    "problemCategory": "Verkkoyhteys",
    "problemComplexity": "moderate",
    "recommendedApproach": "Tarkista wifi-asetukset",
}
RESPONSE = {"responseText": "Hei! Kokeillaan ensin wifin uudelleenyhdistämistä.", "nextStepsRecommendation": ["Odota vastausta"]}
GENERATED = {
    "title": "Tulostin ei tulosta",
    "description": "Tulostustyöt jäävät jonoon.",
    "device": "HP LaserJet",
    "additionalInfo": "",
    "priority": "LOW",
    "responseFormat": "TEKSTI",
}


@pytest.fixture
def env(session_factory, memory_store, monkeypatch):
    monkeypatch.setattr(settings, "openai_api_key", "sk-test")
    ticket_ai = TicketAIService(embedder=HashingEmbedder(), store=memory_store, threshold=0.0)
    tickets = TicketService(session_factory, ticket_ai=ticket_ai)
    category = tickets.create_category("Verkko")
    creator = tickets.create_user(email="maija@example.com", name="Maija")
    support = tickets.create_user(email="tuki@example.com", name="Pekka", role=UserRole.SUPPORT)
    provider = StubProvider()

    state = SimpleNamespace(
        provider=provider,
        store=memory_store,
        ticket_ai=ticket_ai,
        tickets=tickets,
        category=category,
        creator=creator,
        support=support,
        support_agent=SupportAgent(provider, ticket_ai, StaticKnowledgeSource()),
        chat_agent=ChatAgent(provider, evaluator="llm"),
        generator=TicketGenerator(provider),
    )
    app.dependency_overrides[container.get_ticket_ai_service] = lambda: state.ticket_ai
    app.dependency_overrides[container.get_ticket_service] = lambda: state.tickets
    app.dependency_overrides[container.get_support_agent] = lambda: state.support_agent
    app.dependency_overrides[container.get_chat_agent] = lambda: state.chat_agent
    app.dependency_overrides[container.get_ticket_generator] = lambda: state.generator
    yield state
    app.dependency_overrides.clear()


@pytest.fixture
def client(env):
    with TestClient(app) as test_client:
        yield test_client


def _ticket(env, **overrides):
    data = dict(
        title="Ei nettiyhteyttä",
        description="Kannettava ei yhdistä wifiin.",
        category_id=env.category.id,
        created_by_id=env.creator.id,
    )
    data.update(overrides)
    return env.tickets.create_ticket(**data)


def test_endpoints_require_api_key(env, client, monkeypatch):
    monkeypatch.setattr(settings, "openai_api_key", None)

    response = client.post("/ai/support-agent", json={"query": "Miten vastaan?"})

    assert response.status_code == 503
    assert response.json()["error"] == "ai_not_configured"
    assert "API keys" in response.json()["message"]
    assert env.provider.call_count == 0


def test_support_agent_returns_suggestion(env, client):
    env.provider.structured.extend([ANALYSIS, RESPONSE])

    response = client.post(
        "/ai/support-agent",
        json={
            "query": "Miten vastaan?",
            "ticketId": "t-1",
            "ticketTitle": "Ei nettiyhteyttä",
            "ticketDescription": "Kannettava ei yhdistä wifiin.",
            "ticketPriority": "HIGH",
        },
    )

    assert response.status_code == 200
    body = response.json()
    assert body["userQuery"] == "Miten vastaan?"
    assert body["analysisResult"]["problemCategory"] == "Verkkoyhteys"
    assert body["analysisResult"]["problemComplexity"] == "Moderate"
    assert body["suggestedResponse"] == RESPONSE["responseText"]
    assert body["nextSteps"] == ["Odota vastausta"]
    assert "error" not in body


def test_support_agent_includes_stored_comments(env, client):
    ticket = _ticket(env)
    env.tickets.add_comment(ticket.id, content="Reititin vilkkuu punaisena", author_id=env.creator.id)
    env.provider.structured.extend([ANALYSIS, RESPONSE])

    response = client.post(
        "/ai/support-agent",
        json={
            "query": "Mitä seuraavaksi?",
            "ticketId": ticket.id,
            "ticketTitle": ticket.title,
            "ticketDescription": ticket.description,
            "includeComments": True,
        },
    )

    assert response.status_code == 200
    assert "Maija: Reititin vilkkuu punaisena" in env.provider.structured_calls[0]["prompt"]
    assert response.json()["relevantKnowledge"][-1].startswith("Tiketillä on 1 kommentti")


def test_support_agent_reports_analysis_failure_in_body(env, client):
    env.provider.structured.append(LLMProviderError("down"))

    response = client.post("/ai/support-agent", json={"query": "Miten vastaan?", "ticketTitle": "t"})

    assert response.status_code == 200
    assert response.json()["error"] == ANALYSIS_FAILED_ERROR
    assert "suggestedResponse" not in response.json()


def test_support_agent_requires_query(env, client):
    response = client.post("/ai/support-agent", json={"query": "   "})

    assert response.status_code == 400
    assert response.json()["error"] == "query_required"


def test_similar_tickets(env, client):
    env.ticket_ai.process_ticket(
        TicketContent(id="old-1", title="Ei nettiyhteyttä", description="Kannettava ei yhdistä wifiin.", category="Verkko")
    )

    response = client.post(
        "/ai/similar-tickets",
        json={"ticketTitle": "Ei nettiyhteyttä", "ticketDescription": "Kannettava ei yhdistä wifiin.", "ticketCategory": "Verkko"},
    )

    assert response.status_code == 200
    [match] = response.json()["similarTickets"]
    assert match["ticketId"] == "old-1"
    assert match["similarity"] == pytest.approx(1.0)


def test_similar_tickets_validation_and_failure(env, client):
    missing = client.post("/ai/similar-tickets", json={"ticketTitle": "Vain otsikko"})
    assert missing.status_code == 400
    assert missing.json()["error"] == "invalid_request"

    env.ticket_ai = TicketAIService(embedder=HashingEmbedder(fail=True), store=env.store)
    failed = client.post("/ai/similar-tickets", json={"ticketTitle": "t", "ticketDescription": "d"})
    assert failed.status_code == 500
    assert failed.json()["error"] == "similar_tickets_failed"


def test_search_tickets(env, client):
    env.ticket_ai.process_ticket(
        TicketContent(id="old-1", title="Ei nettiyhteyttä", description="Kannettava ei yhdistä wifiin.")
    )

    response = client.get("/ai/search-tickets", params={"query": "kannettava wifiin", "limit": 3})
    assert response.status_code == 200
    assert [item["ticketId"] for item in response.json()["results"]] == ["old-1"]

    assert client.get("/ai/search-tickets").status_code == 400


def test_process_ticket(env, client):
    response = client.post(
        "/ai/process-ticket",
        json={"ticketId": "t-9", "ticketTitle": "VPN katkeaa", "ticketDescription": "Yhteys katkeaa tunnin välein."},
    )

    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Ticket processed successfully"}
    assert "t-9" in env.store


def test_process_ticket_validation_and_failure(env, client):
    missing = client.post("/ai/process-ticket", json={"ticketTitle": "VPN katkeaa"})
    assert missing.status_code == 400

    env.ticket_ai = TicketAIService(embedder=HashingEmbedder(fail=True), store=env.store)
    failed = client.post(
        "/ai/process-ticket", json={"ticketId": "t-9", "ticketTitle": "VPN katkeaa", "ticketDescription": "d"}
    )
    assert failed.status_code == 500
    assert failed.json() == {"success": False, "error": "Failed to process ticket"}


def test_chat_response_is_behind_feature_flag(env, client, monkeypatch):
    monkeypatch.setattr(settings, "enable_agent_chat", False)
    ticket = _ticket(env)

    response = client.post("/ai/chat-response", json={"ticketId": ticket.id, "supportComment": "Hei"})

    assert response.status_code == 403
    assert response.json()["error"] == "feature_disabled"


def test_chat_response_stores_both_comments(env, client, monkeypatch):
    monkeypatch.setattr(settings, "enable_agent_chat", True)
    ticket = _ticket(env, solution="Yhdistä kannettava wifiin uudelleen")
    env.provider.texts.extend(["CLOSE", "Kokeilin, nyt näkyy verkko!"])

    response = client.post(
        "/ai/chat-response",
        json={"ticketId": ticket.id, "supportComment": "Yhdistä wifiin uudelleen", "supportUserId": env.support.id},
    )

    assert response.status_code == 200
    assert response.json() == {"responseText": "Kokeilin, nyt näkyy verkko!", "evaluation": "CLOSE"}
    stored = {comment.content: comment.author_id for comment in env.tickets.list_comments(ticket.id)}
    assert stored == {
        "Yhdistä wifiin uudelleen": env.support.id,
        "Kokeilin, nyt näkyy verkko!": env.creator.id,
    }
    assert "Yhdistä kannettava wifiin uudelleen" in env.provider.text_calls[0]["prompt"]


def test_chat_response_without_support_user_stores_nothing(env, client, monkeypatch):
    monkeypatch.setattr(settings, "enable_agent_chat", True)
    ticket = _ticket(env)
    env.provider.texts.extend(["EARLY", "Mitä tarkoitat?"])

    response = client.post("/ai/chat-response", json={"ticketId": ticket.id, "supportComment": "Hei"})

    assert response.status_code == 200
    assert env.tickets.list_comments(ticket.id) == []


def test_chat_response_rejects_unknown_support_user(env, client, monkeypatch):
    monkeypatch.setattr(settings, "enable_agent_chat", True)
    ticket = _ticket(env)

    response = client.post(
        "/ai/chat-response",
        json={"ticketId": ticket.id, "supportComment": "Hei", "supportUserId": "no-such-user"},
    )

    assert response.status_code == 409
    assert response.json()["error"] == "invalid_reference"
    assert env.provider.call_count == 0
    assert env.tickets.list_comments(ticket.id) == []


def test_chat_response_comment_constraint_failure_is_a_conflict(env, client, monkeypatch):
    monkeypatch.setattr(settings, "enable_agent_chat", True)
    ticket = _ticket(env)
    env.provider.texts.extend(["EARLY", "Mitä tarkoitat?"])

    def violate_foreign_key(*args, **kwargs):
        raise IntegrityError("INSERT INTO comments", {}, Exception("FOREIGN KEY constraint failed"))

    monkeypatch.setattr(env.tickets, "add_comment", violate_foreign_key)

    response = client.post(
        "/ai/chat-response",
        json={"ticketId": ticket.id, "supportComment": "Hei", "supportUserId": env.support.id},
    )

    assert response.status_code == 409
    assert response.json() == {
        "error": "invalid_reference",
        "message": "Referenced record is missing or already exists.",
    }


def test_chat_response_unknown_ticket(env, client, monkeypatch):
    monkeypatch.setattr(settings, "enable_agent_chat", True)

    response = client.post("/ai/chat-response", json={"ticketId": "missing", "supportComment": "Hei"})

    assert response.status_code == 404


def test_training_ticket_is_created_without_exposing_solution(env, client, monkeypatch):
    monkeypatch.setattr(settings, "enable_solution_recommender", True)
    env.tickets.create_user(email="admin@example.com", name="Admin", role=UserRole.ADMIN)
    env.provider.structured.append(dict(GENERATED))
    env.provider.texts.append("Tyhjennä tulostusjono ja käynnistä taustatulostus uudelleen.")

    response = client.post("/ai/training-tickets", json={"category": "verkko", "complexity": "simple"})

    assert response.status_code == 201
    body = response.json()
    assert body["title"] == "Tulostin ei tulosta"
    assert body["category"]["name"] == "Verkko"
    assert body["priority"] == "LOW"
    assert "solution" not in body
    assert env.tickets.get_ticket(body["id"]).solution.startswith("Tyhjennä tulostusjono")


def test_training_ticket_errors(env, client, monkeypatch):
    monkeypatch.setattr(settings, "enable_solution_recommender", True)
    env.tickets.create_user(email="admin@example.com", name="Admin", role=UserRole.ADMIN)

    unknown_category = client.post("/ai/training-tickets", json={"category": "Olematon"})
    assert unknown_category.status_code == 404
    assert unknown_category.json()["error"] == "category_not_found"

    bad_complexity = client.post("/ai/training-tickets", json={"category": "verkko", "complexity": "extreme"})
    assert bad_complexity.status_code == 400

    env.provider.structured.append(LLMProviderError("down"))
    failed = client.post("/ai/training-tickets", json={"category": "verkko"})
    assert failed.status_code == 500
    assert failed.json()["error"] == "training_ticket_failed"


def test_training_tickets_are_behind_feature_flag(env, client, monkeypatch):
    monkeypatch.setattr(settings, "enable_solution_recommender", False)

    response = client.post("/ai/training-tickets", json={"category": "verkko"})

    assert response.status_code == 403


def test_ai_requests_are_rate_limited(env, client, monkeypatch):
    limiter = AIRateLimiter("memory://")
    app.dependency_overrides[get_ai_rate_limiter] = lambda: limiter
    monkeypatch.setattr(settings, "ai_rate_limit_enabled", True)
    monkeypatch.setattr(settings, "ai_rate_limit_max_requests", 2)
    monkeypatch.setattr(settings, "ai_rate_limit_time_window", 3600)

    responses = [client.get("/ai/search-tickets", params={"query": "wifi"}) for _ in range(3)]

    assert [response.status_code for response in responses] == [200, 200, 429]
    assert responses[2].json()["error"] == "rate_limited"
    assert "Retry in" in responses[2].json()["message"]
