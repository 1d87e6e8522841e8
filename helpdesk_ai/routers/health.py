from fastapi import APIRouter

from ..settings import settings
from ..utils.runtime import runtime_state

router = APIRouter(tags=["health"])


@router.get("/health")
def read_health():
    """Liveness probe with build metadata and the AI configuration flags."""
    return {
        "status": "ok",
        "app": settings.app_name,
        "version": settings.app_version,
        "uptime_seconds": runtime_state.uptime_seconds(),
        "ai_configured": settings.ai_configured,
        "vector_store": settings.vector_store_backend,
        "features": {
            "agent_chat": settings.enable_agent_chat,
            "solution_recommender": settings.enable_solution_recommender,
            "knowledge_extraction": settings.enable_knowledge_extraction,
        },
    }
