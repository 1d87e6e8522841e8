import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from helpdesk_ai.agents.base import AgentControlledError
from helpdesk_ai.db.session import ensure_schema
from helpdesk_ai.observability.logger import setup_logging
from helpdesk_ai.observability.tracing import CorrelationContext
from helpdesk_ai.routers.ai import router as ai_router
from helpdesk_ai.routers.health import router as health_router
from helpdesk_ai.routers.tickets import router as tickets_router
from helpdesk_ai.schemas import ErrorResponse
from helpdesk_ai.services.container import get_services, shutdown_services
from helpdesk_ai.settings import settings
from helpdesk_ai.utils.runtime import runtime_state

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    runtime_state.mark_started()
    if settings.database_auto_create:
        ensure_schema(get_services().engine)
    try:
        yield
    finally:
        shutdown_services()
        runtime_state.mark_stopped()


async def handle_controlled_error(request: Request, exc: AgentControlledError) -> JSONResponse:
    logger.info(
        "api.controlled_error",
        extra={"error": exc.error, "status_code": exc.status_code, "agent": exc.agent, "path": request.url.path},
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=exc.error, message=exc.details).model_dump(),
    )


def create_app() -> FastAPI:
    setup_logging()
    app = FastAPI(title=settings.app_name, version=settings.app_version, docs_url="/docs", lifespan=lifespan)
    app.add_middleware(CorrelationContext)
    allowed_origins = [origin.strip() for origin in settings.frontend_allowed_origins.split(",") if origin.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(AgentControlledError, handle_controlled_error)

    app.include_router(health_router)
    app.include_router(tickets_router)
    app.include_router(ai_router)
    return app


app = create_app()
