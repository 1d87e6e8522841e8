"""
Engine, session factory and schema bootstrap.
"""
import logging
from typing import Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from helpdesk_ai.db.models import Base
from helpdesk_ai.settings import settings

logger = logging.getLogger(__name__)

VECTOR_INDEX_NAME = "ix_ticket_embeddings_embedding"


def create_db_engine(url: Optional[str] = None) -> Engine:
    return create_engine(url or settings.database_url, echo=settings.database_echo, pool_pre_ping=True)


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def vector_index_ddl() -> str:
    """Approximate nearest-neighbour index for cosine distance."""
    index_type = settings.pgvector_index_type.lower()
    if index_type == "ivfflat":
        options = f"lists = {int(settings.pgvector_list_size)}"
    elif index_type == "hnsw":
        options = f"m = {int(settings.pgvector_m)}, ef_construction = {int(settings.pgvector_ef_construction)}"
    else:
        raise ValueError(f"Unsupported pgvector index type: {settings.pgvector_index_type}")
    return (
        f"CREATE INDEX IF NOT EXISTS {VECTOR_INDEX_NAME} ON ticket_embeddings "
        f"USING {index_type} (embedding vector_cosine_ops) WITH ({options})"
    )


def ensure_schema(engine: Engine) -> None:
    is_postgres = engine.dialect.name == "postgresql"
    with engine.begin() as conn:
        if is_postgres:
            conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
        Base.metadata.create_all(conn)
        if is_postgres:
            conn.execute(text(vector_index_ddl()))
    logger.info("db.schema.ready", extra={"dialect": engine.dialect.name})
