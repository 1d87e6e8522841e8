from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from helpdesk_ai.settings import settings


@lru_cache(maxsize=1)
def get_project_root() -> Path:
    """Directory that holds the ``helpdesk_ai`` package and the ``data`` folder."""
    return Path(__file__).resolve().parents[2]


def get_knowledge_dataset_path() -> Path:
    if settings.knowledge_base_path:
        return Path(settings.knowledge_base_path)
    return get_project_root() / "data" / "knowledge" / "knowledge_base.json"
