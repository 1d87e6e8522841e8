from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class KnowledgeSource(Protocol):
    def lookup(self, category: str, query: str) -> List[str]:
        ...


class StaticKnowledgeSource:
    """Snippets keyed by category keyword, loaded from a JSON mapping.

    A category matches when one of its keywords occurs in the problem category
    produced by the ticket analysis. Entries under ``"*"`` apply to every ticket.
    """

    def __init__(self, entries: Optional[Dict[str, List[str]]] = None) -> None:
        self._entries = {key.lower(): list(values) for key, values in (entries or {}).items()}

    @classmethod
    def from_file(cls, path: Path) -> "StaticKnowledgeSource":
        if not path.exists():
            logger.warning("knowledge.dataset.missing", extra={"path": str(path)})
            return cls()
        raw = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(raw, dict):
            raise ValueError(f"Knowledge dataset must be a JSON object: {path}")
        return cls({str(key): [str(item) for item in value] for key, value in raw.items()})

    def lookup(self, category: str, query: str) -> List[str]:
        needle = (category or "").lower()
        snippets: List[str] = list(self._entries.get("*", []))
        for keyword, values in self._entries.items():
            if keyword == "*" or not keyword:
                continue
            if keyword in needle:
                snippets.extend(value for value in values if value not in snippets)
        return snippets
