"""Utility helpers for text normalisation and log-friendly previews."""

from __future__ import annotations

import re

_WHITESPACE = re.compile(r"\s+")


def normalise_whitespace(text: str) -> str:
    """Collapse runs of whitespace (newlines included) into single spaces."""

    if not text:
        return ""
    return _WHITESPACE.sub(" ", text).strip()


def truncate_middle(text: str, *, limit: int = 500, keep: int = 250) -> str:
    """Shorten long prompts for logging, keeping the head and the tail."""

    if not text or len(text) <= limit:
        return text
    return f"{text[:keep]}...[truncated]...{text[-keep:]}"
