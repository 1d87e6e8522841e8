from __future__ import annotations

import json
import logging
import re
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Type, TypeVar

from openai import OpenAI
from pydantic import BaseModel, ValidationError

from helpdesk_ai.settings import settings
from helpdesk_ai.utils.text import truncate_middle

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

JSON_ONLY_DIRECTIVE = "Respond only with valid JSON."

_JSON_FENCE = re.compile(r"```json\s*(.*?)\s*```", re.DOTALL | re.IGNORECASE)
_ANY_FENCE = re.compile(r"```(?:[A-Za-z0-9_+-]+)?\s*\n?(.*?)\n?\s*```", re.DOTALL)


class LLMProviderError(RuntimeError):
    """Raised when the language model provider cannot produce a response."""


class StructuredOutputError(ValueError):
    """Raised when the model answered but the reply is not a usable JSON object."""

    def __init__(self, message: str, *, raw_text: str = "") -> None:
        super().__init__(message)
        self.raw_text = raw_text


class ModelTier(str, Enum):
    standard = "standard"
    advanced = "advanced"


@dataclass(frozen=True)
class TierConfig:
    model: str
    temperature: float
    max_tokens: int
    timeout_seconds: float


@dataclass(frozen=True)
class LLMResponse:
    raw_text: str
    tier: ModelTier = ModelTier.standard
    latency_ms: float = 0.0


def default_tiers() -> Dict[ModelTier, TierConfig]:
    return {
        ModelTier.standard: TierConfig(
            model=settings.openai_completion_model,
            temperature=settings.llm_standard_temperature,
            max_tokens=settings.llm_standard_max_tokens,
            timeout_seconds=settings.llm_standard_timeout_seconds,
        ),
        ModelTier.advanced: TierConfig(
            model=settings.openai_advanced_model,
            temperature=settings.llm_advanced_temperature,
            max_tokens=settings.llm_advanced_max_tokens,
            timeout_seconds=settings.llm_advanced_timeout_seconds,
        ),
    }


def extract_json_text(raw_text: str) -> str:
    """Return the part of a model reply that should hold the JSON document.

    The whole reply is preferred when it already parses; otherwise the first
    ```json fenced block, then the first fenced block of any language.
    """
    text = (raw_text or "").strip()
    try:
        json.loads(text)
        return text
    except ValueError:
        pass

    if "```json" in text.lower():
        match = _JSON_FENCE.search(text)
        if match:
            return match.group(1).strip()
    if "```" in text:
        match = _ANY_FENCE.search(text)
        if match:
            return match.group(1).strip()
    return text


def parse_structured(response: LLMResponse) -> Dict[str, Any]:
    candidate = extract_json_text(response.raw_text)
    try:
        parsed = json.loads(candidate)
    except ValueError as exc:
        raise StructuredOutputError("Model did not return valid JSON.", raw_text=response.raw_text) from exc

    if not isinstance(parsed, dict) or not parsed:
        raise StructuredOutputError("Parsed JSON is empty or not an object.", raw_text=response.raw_text)
    return parsed


class LLMProvider:
    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        client: Optional[OpenAI] = None,
        tiers: Optional[Dict[ModelTier, TierConfig]] = None,
    ) -> None:
        self.api_key = api_key or settings.openai_api_key
        self.tiers = tiers or default_tiers()
        self._client: Optional[OpenAI] = client

    def _get_client(self) -> OpenAI:
        if self._client is None:
            if not self.api_key:
                raise LLMProviderError("OpenAI API key is not configured.")
            self._client = OpenAI(api_key=self.api_key, organization=settings.openai_organization)
        return self._client

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def complete(
        self,
        user_message: str,
        *,
        system_prompt: Optional[str] = None,
        tier: ModelTier = ModelTier.standard,
        temperature: Optional[float] = None,
    ) -> LLMResponse:
        if not user_message.strip():
            raise LLMProviderError("Message to model cannot be empty.")

        config = self.tiers[tier]
        client = self._get_client()

        messages: List[Dict[str, Any]] = []
        if system_prompt:
            messages.append(
                {
                    "role": "system",
                    "content": [{"type": "input_text", "text": system_prompt}],
                }
            )
        messages.append(
            {
                "role": "user",
                "content": [{"type": "input_text", "text": user_message}],
            }
        )

        log_level = logging.INFO if settings.agent_verbose else logging.DEBUG
        logger.log(
            log_level,
            "llm.request",
            extra={"tier": tier.value, "model": config.model, "prompt": truncate_middle(user_message)},
        )

        start = time.perf_counter()
        try:
            response = client.responses.create(
                model=config.model,
                temperature=config.temperature if temperature is None else temperature,
                max_output_tokens=config.max_tokens,
                input=messages,
                timeout=config.timeout_seconds,
            )
        except Exception as exc:
            logger.error("llm.request.error", extra={"tier": tier.value, "error": str(exc)})
            raise LLMProviderError(f"Failed to query OpenAI API ({tier.value} tier).") from exc
        latency_ms = round((time.perf_counter() - start) * 1000, 2)

        text = self._extract_text(response)
        if not text:
            raise LLMProviderError("Language model returned no content.")

        logger.log(
            log_level,
            "llm.response",
            extra={"tier": tier.value, "latency_ms": latency_ms, "response": truncate_middle(text)},
        )
        return LLMResponse(raw_text=text.strip(), tier=tier, latency_ms=latency_ms)

    def generate_response(
        self,
        *,
        system_prompt: Optional[str],
        user_message: str,
        tier: ModelTier = ModelTier.standard,
        temperature: Optional[float] = None,
    ) -> str:
        return self.complete(user_message, system_prompt=system_prompt, tier=tier, temperature=temperature).raw_text

    def generate(self, prompt: str) -> str:
        return self.complete(prompt, tier=ModelTier.standard).raw_text

    def generate_advanced(self, prompt: str) -> str:
        return self.complete(prompt, tier=ModelTier.advanced).raw_text

    def generate_structured(
        self,
        prompt: str,
        instructions: str,
        tier: ModelTier = ModelTier.standard,
    ) -> Dict[str, Any]:
        """Ask for a JSON object and return it parsed.

        Provider failures raise ``LLMProviderError``; a reply that is not a
        non-empty JSON object raises ``StructuredOutputError``. Nothing is
        retried here.
        """
        full_prompt = f"{instructions}\n\n{prompt}\n\n{JSON_ONLY_DIRECTIVE}"
        response = self.complete(full_prompt, tier=tier)
        try:
            return parse_structured(response)
        except StructuredOutputError:
            logger.error(
                "llm.structured.parse_error",
                extra={"tier": tier.value, "response": truncate_middle(response.raw_text)},
            )
            raise

    def generate_model(
        self,
        prompt: str,
        instructions: str,
        schema: Type[ModelT],
        tier: ModelTier = ModelTier.standard,
    ) -> ModelT:
        data = self.generate_structured(prompt, instructions, tier)
        try:
            return schema.model_validate(data)
        except ValidationError as exc:
            raise StructuredOutputError(
                f"Structured reply does not match {schema.__name__}.", raw_text=json.dumps(data, ensure_ascii=False)
            ) from exc

    @staticmethod
    def _extract_text(response: Any) -> Optional[str]:
        if response is None:
            return None

        text = getattr(response, "output_text", None)
        if text:
            return text

        output = getattr(response, "output", None) or []
        for item in output:
            item_type = getattr(item, "type", None)
            if item_type == "output_text":
                possible = getattr(item, "text", None)
                if possible:
                    return possible
            if item_type == "message":
                contents = getattr(item, "content", [])
                for content in contents:
                    if getattr(content, "type", None) == "output_text":
                        possible = getattr(content, "text", None)
                        if possible:
                            return possible
        return None
