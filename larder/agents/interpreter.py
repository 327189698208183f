"""Turn a free-text reply into a ChangeSet.

Interpretation is fail-open: a model error, timeout or unparseable response
yields an empty ChangeSet, and a malformed list entry is dropped while the
rest of the response is kept.
"""

import asyncio
import json
import logging
import re
import string
from collections.abc import Sequence
from datetime import date
from typing import Any, Protocol

from pydantic import BaseModel, ValidationError
from pydantic_ai import Agent
from pydantic_ai.models.openrouter import OpenRouterModel
from pydantic_ai.providers.openrouter import OpenRouterProvider

from larder.agents.prompt import SYSTEM_PROMPT, build_interpretation_prompt
from larder.core.config import Settings, settings
from larder.core.errors import classify_interpreter_error
from larder.core.logging import span
from larder.domain.change_set import ChangeSet, ItemUpdateEntry, NewItemEntry, RemoveItemEntry, StockSignal
from larder.domain.item import Item


logger = logging.getLogger(__name__)

_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)

_ENTRY_MODELS: dict[str, tuple[tuple[str, ...], type[BaseModel]]] = {
    "updates": (("updates",), ItemUpdateEntry),
    "new_items": (("newItems", "new_items"), NewItemEntry),
    "remove_items": (("removeItems", "remove_items"), RemoveItemEntry),
}


class Interpreter(Protocol):
    """Anything that can turn an utterance into a ChangeSet."""

    async def interpret(self, utterance: str, items: Sequence[Item], today: date) -> ChangeSet: ...


def strip_code_fences(text: str) -> str:
    """Remove a surrounding markdown code fence, if any."""
    return _CODE_FENCE.sub("", text.strip()).strip()


def parse_change_set(text: str) -> ChangeSet:
    """Parse model output into a ChangeSet, dropping entries that fail validation.

    Raises:
        json.JSONDecodeError: If the text is not JSON at all
        ValueError: If the JSON document is not an object
    """
    payload = json.loads(strip_code_fences(text))
    if not isinstance(payload, dict):
        raise ValueError(f"Expected a JSON object, got {type(payload).__name__}")

    parsed: dict[str, list[Any]] = {}
    for field_name, (keys, model) in _ENTRY_MODELS.items():
        raw_entries = next((payload[key] for key in keys if key in payload), None) or []
        if not isinstance(raw_entries, list):
            logger.warning("Ignoring non-list change-set field", extra={"field": field_name})
            raw_entries = []

        entries = []
        for raw in raw_entries:
            try:
                entries.append(model.model_validate(raw))
            except ValidationError as e:
                logger.warning(
                    "Dropping malformed change-set entry",
                    extra={"field": field_name, "error_count": e.error_count()},
                )
        parsed[field_name] = entries

    return ChangeSet(**parsed)


class LLMInterpreter:
    """Interpreter backed by a pydantic-ai agent."""

    def __init__(self, agent: Agent[None, str], *, timeout_seconds: float) -> None:
        self._agent = agent
        self._timeout_seconds = timeout_seconds

    async def interpret(self, utterance: str, items: Sequence[Item], today: date) -> ChangeSet:
        prompt = build_interpretation_prompt(utterance, items, today)
        with span("interpreter.llm"):
            try:
                result = await asyncio.wait_for(self._agent.run(prompt), timeout=self._timeout_seconds)
                change_set = parse_change_set(result.output)
            except Exception as e:
                category = classify_interpreter_error(e)
                logger.warning(
                    "Interpretation failed, treating reply as no-op",
                    extra={"error_category": category.value, "error_type": type(e).__name__},
                )
                return ChangeSet()

        logger.info(
            "Interpreted reply",
            extra={
                "updates": len(change_set.updates),
                "new_items": len(change_set.new_items),
                "remove_items": len(change_set.remove_items),
            },
        )
        return change_set


class KeywordInterpreter:
    """Offline fallback that only understands "<item> ordered" style replies.

    For each "ordered", the words before it are scanned nearest first and the
    first word contained in an item name wins. Words after it are never
    considered, and short words and filler words are skipped.
    """

    TRIGGERS = frozenset({"ordered"})
    STOPWORDS = frozenset({"and", "the", "for", "some", "more", "just", "have", "also", "got", "was", "were"})
    MIN_TOKEN_LENGTH = 3

    @staticmethod
    def _tokens(utterance: str) -> list[str]:
        return [word.strip(string.punctuation) for word in utterance.lower().split()]

    def _is_candidate(self, token: str) -> bool:
        return (
            len(token) >= self.MIN_TOKEN_LENGTH and token not in self.STOPWORDS and token not in self.TRIGGERS
        )

    def _find_item(self, token: str, items: Sequence[Item]) -> Item | None:
        for item in items:
            if item.is_active and token in item.name.lower():
                return item
        return None

    async def interpret(self, utterance: str, items: Sequence[Item], today: date) -> ChangeSet:
        tokens = self._tokens(utterance)
        updates: list[ItemUpdateEntry] = []
        seen: set[int] = set()

        for index, token in enumerate(tokens):
            if token not in self.TRIGGERS:
                continue
            for candidate in reversed(tokens[:index]):
                if not self._is_candidate(candidate):
                    continue
                item = self._find_item(candidate, items)
                if item is None:
                    continue
                if item.id not in seen:
                    seen.add(item.id)
                    updates.append(
                        ItemUpdateEntry(
                            item_id=item.id,
                            item_name=item.name,
                            status=StockSignal.ORDERED,
                            reason=f"Matched '{candidate}' near '{token}'",
                        )
                    )
                break

        return ChangeSet(updates=updates)


def create_agent(config: Settings) -> Agent[None, str]:
    """Create the OpenRouter-backed agent used for interpretation."""
    api_key = config.require_credential("openrouter_api_key", "OpenRouter API key")
    provider = OpenRouterProvider(api_key=api_key)
    model = OpenRouterModel(model_name=config.model_id, provider=provider)

    # Failures are handled by falling back to an empty change set, not by retrying
    return Agent(model=model, system_prompt=SYSTEM_PROMPT, retries=0)


class _InterpreterState:
    """Singleton state for the interpreter instance."""

    instance: Interpreter | None = None


def build_interpreter(config: Settings | None = None) -> Interpreter:
    """Build an interpreter for the given settings.

    Uses the language model when an OpenRouter key is configured and the
    keyword fallback otherwise.
    """
    config = config or settings
    if config.openrouter_api_key:
        return LLMInterpreter(create_agent(config), timeout_seconds=config.interpreter_timeout_seconds)
    logger.info("OpenRouter API key not configured, using keyword interpreter")
    return KeywordInterpreter()


def get_interpreter() -> Interpreter:
    """Get or create the process-wide interpreter."""
    if _InterpreterState.instance is None:
        _InterpreterState.instance = build_interpreter()
    return _InterpreterState.instance


def set_interpreter(interpreter: Interpreter | None) -> None:
    """Replace the process-wide interpreter; None resets to lazy construction."""
    _InterpreterState.instance = interpreter
