"""CrewAI LLM client with retry for model alias and transient empty-response failures."""

import asyncio
import logging
from typing import Any, Callable, Protocol

from src.config import Config

logger = logging.getLogger(__name__)

EMPTY_LLM_RESPONSE_MESSAGE = "Invalid response from LLM call - None or empty."


class InferenceClient(Protocol):
    async def complete(self, messages: list[dict[str, str]], *, max_tokens: int) -> str: ...


def _is_empty_llm_response_error(exc: Exception) -> bool:
    """Return True when CrewAI surfaced an empty/None LLM response failure."""
    return EMPTY_LLM_RESPONSE_MESSAGE in str(exc)


def fallback_model_for_error(model: str, exc: Exception) -> str | None:
    """
    Select fallback model for known failure signatures.

    Args:
        model: Preferred model name.
        exc: Exception raised by the LLM call.
    Returns:
        Fallback model name when known; otherwise None.
    """
    error_text = str(exc)
    if "-latest" in model and "NOT_FOUND" in error_text:
        return model.replace("-latest", "")
    if "flash-lite" in model and (
        "NOT_FOUND" in error_text or _is_empty_llm_response_error(exc)
    ):
        return model.replace("flash-lite", "flash")
    if "2.5-flash" in model and _is_empty_llm_response_error(exc):
        return model.replace("2.5-flash", "2.0-flash")
    return None


def _build_crewai_llm(model: str, max_tokens: int) -> Any:
    from crewai import LLM

    return LLM(model=model, temperature=0.1, max_tokens=max_tokens)


class CrewLLMClient:
    """Runs single-shot chat completions through `crewai.LLM` off the event loop."""

    def __init__(
        self,
        model: str,
        *,
        llm_factory: Callable[[str, int], Any] = _build_crewai_llm,
        api_key_provider: Callable[[], str] = Config.get_gemini_api_key,
    ) -> None:
        self.model = model
        self._llm_factory = llm_factory
        self._api_key_provider = api_key_provider

    def _call(self, model: str, messages: list[dict[str, str]], max_tokens: int) -> str:
        result = self._llm_factory(model, max_tokens).call(messages)
        text = str(result or "").strip()
        if not text:
            raise RuntimeError(EMPTY_LLM_RESPONSE_MESSAGE)
        return text

    def complete_sync(self, messages: list[dict[str, str]], *, max_tokens: int) -> str:
        """Call the model, retrying once on empty replies, then once on a fallback model."""
        self._api_key_provider()
        try:
            return self._call(self.model, messages, max_tokens)
        except Exception as exc:
            effective_exc = exc
            if _is_empty_llm_response_error(exc):
                logger.warning("Retrying LLM call once for empty response on model '%s'.", self.model)
                try:
                    return self._call(self.model, messages, max_tokens)
                except Exception as retry_exc:
                    effective_exc = retry_exc

            fallback_model = fallback_model_for_error(self.model, effective_exc)
            if fallback_model and fallback_model != self.model:
                logger.warning("Retrying LLM call with fallback model '%s'.", fallback_model)
                return self._call(fallback_model, messages, max_tokens)
            raise effective_exc

    async def complete(self, messages: list[dict[str, str]], *, max_tokens: int) -> str:
        return await asyncio.to_thread(self.complete_sync, messages, max_tokens=max_tokens)
