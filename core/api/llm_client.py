"""
core.api.llm_client

Thin async wrapper around an OpenAI-compatible Chat Completions API.

Used by:
  - runtime/agents/chat_orchestrator.py
  - runtime/api/health_routes.py

The wrapper never raises on provider failures: transport errors, timeouts
and malformed responses come back as an AIResponse with `error=True` and a
learner-safe apology in `text`.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, Optional, Protocol

from openai import APITimeoutError, AsyncOpenAI, OpenAIError

from configs.llm_config import DEFAULT_GENERATION_CONFIG
from core.chat.models import FINISH_MAX_TOKENS, FINISH_STOP, AIResponse, estimate_tokens
from exceptions.exceptions import LLMClientError


logger = logging.getLogger(__name__)


TECHNICAL_DIFFICULTIES_REPLY = (
    "I'm experiencing technical difficulties right now. Please try again in a "
    "moment, or rephrase your question if the issue persists."
)

EMPTY_RESPONSE_REPLY = (
    "I apologize, but I'm having trouble generating a response right now. "
    "Could you please rephrase your question?"
)

HEALTH_PROMPT = "Respond with 'OK' if you're working correctly."

# Provider finish reasons -> the names used throughout the chat pipeline.
_FINISH_REASONS = {
    "length": FINISH_MAX_TOKENS,
    "max_tokens": FINISH_MAX_TOKENS,
    "stop": FINISH_STOP,
}


def map_finish_reason(reason: Optional[str]) -> Optional[str]:
    if reason is None:
        return None
    return _FINISH_REASONS.get(reason.lower(), reason.upper())


# -------------------------------------------------------------------
# Backend interface
# -------------------------------------------------------------------


class LLMBackend(Protocol):
    """
    Anything the orchestrator can send prompts to.

    LLMClient is the production implementation; tests plug in scripted
    fakes with the same two coroutines.
    """

    async def generate_response(
        self,
        prompt: str,
        generation_config: Optional[Dict[str, Any]] = None,
    ) -> AIResponse:
        ...

    async def health_check(self) -> Dict[str, Any]:
        ...


# -------------------------------------------------------------------
# OpenAI-compatible client
# -------------------------------------------------------------------


class LLMClient:
    """Calls the chat completions endpoint with a single user message.

    Parameters
    ----------
    api_key : str
        Provider API key.
    model : str
        Model name sent with every request.
    base_url : str, optional
        Override for OpenAI-compatible providers.
    timeout : float
        Per-call timeout in seconds; a timeout is reported as an error.
    default_generation_config : dict, optional
        Base generation settings merged under each call's overrides.
    client : AsyncOpenAI, optional
        Pre-built SDK client (mainly for tests).
    """

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: Optional[str] = None,
        timeout: float = 25.0,
        default_generation_config: Optional[Dict[str, Any]] = None,
        client: Optional[AsyncOpenAI] = None,
    ) -> None:
        self.model = model
        self.timeout = timeout
        self.default_generation_config = dict(
            default_generation_config or DEFAULT_GENERATION_CONFIG
        )
        self._client = client or AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=0,
        )

    async def generate_response(
        self,
        prompt: str,
        generation_config: Optional[Dict[str, Any]] = None,
    ) -> AIResponse:
        config = {**self.default_generation_config, **(generation_config or {})}
        start = time.monotonic()

        logger.debug(
            "[LLM] Sending request model=%s prompt_length=%d config=%s",
            self.model,
            len(prompt),
            config,
        )

        try:
            text, finish_reason = await self._complete(prompt, config)
        except (OpenAIError, LLMClientError) as e:
            elapsed = int((time.monotonic() - start) * 1000)
            logger.error(
                "[LLM] Request failed after %dms: %s: %s",
                elapsed,
                type(e).__name__,
                e,
            )
            return AIResponse(
                text=TECHNICAL_DIFFICULTIES_REPLY,
                response_time=elapsed,
                model=self.model,
                error=True,
                metadata={
                    "error_type": "timeout" if isinstance(e, APITimeoutError) else type(e).__name__,
                    "error_message": str(e),
                },
            )

        elapsed = int((time.monotonic() - start) * 1000)
        logger.info(
            "[LLM] Response ok in %dms length=%d finish_reason=%s",
            elapsed,
            len(text),
            finish_reason,
        )
        return AIResponse(
            text=text,
            response_time=elapsed,
            model=self.model,
            tokens_estimate=estimate_tokens(text),
            finish_reason=finish_reason,
        )

    async def health_check(self) -> Dict[str, Any]:
        result = await self.generate_response(
            HEALTH_PROMPT,
            generation_config={"max_output_tokens": 10},
        )
        return {
            "status": "degraded" if result.error else "healthy",
            "response_time": result.response_time,
            "model": self.model,
            "error": result.error,
        }

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _complete(self, prompt: str, config: Dict[str, Any]) -> tuple:
        kwargs: Dict[str, Any] = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "timeout": self.timeout,
        }
        if config.get("temperature") is not None:
            kwargs["temperature"] = config["temperature"]
        if config.get("top_p") is not None:
            kwargs["top_p"] = config["top_p"]
        if config.get("max_output_tokens") is not None:
            kwargs["max_tokens"] = int(config["max_output_tokens"])

        completion = await self._client.chat.completions.create(**kwargs)

        if not completion.choices:
            logger.warning("[LLM] Response had no choices")
            return EMPTY_RESPONSE_REPLY, FINISH_STOP

        choice = completion.choices[0]
        if choice.message is None:
            raise LLMClientError("Response choice is missing its message")

        return choice.message.content or "", map_finish_reason(choice.finish_reason)


class UnconfiguredLLMClient:
    """Backend used when no API key is configured.

    Every call fails like a provider outage, so chat turns return the
    standard apology and the health check reports the service as down.
    """

    model = None

    async def generate_response(
        self,
        prompt: str,
        generation_config: Optional[Dict[str, Any]] = None,
    ) -> AIResponse:
        logger.error("[LLM] No API key configured; cannot call the model")
        return AIResponse(
            text=TECHNICAL_DIFFICULTIES_REPLY,
            error=True,
            metadata={"error_type": "not_configured", "error_message": "LLM_API_KEY is not set"},
        )

    async def health_check(self) -> Dict[str, Any]:
        return {"status": "unhealthy", "response_time": 0, "model": None, "error": True}
