"""ChatOrchestrator implementation.

Drives one chat turn through:

    Drafting -> AwaitingModel -> (Continuing)* -> Validating
             -> (Redirecting)? -> Done

- Drafting: get-or-create the session, record topic/context and the
  learner's message, assemble the prompt, look up the context policy.
- AwaitingModel: primary LLM call. An error here fails the turn with a
  structured ChatErrorResponse (the session stays valid for a retry).
- Continuing: while the reply was cut off by the token cap and the
  policy allows it, ask the model to continue, up to `max_rounds` times.
  A failed, raising or empty continuation ends the loop and keeps what
  we have.
- Validating: keyword boundary check on the full reply.
- Redirecting: if the check fails, one more call asking the model to
  steer the learner back to the topic; its text replaces the reply. If
  that call fails, a static redirect is used.
- Done: normalize Markdown, append the assistant turn, build the result.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, replace
from typing import Any, Callable, Optional, Union

from core.api.llm_client import LLMBackend
from core.chat import prompts
from core.chat.boundary import TopicBoundaryValidator
from core.chat.markdown import normalize_markdown
from core.chat.models import FINISH_MAX_TOKENS, AIResponse, BoundaryCheck, estimate_tokens
from core.chat.policies import ContextPolicy, ContextTag, get_policy
from core.chat.prompt_builder import PromptBuilder

from ..models.api_models import (
    BoundaryCheckInfo,
    ChatErrorResponse,
    ChatMetadata,
    ChatRequest,
    ChatResponse,
)
from ..store.session_store import SessionStore


logger = logging.getLogger(__name__)


INTERNAL_ERROR_REPLY = (
    "I apologize, but I'm experiencing technical difficulties right now. "
    "Please try again in a moment, or rephrase your question if the issue persists."
)

STATIC_REDIRECT_REPLY = (
    "I'm focused on helping you master {topic}. That question seems outside our "
    "current learning scope. What specific aspect of {topic} would you like to explore?"
)


# ---------------------------------------------------------------------------
# Continuation accumulator
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ContinuationState:
    """Reply text accumulated across the primary call and its continuations."""

    text: str
    finish_reason: Optional[str]
    tokens_estimate: int
    rounds: int = 0
    model_time: int = 0

    @classmethod
    def from_response(cls, response: AIResponse) -> "ContinuationState":
        return cls(
            text=response.text,
            finish_reason=response.finish_reason,
            tokens_estimate=estimate_tokens(response.text),
            model_time=response.response_time,
        )


def accumulate(state: ContinuationState, round_result: AIResponse) -> ContinuationState:
    """Return a new state with one continuation round appended."""
    text = f"{state.text}\n\n{round_result.text}" if state.text else round_result.text
    return ContinuationState(
        text=text,
        finish_reason=round_result.finish_reason,
        tokens_estimate=estimate_tokens(text),
        rounds=state.rounds + 1,
        model_time=state.model_time + round_result.response_time,
    )


def should_continue(state: ContinuationState, policy: ContextPolicy) -> bool:
    auto = policy.auto_continue
    return (
        auto.enabled
        and state.finish_reason == FINISH_MAX_TOKENS
        and state.rounds < auto.max_rounds
    )


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class ChatOrchestrator:
    """Conversation flow for the tutor chat.

    Parameters
    ----------
    session_store:
        Store holding the learner's conversation state.
    llm_client:
        Anything implementing `generate_response(prompt, generation_config)`.
    prompt_builder:
        Assembles the full prompt for the primary call.
    boundary_validator:
        Object exposing `validate(text, topic) -> BoundaryCheck`.
    log_store:
        Optional event sink exposing `log_event(event_type, payload)`.
    policy_lookup:
        Context tag -> ContextPolicy. Defaults to the static table.
    """

    def __init__(
        self,
        session_store: SessionStore,
        llm_client: LLMBackend,
        prompt_builder: Optional[PromptBuilder] = None,
        boundary_validator: Optional[TopicBoundaryValidator] = None,
        log_store: Optional[Any] = None,
        policy_lookup: Callable[[Any], ContextPolicy] = get_policy,
    ) -> None:
        self.session_store = session_store
        self.llm_client = llm_client
        self.prompt_builder = prompt_builder or PromptBuilder()
        self.boundary_validator = boundary_validator or TopicBoundaryValidator()
        self.log_store = log_store
        self.policy_lookup = policy_lookup

    async def handle_chat(self, request: ChatRequest) -> Union[ChatResponse, ChatErrorResponse]:
        """Run one chat turn. Never raises; failures come back structured."""
        start = time.monotonic()
        # Filled in by _handle_chat once the session is resolved, so a
        # failure report carries the id of the session holding the user turn.
        turn = {"session_id": str(request.session_id) if request.session_id else None}

        try:
            return await self._handle_chat(request, start, turn)
        except Exception:
            logger.exception(
                "[CHAT] Unexpected error session_id=%s topic=%r context=%s",
                turn["session_id"],
                request.topic,
                request.context.value,
            )
            return ChatErrorResponse(
                message="Internal server error",
                reply=INTERNAL_ERROR_REPLY,
                session_id=turn["session_id"],
            )

    # ------------------------------------------------------------------
    # Turn stages
    # ------------------------------------------------------------------

    async def _handle_chat(
        self,
        request: ChatRequest,
        start: float,
        turn: dict,
    ) -> Union[ChatResponse, ChatErrorResponse]:
        context = ContextTag.parse(request.context)
        topic = request.topic

        # (1) Drafting
        learner_patch = request.learner_data.as_patch() if request.learner_data else {}
        session = self.session_store.get_or_create(
            str(request.session_id) if request.session_id else None,
            learner_patch,
        )
        session_id = session.id
        turn["session_id"] = session_id
        prior_history = list(session.history)

        self.session_store.update_context(session_id, topic, context.value)
        self.session_store.add_message(
            session_id,
            "user",
            request.message,
            {"topic": topic, "context": context.value, "is_first_message": request.is_first_message},
        )

        prompt = self.prompt_builder.build_prompt(
            message=request.message,
            topic=topic,
            context=context,
            learner=session.learner,
            history=prior_history,
            is_first_message=request.is_first_message,
        )
        policy = self.policy_lookup(context)

        # (2) AwaitingModel
        self._log_event(
            "ai_request",
            {"session_id": session_id, "topic": topic, "context": context.value, "prompt_length": len(prompt)},
        )
        primary = await self.llm_client.generate_response(prompt, policy.generation_config())

        if primary.error:
            logger.error(
                "[CHAT] AI service returned error session_id=%s topic=%r context=%s error=%s",
                session_id,
                topic,
                context.value,
                primary.metadata.get("error_message"),
            )
            self._log_event(
                "ai_error",
                {"session_id": session_id, "topic": topic, "context": context.value, **primary.metadata},
            )
            return ChatErrorResponse(
                message="AI service error",
                reply=primary.text,
                session_id=session_id,
            )

        # (3) Continuing
        state = await self._continue(ContinuationState.from_response(primary), policy, topic, session_id)

        # (4) Validating
        boundary = self.boundary_validator.validate(state.text, topic)
        reply_text = state.text

        # (5) Redirecting
        if not boundary.valid:
            reply_text, redirect_time = await self._redirect(topic, policy, boundary, session_id)
            state = replace(state, model_time=state.model_time + redirect_time)

        # (6) Done
        reply = normalize_markdown(reply_text)
        self.session_store.add_message(
            session_id,
            "assistant",
            reply,
            {
                "topic": topic,
                "context": context.value,
                "response_time": state.model_time,
                "tokens_used": estimate_tokens(reply),
                "boundary_valid": boundary.valid,
                "continuation_rounds": state.rounds,
            },
        )
        self._log_event(
            "ai_response",
            {
                "session_id": session_id,
                "topic": topic,
                "context": context.value,
                "reply_length": len(reply),
                "boundary_valid": boundary.valid,
                "continuation_rounds": state.rounds,
                "finish_reason": state.finish_reason,
            },
        )

        return ChatResponse(
            reply=reply,
            session_id=session_id,
            context=context,
            topic=topic,
            metadata=ChatMetadata(
                response_time=int((time.monotonic() - start) * 1000),
                ai_response_time=state.model_time,
                message_count=session.message_count,
                continuation_rounds=state.rounds,
                boundary_check=BoundaryCheckInfo(valid=boundary.valid, confidence=boundary.confidence),
            ),
        )

    async def _continue(
        self,
        state: ContinuationState,
        policy: ContextPolicy,
        topic: str,
        session_id: str,
    ) -> ContinuationState:
        """Extend a truncated reply; stops on natural completion, failure, or the round cap."""
        while should_continue(state, policy):
            continuation_prompt = prompts.PROMPT_CONTINUATION.format(topic=topic, partial=state.text)
            try:
                result = await self.llm_client.generate_response(
                    continuation_prompt,
                    {"temperature": policy.temperature, "max_output_tokens": policy.continuation_cap},
                )
            except Exception as e:
                logger.warning(
                    "[CHAT] Continuation round %d raised for session_id=%s, keeping partial reply: %s",
                    state.rounds + 1,
                    session_id,
                    e,
                )
                break

            if result.error or not (result.text or "").strip():
                logger.warning(
                    "[CHAT] Continuation round %d failed for session_id=%s, keeping partial reply",
                    state.rounds + 1,
                    session_id,
                )
                break

            state = accumulate(state, result)
            logger.info(
                "[CHAT] Continuation round %d session_id=%s finish_reason=%s tokens_estimate=%d",
                state.rounds,
                session_id,
                state.finish_reason,
                state.tokens_estimate,
            )
            self._log_event(
                "continuation_round",
                {
                    "session_id": session_id,
                    "round": state.rounds,
                    "finish_reason": state.finish_reason,
                    "tokens_estimate": state.tokens_estimate,
                },
            )
        return state

    async def _redirect(
        self,
        topic: str,
        policy: ContextPolicy,
        boundary: BoundaryCheck,
        session_id: str,
    ) -> tuple:
        """Replace an off-topic reply with a redirect back to the topic."""
        logger.warning(
            "[CHAT] Response outside topic boundary session_id=%s topic=%r confidence=%.2f",
            session_id,
            topic,
            boundary.confidence,
        )
        self._log_event(
            "boundary_redirect",
            {"session_id": session_id, "topic": topic, "confidence": boundary.confidence},
        )

        try:
            result = await self.llm_client.generate_response(
                prompts.PROMPT_REDIRECT.format(topic=topic),
                policy.generation_config(),
            )
        except Exception as e:
            logger.warning(
                "[CHAT] Redirect call raised for session_id=%s, using static redirect: %s",
                session_id,
                e,
            )
            return STATIC_REDIRECT_REPLY.format(topic=topic), 0
        if result.error or not (result.text or "").strip():
            logger.warning("[CHAT] Redirect call failed for session_id=%s, using static redirect", session_id)
            return STATIC_REDIRECT_REPLY.format(topic=topic), result.response_time
        return result.text, result.response_time

    def _log_event(self, event_type: str, payload: dict) -> None:
        if self.log_store is None:
            return
        try:
            self.log_store.log_event(event_type=event_type, payload=payload)
        except Exception as e:
            # Event logging must not affect the turn.
            logger.warning("[CHAT] Failed to log event %s: %s", event_type, e)
