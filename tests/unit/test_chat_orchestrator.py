"""
Unit Tests for ChatOrchestrator

Drives full chat turns against scripted LLM backends to check the call
counts of the continuation loop, the redirect path and the failure shapes.
"""

import dataclasses

import pytest

from core.chat.boundary import TopicBoundaryValidator
from core.chat.models import AIResponse
from core.chat.policies import AutoContinuePolicy, ContextPolicy, get_policy
from core.chat.prompt_builder import PromptBuilder
from runtime.agents.chat_orchestrator import (
    INTERNAL_ERROR_REPLY,
    STATIC_REDIRECT_REPLY,
    ChatOrchestrator,
    ContinuationState,
    accumulate,
    should_continue,
)
from runtime.models.api_models import ChatErrorResponse, ChatRequest, ChatResponse

from fakes import (
    BrokenLogStore,
    ForcedBoundary,
    ListLogStore,
    ScriptedLLM,
    ai,
    ai_error,
)


def make_orchestrator(store, llm, **kwargs):
    kwargs.setdefault("prompt_builder", PromptBuilder(topic_keywords={}))
    return ChatOrchestrator(session_store=store, llm_client=llm, **kwargs)


def request(**overrides):
    data = {"message": "How do joints rotate?", "topic": "robot-arm-movement", "context": "help"}
    data.update(overrides)
    return ChatRequest(**data)


class TestContinuationLoop:

    @pytest.mark.asyncio
    async def test_always_truncated_stops_at_round_cap(self, store):
        llm = ScriptedLLM([ai("more", "MAX_TOKENS")])
        orchestrator = make_orchestrator(store, llm)

        result = await orchestrator.handle_chat(request(context="help"))

        max_rounds = get_policy("help").auto_continue.max_rounds
        assert isinstance(result, ChatResponse)
        assert len(llm.calls) == 1 + max_rounds
        assert result.metadata.continuation_rounds == max_rounds

    @pytest.mark.asyncio
    @pytest.mark.parametrize("max_rounds", [1, 3, 5])
    async def test_round_cap_follows_policy(self, store, max_rounds):
        policy = ContextPolicy(
            temperature=0.7,
            max_output_tokens=100,
            auto_continue=AutoContinuePolicy(enabled=True, max_rounds=max_rounds, continuation_max_tokens=50),
        )
        llm = ScriptedLLM([ai("chunk", "MAX_TOKENS")])
        orchestrator = make_orchestrator(store, llm, policy_lookup=lambda _: policy)

        await orchestrator.handle_chat(request())

        assert len(llm.calls) == 1 + max_rounds

    @pytest.mark.asyncio
    async def test_stops_when_model_finishes(self, store):
        llm = ScriptedLLM([
            ai("First part", "MAX_TOKENS"),
            ai("Second part", "STOP"),
            ai("Never requested", "STOP"),
        ])
        orchestrator = make_orchestrator(store, llm)
        assert get_policy("help").auto_continue.max_rounds >= 2

        result = await orchestrator.handle_chat(request(context="help"))

        assert len(llm.calls) == 2
        assert result.reply == "First part\n\nSecond part"
        assert result.metadata.continuation_rounds == 1

    @pytest.mark.asyncio
    async def test_continuation_prompt_and_token_cap(self, store):
        llm = ScriptedLLM([ai("Partial answer", "MAX_TOKENS"), ai("Rest", "STOP")])
        orchestrator = make_orchestrator(store, llm)

        await orchestrator.handle_chat(request(context="summary"))

        policy = get_policy("summary")
        first, second = llm.calls
        assert first["config"] == {"temperature": 0.7, "max_output_tokens": policy.max_output_tokens}
        assert second["config"]["max_output_tokens"] == policy.auto_continue.continuation_max_tokens
        assert "Partial answer" in second["prompt"]
        assert "Do NOT repeat" in second["prompt"]
        assert '"robot-arm-movement"' in second["prompt"]

    @pytest.mark.asyncio
    async def test_continuation_without_cap_uses_base_cap(self, store):
        llm = ScriptedLLM([ai("Partial", "MAX_TOKENS"), ai("Rest", "STOP")])
        orchestrator = make_orchestrator(store, llm)

        await orchestrator.handle_chat(request(context="general"))

        assert llm.calls[1]["config"]["max_output_tokens"] == get_policy("general").max_output_tokens

    @pytest.mark.asyncio
    async def test_failed_continuation_keeps_partial_reply(self, store):
        llm = ScriptedLLM([ai("Partial answer", "MAX_TOKENS"), ai_error()])
        orchestrator = make_orchestrator(store, llm)

        result = await orchestrator.handle_chat(request(context="help"))

        assert isinstance(result, ChatResponse)
        assert len(llm.calls) == 2
        assert result.reply == "Partial answer"
        assert result.metadata.continuation_rounds == 0

    @pytest.mark.asyncio
    async def test_empty_continuation_stops_loop(self, store):
        llm = ScriptedLLM([ai("Partial answer", "MAX_TOKENS"), ai("   ", "MAX_TOKENS")])
        orchestrator = make_orchestrator(store, llm)

        result = await orchestrator.handle_chat(request(context="summary"))

        assert len(llm.calls) == 2
        assert result.reply == "Partial answer"

    @pytest.mark.asyncio
    async def test_raising_continuation_keeps_partial_reply(self, store):
        llm = ScriptedLLM([ai("Partial answer", "MAX_TOKENS"), TimeoutError()])
        orchestrator = make_orchestrator(store, llm)

        result = await orchestrator.handle_chat(request(context="help"))

        assert isinstance(result, ChatResponse)
        assert len(llm.calls) == 2
        assert result.reply == "Partial answer"
        assert result.metadata.continuation_rounds == 0
        assert store.stats(result.session_id).message_count == 2

    @pytest.mark.asyncio
    async def test_practice_never_continues(self, store):
        llm = ScriptedLLM([ai("Exercise 1", "MAX_TOKENS")])
        orchestrator = make_orchestrator(store, llm)

        result = await orchestrator.handle_chat(request(context="practice"))

        assert len(llm.calls) == 1
        assert result.reply == "Exercise 1"


class TestAccumulator:

    def test_accumulate_returns_new_state(self):
        start = ContinuationState.from_response(ai("abcd", "MAX_TOKENS", response_time=5))
        nxt = accumulate(start, ai("efgh", "STOP", response_time=7))

        assert start.text == "abcd"
        assert start.rounds == 0
        assert nxt.text == "abcd\n\nefgh"
        assert nxt.rounds == 1
        assert nxt.finish_reason == "STOP"
        assert nxt.tokens_estimate == 3  # ceil(10 / 4)
        assert nxt.model_time == 12

    def test_should_continue(self):
        policy = get_policy("help")
        truncated = ContinuationState(text="x", finish_reason="MAX_TOKENS", tokens_estimate=1)

        assert should_continue(truncated, policy) is True
        assert should_continue(dataclasses.replace(truncated, finish_reason="STOP"), policy) is False
        assert should_continue(
            dataclasses.replace(truncated, rounds=policy.auto_continue.max_rounds), policy
        ) is False
        assert should_continue(truncated, get_policy("practice")) is False

    def test_state_is_immutable(self):
        state = ContinuationState(text="x", finish_reason=None, tokens_estimate=1)
        with pytest.raises(dataclasses.FrozenInstanceError):
            state.text = "y"


class TestBoundaryRedirect:

    @pytest.mark.asyncio
    async def test_invalid_reply_is_replaced_by_redirect(self, store):
        llm = ScriptedLLM([
            ai("Here is a great pasta recipe.", "STOP"),
            ai("Let's get back to robot arm movement. What would you like to explore?", "STOP"),
        ])
        validator = ForcedBoundary(valid=False, confidence=0.0)
        orchestrator = make_orchestrator(store, llm, boundary_validator=validator)

        result = await orchestrator.handle_chat(request())

        assert len(llm.calls) == 2
        assert "Politely redirect" in llm.calls[1]["prompt"]
        assert result.reply == "Let's get back to robot arm movement. What would you like to explore?"
        assert "pasta" not in result.reply
        assert result.metadata.boundary_check.valid is False
        assert validator.seen == ["Here is a great pasta recipe."]

    @pytest.mark.asyncio
    async def test_keyword_validator_triggers_redirect(self, store):
        keywords = {"robot-arm-movement": ["robot", "arm", "coordinate", "rotation", "degrees"]}
        llm = ScriptedLLM([ai("Bake at 200C for twenty minutes.", "STOP"), ai("Back to the topic!", "STOP")])
        orchestrator = make_orchestrator(
            store,
            llm,
            prompt_builder=PromptBuilder(topic_keywords=keywords),
            boundary_validator=TopicBoundaryValidator(keywords),
        )

        result = await orchestrator.handle_chat(request())

        assert result.reply == "Back to the topic!"
        assert result.metadata.boundary_check.confidence == 0

    @pytest.mark.asyncio
    async def test_failed_redirect_uses_static_message(self, store):
        llm = ScriptedLLM([ai("Off topic", "STOP"), ai_error()])
        orchestrator = make_orchestrator(store, llm, boundary_validator=ForcedBoundary(valid=False))

        result = await orchestrator.handle_chat(request(topic="control-systems"))

        assert isinstance(result, ChatResponse)
        assert result.reply == STATIC_REDIRECT_REPLY.format(topic="control-systems")

    @pytest.mark.asyncio
    async def test_raising_redirect_uses_static_message(self, store):
        llm = ScriptedLLM([ai("Off topic", "STOP"), ConnectionError("reset")])
        orchestrator = make_orchestrator(store, llm, boundary_validator=ForcedBoundary(valid=False))

        result = await orchestrator.handle_chat(request(topic="control-systems"))

        assert isinstance(result, ChatResponse)
        assert len(llm.calls) == 2
        assert result.reply == STATIC_REDIRECT_REPLY.format(topic="control-systems")

    @pytest.mark.asyncio
    async def test_valid_reply_is_kept(self, store):
        llm = ScriptedLLM([ai("Joints rotate around an axis.", "STOP")])
        orchestrator = make_orchestrator(store, llm, boundary_validator=ForcedBoundary(valid=True, confidence=0.8))

        result = await orchestrator.handle_chat(request())

        assert len(llm.calls) == 1
        assert result.reply == "Joints rotate around an axis."
        assert result.metadata.boundary_check.confidence == 0.8


class TestTurnFlow:

    @pytest.mark.asyncio
    async def test_first_message_scenario(self, store):
        llm = ScriptedLLM([ai("Welcome! Let's start.", "STOP")])
        orchestrator = make_orchestrator(store, llm)

        result = await orchestrator.handle_chat(request(context="help", is_first_message=True))

        assert len(llm.calls) == 1
        assert "RECENT CONVERSATION CONTEXT" not in llm.prompts[0]
        assert result.metadata.boundary_check.valid is True
        assert result.metadata.message_count == 2
        assert result.context.value == "help"
        assert result.topic == "robot-arm-movement"

    @pytest.mark.asyncio
    async def test_turns_are_recorded_and_reused(self, store):
        llm = ScriptedLLM([ai("First answer", "STOP")])
        orchestrator = make_orchestrator(store, llm)

        first = await orchestrator.handle_chat(request(message="First question", is_first_message=True))
        second = await orchestrator.handle_chat(
            request(message="Follow-up question", session_id=first.session_id)
        )

        assert second.session_id == first.session_id
        assert second.metadata.message_count == 4
        assert "RECENT CONVERSATION CONTEXT" in llm.prompts[1]
        assert "Student: First question" in llm.prompts[1]
        assert "Assistant: First answer" in llm.prompts[1]
        assert "Student: Follow-up question" not in llm.prompts[1]

        session = store.get_or_create(first.session_id)
        assert [t.role for t in session.history] == ["user", "assistant", "user", "assistant"]
        assert session.history[1].metadata["boundary_valid"] is True
        assert session.current_context == "help"

    @pytest.mark.asyncio
    async def test_learner_data_reaches_prompt(self, store):
        llm = ScriptedLLM([ai("Hi Ada", "STOP")])
        orchestrator = make_orchestrator(store, llm)

        result = await orchestrator.handle_chat(
            request(learner_data={"id": "L1", "name": "Ada", "attempts": 2}, is_first_message=True)
        )

        assert "- Student Name: Ada" in llm.prompts[0]
        assert "- Previous Attempts: 2" in llm.prompts[0]
        assert store.get_or_create(result.session_id).learner.name == "Ada"

    @pytest.mark.asyncio
    async def test_reply_is_normalized(self, store):
        llm = ScriptedLLM([ai("Intro\n* one\n* two", "STOP")])
        orchestrator = make_orchestrator(store, llm)

        result = await orchestrator.handle_chat(request())

        assert result.reply == "Intro\n\n- one\n- two"


class TestFailures:

    @pytest.mark.asyncio
    async def test_primary_error_fails_turn_but_keeps_session(self, store):
        llm = ScriptedLLM([ai_error("Please try again shortly.")])
        orchestrator = make_orchestrator(store, llm)

        result = await orchestrator.handle_chat(request())

        assert isinstance(result, ChatErrorResponse)
        assert result.error is True
        assert result.message == "AI service error"
        assert result.reply == "Please try again shortly."
        assert len(llm.calls) == 1

        stats = store.stats(result.session_id)
        assert stats is not None
        assert stats.message_count == 1

    @pytest.mark.asyncio
    async def test_unexpected_exception_becomes_structured_failure(self, store):
        llm = ScriptedLLM([RuntimeError("socket exploded")])
        orchestrator = make_orchestrator(store, llm)

        result = await orchestrator.handle_chat(request())

        assert isinstance(result, ChatErrorResponse)
        assert result.message == "Internal server error"
        assert result.reply == INTERNAL_ERROR_REPLY
        assert "socket" not in result.reply

        # The failure names the session that holds the user turn.
        stats = store.stats(result.session_id)
        assert stats is not None
        assert stats.message_count == 1

    @pytest.mark.asyncio
    async def test_failure_reports_new_session_for_unknown_id(self, store):
        orchestrator = make_orchestrator(store, ScriptedLLM([RuntimeError("boom")]))
        stale_id = "6f0e7a52-3c1d-4b55-9a43-2f3c8c1d9e10"

        result = await orchestrator.handle_chat(request(session_id=stale_id))

        assert isinstance(result, ChatErrorResponse)
        assert result.session_id != stale_id
        assert store.stats(result.session_id) is not None

    @pytest.mark.asyncio
    async def test_retry_after_failure_continues_same_session(self, store):
        llm = ScriptedLLM([RuntimeError("boom"), ai("Recovered", "STOP")])
        orchestrator = make_orchestrator(store, llm)

        failed = await orchestrator.handle_chat(request(message="First try"))
        retried = await orchestrator.handle_chat(
            request(message="Second try", session_id=failed.session_id)
        )

        assert isinstance(retried, ChatResponse)
        assert retried.session_id == failed.session_id
        assert retried.metadata.message_count == 3
        assert "Student: First try" in llm.prompts[1]


class TestEventLog:

    @pytest.mark.asyncio
    async def test_events_are_logged(self, store):
        log_store = ListLogStore()
        llm = ScriptedLLM([ai("Part", "MAX_TOKENS"), ai("Done", "STOP")])
        orchestrator = make_orchestrator(store, llm, log_store=log_store)

        await orchestrator.handle_chat(request())

        assert log_store.types() == ["ai_request", "continuation_round", "ai_response"]

    @pytest.mark.asyncio
    async def test_error_event_is_logged(self, store):
        log_store = ListLogStore()
        orchestrator = make_orchestrator(store, ScriptedLLM([ai_error()]), log_store=log_store)

        await orchestrator.handle_chat(request())

        assert log_store.types() == ["ai_request", "ai_error"]

    @pytest.mark.asyncio
    async def test_broken_log_store_does_not_break_turn(self, store):
        orchestrator = make_orchestrator(store, ScriptedLLM([ai("Fine", "STOP")]), log_store=BrokenLogStore())

        result = await orchestrator.handle_chat(request())

        assert isinstance(result, ChatResponse)
        assert result.reply == "Fine"
