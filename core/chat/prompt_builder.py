"""
Prompt assembly for the chat pipeline.

PromptBuilder combines, in order:

  1. the system prompt for the context (topic placeholders substituted)
  2. a LEARNER CONTEXT block, when the learner has a name or id
  3. a TOPIC BOUNDARY directive with the topic's keywords
  4. a RECENT CONVERSATION CONTEXT excerpt (skipped on the first message)
  5. the current question and a closing instruction

Sections are joined with blank lines. Assembly never raises: any failure
while building a section produces the minimal fallback prompt instead.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

from configs.llm_config import (
    DEFAULT_TOPIC_CONCEPT,
    SYSTEM_PROMPTS,
    TOPIC_CONCEPTS,
)
from exceptions.exceptions import PromptAssemblyError

from . import prompts
from .models import PromptBundle
from .policies import ContextTag


logger = logging.getLogger(__name__)


RECENT_TURNS = 3
TURN_PREVIEW_CHARS = 200


def _field(obj: Any, name: str, default: Any = None) -> Any:
    """Read `name` from a mapping or an attribute-style object."""
    if obj is None:
        return default
    if isinstance(obj, Mapping):
        return obj.get(name, default)
    return getattr(obj, name, default)


class PromptBuilder:
    """Builds the full text prompt for one chat turn.

    Parameters
    ----------
    system_prompts:
        Context tag -> system prompt template. Must contain "general".
    topic_keywords:
        Topic -> keyword list used in the TOPIC BOUNDARY directive.
        An empty map is allowed (course-agnostic mode).
    topic_concepts:
        Topic -> phrase substituted for [TOPIC_SPECIFIC_CONCEPT].
    """

    def __init__(
        self,
        system_prompts: Optional[Dict[str, str]] = None,
        topic_keywords: Optional[Dict[str, List[str]]] = None,
        topic_concepts: Optional[Dict[str, str]] = None,
    ) -> None:
        self.system_prompts = dict(system_prompts or SYSTEM_PROMPTS)
        self.topic_keywords = dict(topic_keywords or {})
        self.topic_concepts = dict(topic_concepts if topic_concepts is not None else TOPIC_CONCEPTS)

        if ContextTag.GENERAL.value not in self.system_prompts:
            raise ValueError("system_prompts must define a 'general' prompt")

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def build_prompt(
        self,
        message: str,
        topic: str,
        context: Any = ContextTag.GENERAL,
        learner: Any = None,
        history: Optional[Sequence[Any]] = None,
        is_first_message: bool = False,
    ) -> str:
        """Return the full prompt text, or the fallback prompt on failure."""
        try:
            bundle = self._assemble(
                message=message,
                topic=topic,
                context=context,
                learner=learner,
                history=history,
                is_first_message=is_first_message,
            )
            prompt = bundle.render()
        except Exception as e:
            logger.error(
                "[PROMPT] Assembly failed for topic=%r context=%r: %s",
                topic,
                context,
                e,
            )
            return self.fallback_prompt(message, topic)

        logger.debug(
            "[PROMPT] Built prompt topic=%r context=%s length=%d first=%s",
            topic,
            ContextTag.parse(context).value,
            len(prompt),
            is_first_message,
        )
        return prompt

    def fallback_prompt(self, message: str, topic: str) -> str:
        return prompts.PROMPT_FALLBACK.format(
            system_prompt=self.system_prompts[ContextTag.GENERAL.value],
            topic=topic,
            message=message,
        )

    def system_prompt(self, context: Any, topic: str) -> str:
        """Return the context's system prompt with topic placeholders filled."""
        tag = ContextTag.parse(context)
        base = self.system_prompts.get(tag.value) or self.system_prompts[ContextTag.GENERAL.value]
        return (
            base.replace("[CURRENT_TOPIC]", topic)
            .replace("[TOPIC_SPECIFIC_CONCEPT]", self.topic_concept(topic))
        )

    def topic_concept(self, topic: str) -> str:
        return self.topic_concepts.get(topic, DEFAULT_TOPIC_CONCEPT)

    def keywords_for(self, topic: str) -> List[str]:
        return list(self.topic_keywords.get(topic, []))

    def contextual_initial_message(self, context: Any, topic: str) -> str:
        """Opening learner message for a chat started from a course page."""
        tag = ContextTag.parse(context)
        template = prompts.INITIAL_MESSAGES.get(tag.value, prompts.INITIAL_MESSAGES["general"])
        return template.format(topic=topic)

    # ------------------------------------------------------------------
    # Section builders
    # ------------------------------------------------------------------

    def _assemble(
        self,
        message: str,
        topic: str,
        context: Any,
        learner: Any,
        history: Optional[Sequence[Any]],
        is_first_message: bool,
    ) -> PromptBundle:
        if not isinstance(message, str) or not isinstance(topic, str):
            raise PromptAssemblyError("question", "message and topic must be strings")

        return PromptBundle(
            system_prompt=self._section("system", self.system_prompt, context, topic),
            learner_context=self._section("learner", self._learner_context, learner, topic),
            topic_boundary=self._section("boundary", self._topic_boundary, topic),
            conversation_context=self._section(
                "history", self._conversation_context, history, is_first_message
            ),
            question=prompts.PROMPT_QUESTION.format(message=message),
            closing=prompts.PROMPT_CLOSING,
        )

    @staticmethod
    def _section(name: str, build, *args) -> str:
        try:
            return build(*args)
        except PromptAssemblyError:
            raise
        except Exception as e:
            raise PromptAssemblyError(name, str(e)) from e

    def _learner_context(self, learner: Any, topic: str) -> str:
        name = _field(learner, "name")
        learner_id = _field(learner, "id")
        if not name and not learner_id:
            return ""

        lines = [prompts.PROMPT_LEARNER_CONTEXT_HEADER]
        if name:
            lines.append(f"- Student Name: {name}")
        progress = _field(learner, "progress")
        if progress:
            lines.append(f"- Learning Progress: {progress}")
        attempts = _field(learner, "attempts")
        if attempts:
            lines.append(f"- Previous Attempts: {attempts}")
        lines.append(f"- Current Topic: {topic}")
        lines.append(prompts.PROMPT_PERSONALIZE)
        return "\n".join(lines)

    def _topic_boundary(self, topic: str) -> str:
        return prompts.PROMPT_TOPIC_BOUNDARY.format(
            topic=topic,
            keywords=", ".join(self.keywords_for(topic)),
        )

    def _conversation_context(
        self,
        history: Optional[Sequence[Any]],
        is_first_message: bool,
    ) -> str:
        if is_first_message or not history:
            return ""

        lines = []
        for turn in list(history)[-RECENT_TURNS:]:
            role = _field(turn, "role")
            text = _field(turn, "text")
            if text is None:
                text = _field(turn, "content", "")
            label = "Student" if role == "user" else "Assistant"
            preview = text[:TURN_PREVIEW_CHARS]
            if len(text) > TURN_PREVIEW_CHARS:
                preview += "..."
            lines.append(f"{label}: {preview}")

        return prompts.PROMPT_CONVERSATION_CONTEXT.format(transcript="\n".join(lines))
