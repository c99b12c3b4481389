"""Value records passed between the chat pipeline components."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


FINISH_MAX_TOKENS = "MAX_TOKENS"
FINISH_STOP = "STOP"


def estimate_tokens(text: str) -> int:
    """Rough token estimate: one token per four characters, rounded up."""
    return math.ceil(len(text or "") / 4)


@dataclass
class AIResponse:
    """Result of one LLM call.

    `finish_reason == "MAX_TOKENS"` means the reply was cut off by the
    output token cap and may be continued. When `error` is True, `text`
    holds a learner-safe apology and `metadata` carries the error details.
    """

    text: str
    response_time: int = 0
    model: Optional[str] = None
    tokens_estimate: int = 0
    finish_reason: Optional[str] = None
    error: bool = False
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class BoundaryCheck:
    """Outcome of a topic boundary validation."""

    valid: bool
    confidence: float
    matched_keywords: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class PromptBundle:
    """The sections of one assembled prompt, in output order."""

    system_prompt: str
    learner_context: str
    topic_boundary: str
    conversation_context: str
    question: str
    closing: str

    def sections(self) -> List[str]:
        return [
            self.system_prompt,
            self.learner_context,
            self.topic_boundary,
            self.conversation_context,
            self.question,
            self.closing,
        ]

    def render(self) -> str:
        """Join the non-empty sections with blank lines."""
        return "\n\n".join(s for s in self.sections() if s)
