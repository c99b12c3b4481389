"""
Context policy table.

Maps each conversation context tag to its generation parameters and its
auto-continuation policy. The table is built once at import and never
mutated; unknown tags resolve to the `general` policy.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Union


class ContextTag(str, Enum):
    HELP = "help"
    LEARN_MORE = "learn_more"
    PRACTICE = "practice"
    QUIZ_FAILED = "quiz_failed"
    SUMMARY = "summary"
    GENERAL = "general"

    @classmethod
    def parse(cls, value: Union[str, "ContextTag", None]) -> "ContextTag":
        """Return the matching tag, or GENERAL for anything unrecognized."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.GENERAL


@dataclass(frozen=True)
class AutoContinuePolicy:
    enabled: bool = False
    max_rounds: int = 0
    # None means "reuse the base max_output_tokens"
    continuation_max_tokens: Optional[int] = None


@dataclass(frozen=True)
class ContextPolicy:
    temperature: float
    max_output_tokens: int
    auto_continue: AutoContinuePolicy = AutoContinuePolicy()

    @property
    def continuation_cap(self) -> int:
        return self.auto_continue.continuation_max_tokens or self.max_output_tokens

    def generation_config(self) -> Dict[str, float]:
        return {
            "temperature": self.temperature,
            "max_output_tokens": self.max_output_tokens,
        }


GENERAL_POLICY = ContextPolicy(
    temperature=0.7,
    max_output_tokens=1000,
    auto_continue=AutoContinuePolicy(enabled=True, max_rounds=1),
)


CONTEXT_POLICIES: Dict[ContextTag, ContextPolicy] = {
    ContextTag.HELP: ContextPolicy(
        temperature=0.7,
        max_output_tokens=1000,
        auto_continue=AutoContinuePolicy(enabled=True, max_rounds=2, continuation_max_tokens=800),
    ),
    ContextTag.LEARN_MORE: ContextPolicy(
        temperature=0.7,
        max_output_tokens=1000,
        auto_continue=AutoContinuePolicy(enabled=True, max_rounds=2, continuation_max_tokens=800),
    ),
    # Exercises are short by design; no continuation.
    ContextTag.PRACTICE: ContextPolicy(
        temperature=0.7,
        max_output_tokens=1000,
        auto_continue=AutoContinuePolicy(enabled=False),
    ),
    # More focused explanations after a wrong quiz answer.
    ContextTag.QUIZ_FAILED: ContextPolicy(
        temperature=0.5,
        max_output_tokens=1000,
        auto_continue=AutoContinuePolicy(enabled=True, max_rounds=1, continuation_max_tokens=600),
    ),
    ContextTag.SUMMARY: ContextPolicy(
        temperature=0.7,
        max_output_tokens=1500,
        auto_continue=AutoContinuePolicy(enabled=True, max_rounds=3, continuation_max_tokens=1000),
    ),
    ContextTag.GENERAL: GENERAL_POLICY,
}


def get_policy(context: Union[str, ContextTag, None]) -> ContextPolicy:
    """Look up the policy for a context tag, defaulting to `general`."""
    if isinstance(context, ContextTag):
        return CONTEXT_POLICIES.get(context, GENERAL_POLICY)
    try:
        tag = ContextTag(str(context).strip().lower())
    except ValueError:
        return GENERAL_POLICY
    return CONTEXT_POLICIES.get(tag, GENERAL_POLICY)
