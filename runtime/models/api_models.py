"""
HTTP request/response models for the chat runtime API.

Field names are snake_case in Python and camelCase on the wire.
"""

from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from core.chat.policies import ContextTag

from .session_models import SessionStats


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LearnerPatch(CamelModel):
    """Learner fields sent with a chat request; all optional."""

    id: Optional[str] = None
    name: Optional[str] = None
    progress: Optional[str] = None
    attempts: Optional[int] = Field(default=None, ge=0)

    def as_patch(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True, exclude_none=True)


class ChatRequest(CamelModel):
    message: str = Field(min_length=1, max_length=2000)
    topic: str = Field(min_length=1, max_length=100)
    context: ContextTag = ContextTag.GENERAL
    session_id: Optional[UUID] = None
    learner_data: Optional[LearnerPatch] = None
    is_first_message: bool = False

    @field_validator("message", "topic")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value


class BoundaryCheckInfo(CamelModel):
    valid: bool
    confidence: float


class ChatMetadata(CamelModel):
    response_time: int
    ai_response_time: Optional[int] = None
    message_count: int
    continuation_rounds: int = 0
    boundary_check: BoundaryCheckInfo


class ChatResponse(CamelModel):
    reply: str
    session_id: str
    context: ContextTag
    topic: str
    metadata: ChatMetadata


class ChatErrorResponse(CamelModel):
    """
    Structured failure for a chat turn.

    `reply` is always a polite, learner-safe apology; `session_id` is kept
    so the learner can retry in the same conversation.
    """

    error: bool = True
    message: str
    reply: str
    session_id: Optional[str] = None
    details: Optional[str] = None


class SessionStatsResponse(CamelModel):
    session_id: str
    stats: SessionStats


class SessionCleanupResponse(CamelModel):
    message: str
    session_id: str
