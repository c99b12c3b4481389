"""
Session-related models for the chat runtime.

These describe:
- LearnerData: optional learner metadata sent by the course page
- Turn entries (user / assistant)
- Session: one learner's ongoing conversation
- SessionStats: read-only snapshot returned by the stats query
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class LearnerData(BaseModel):
    id: Optional[str] = None
    name: Optional[str] = None
    progress: Optional[str] = None
    attempts: int = 0


class Turn(BaseModel):
    role: str          # "user" or "assistant"
    text: str
    timestamp: str = Field(default_factory=utc_now_iso)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class Session(BaseModel):
    id: str
    learner: LearnerData = Field(default_factory=LearnerData)
    history: List[Turn] = Field(default_factory=list)
    current_topic: Optional[str] = None
    current_context: Optional[str] = None
    message_count: int = 0
    created_at: str = Field(default_factory=utc_now_iso)
    last_activity: str = Field(default_factory=utc_now_iso)


class SessionStats(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    message_count: int
    conversation_length: int
    duration: int                  # milliseconds since creation
    last_activity: str
    current_topic: Optional[str] = None
    current_context: Optional[str] = None
