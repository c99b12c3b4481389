"""
LogStore: append-only event logging for chat runtime events.

Writes JSON lines to:

    <log_dir>/chat_YYYY-MM-DD.jsonl

Each line is {"timestamp", "event_type", "payload"}. The orchestrator
records ai_request / ai_response / continuation_round / boundary_redirect /
ai_error events here; it never lets a logging failure affect a turn.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional


logger = logging.getLogger(__name__)


class LogStore:
    """Date-partitioned JSONL event sink."""

    def __init__(self, log_dir: str = "runtime/data/logs"):
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, when: Optional[datetime] = None) -> Path:
        when = when or datetime.now(timezone.utc)
        return self.log_dir / f"chat_{when.strftime('%Y-%m-%d')}.jsonl"

    def log_event(self, event_type: str, payload: dict) -> None:
        """Append an event to today's log file."""
        now = datetime.now(timezone.utc)
        record = {
            "timestamp": now.isoformat(),
            "event_type": event_type,
            "payload": payload,
        }
        with self.path_for(now).open("a", encoding="utf-8") as f:
            f.write(json.dumps(record, ensure_ascii=False, default=str))
            f.write("\n")


class ConsoleLogStore:
    """Log sink used when no log directory is configured.

    Events go to the standard logger at DEBUG level instead of a file.
    """

    def log_event(self, event_type: str, payload: dict) -> None:
        logger.debug("[EVENT] %s: %s", event_type, payload)
