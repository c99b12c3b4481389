"""
Keyword-overlap check for replies that may have drifted off topic.

This is a cheap heuristic backstop, not a semantic classifier. Topics
without configured keywords always pass with a neutral confidence.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from .models import BoundaryCheck


logger = logging.getLogger(__name__)


NEUTRAL_CONFIDENCE = 0.5
MIN_CONFIDENCE = 0.2


class TopicBoundaryValidator:
    """Scores a reply against the keyword list for its topic."""

    def __init__(self, topic_keywords: Optional[Dict[str, List[str]]] = None) -> None:
        self.topic_keywords = dict(topic_keywords or {})

    def validate(self, response_text: str, topic: Optional[str]) -> BoundaryCheck:
        keywords = self.topic_keywords.get(topic) if topic else None
        if not keywords:
            return BoundaryCheck(valid=True, confidence=NEUTRAL_CONFIDENCE)

        haystack = (response_text or "").lower()
        matches = [kw for kw in keywords if kw.lower() in haystack]

        confidence = len(matches) / len(keywords)
        valid = confidence > MIN_CONFIDENCE

        logger.debug(
            "[BOUNDARY] topic=%r confidence=%.2f valid=%s matches=%d/%d",
            topic,
            confidence,
            valid,
            len(matches),
            len(keywords),
        )
        return BoundaryCheck(valid=valid, confidence=confidence, matched_keywords=matches)
