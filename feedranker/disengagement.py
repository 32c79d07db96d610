"""
Session disengagement detection.

A session is classified from scratch on every call by looking at its most
recent engagements. Nothing is persisted: the verdict is a pure function of
the window, so it can never drift from the underlying events.
"""

from dataclasses import dataclass
from typing import List, Sequence
import logging

import numpy as np
from sqlalchemy.orm import Session

from .config import Settings, settings as default_settings
from .database import Engagement
from .preferences import recent_engagements
from .schemas import DisengagementAssessment, DisengagementMetrics

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DisengagementPolicy:
    window: int = 5
    min_events: int = 3
    very_low_completion: float = 20.0
    very_low_completion_weight: float = 40.0
    low_completion: float = 40.0
    low_completion_weight: float = 20.0
    skip_rate: float = 0.6
    skip_rate_weight: float = 30.0
    low_engagement: float = 30.0
    low_engagement_weight: float = 20.0
    rapid_scroll_seconds: float = 10.0
    rapid_scroll_weight: float = 10.0
    threshold: float = 30.0

    @classmethod
    def from_settings(cls, settings: Settings = default_settings) -> "DisengagementPolicy":
        return cls(
            window=settings.disengage_window,
            min_events=settings.disengage_min_events,
            very_low_completion=settings.disengage_very_low_completion,
            low_completion=settings.disengage_low_completion,
            skip_rate=settings.disengage_skip_rate,
            low_engagement=settings.disengage_low_engagement,
            rapid_scroll_seconds=settings.disengage_rapid_scroll_seconds,
            threshold=settings.disengage_threshold,
        )


def _mean_inter_arrival(events: Sequence[Engagement]) -> float:
    if len(events) < 2:
        return 0.0
    stamps = sorted(e.created_at.timestamp() for e in events if e.created_at is not None)
    if len(stamps) < 2:
        return 0.0
    return float(np.mean(np.diff(stamps)))


def assess_window(events: Sequence[Engagement], policy: DisengagementPolicy = DisengagementPolicy()) -> DisengagementAssessment:
    """
    Classify a window of engagements (newest first) as engaged or disengaging.

    Severity is the sum of independent clauses, capped at 100:
    very low / low completion, excessive skipping, low engagement score and
    rapid scrolling. Fewer than ``policy.min_events`` events is always engaged.
    """
    events = list(events)[:policy.window]
    if len(events) < policy.min_events:
        return DisengagementAssessment()

    avg_completion = float(np.mean([e.completion_rate or 0.0 for e in events]))
    avg_engagement = float(np.mean([e.engagement_score or 0.0 for e in events]))
    skip_rate = sum(1 for e in events if e.skipped_at is not None) / len(events)
    inter_arrival = _mean_inter_arrival(events)

    severity = 0.0
    reasons: List[str] = []

    if avg_completion < policy.very_low_completion:
        severity += policy.very_low_completion_weight
        reasons.append("very-low-completion")
    elif avg_completion < policy.low_completion:
        severity += policy.low_completion_weight
        reasons.append("low-completion")

    if skip_rate > policy.skip_rate:
        severity += policy.skip_rate_weight
        reasons.append("excessive-skipping")

    if avg_engagement < policy.low_engagement:
        severity += policy.low_engagement_weight
        reasons.append("low-engagement")

    if 0 < inter_arrival < policy.rapid_scroll_seconds:
        severity += policy.rapid_scroll_weight
        reasons.append("rapid-scrolling")

    severity = min(100.0, severity)
    return DisengagementAssessment(
        is_disengaging=severity > policy.threshold,
        severity=severity,
        reasons=reasons,
        metrics=DisengagementMetrics(
            avg_completion_rate=avg_completion,
            avg_engagement_score=avg_engagement,
            skip_rate=skip_rate,
            avg_inter_arrival_seconds=inter_arrival,
            window_size=len(events),
        ),
    )


def detect_disengagement(db: Session, user_id: int, session_id: str, policy: DisengagementPolicy = None) -> DisengagementAssessment:
    policy = policy or DisengagementPolicy.from_settings()
    window = recent_engagements(db, user_id, policy.window, session_id=session_id)
    assessment = assess_window(window, policy)
    if assessment.is_disengaging:
        logger.info(
            f"User {user_id} is disengaging in session {session_id} "
            f"(severity: {assessment.severity}, reasons: {','.join(assessment.reasons)})"
        )
    return assessment
