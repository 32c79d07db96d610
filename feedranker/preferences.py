from collections import defaultdict
from typing import Dict, List, Optional
import logging

import numpy as np
from sqlalchemy import func
from sqlalchemy.orm import Session

from .config import settings
from .database import Engagement
from .schemas import CategoryStat, EngagementStats, InteractionCounts

logger = logging.getLogger(__name__)

# Starting distribution for users without engagement history
DEFAULT_PREFERENCES = {
    "education": 0.30,
    "science": 0.20,
    "math": 0.15,
    "coding": 0.15,
    "other": 0.20,
}

UNCATEGORIZED = "other"


def recent_engagements(db: Session, user_id: int, limit: int, session_id: Optional[str] = None) -> List[Engagement]:
    """Most recent engagements for a user (optionally one session), newest first."""
    query = db.query(Engagement).filter(Engagement.user_id == user_id)
    if session_id is not None:
        query = query.filter(Engagement.session_id == session_id)
    return query.order_by(Engagement.created_at.desc(), Engagement.id.desc()).limit(limit).all()


def aggregate_preferences(engagements: List[Engagement]) -> Dict[str, float]:
    """
    Normalized category weights from a list of engagements.

    Each category's weight is its mean engagement score divided by the sum of
    all category means. When every mean is zero the weight is split evenly.
    """
    if not engagements:
        return dict(DEFAULT_PREFERENCES)

    scores = defaultdict(list)
    for engagement in engagements:
        scores[engagement.category or UNCATEGORIZED].append(float(engagement.engagement_score or 0.0))

    categories = list(scores.keys())
    means = np.array([np.mean(scores[c]) for c in categories], dtype=float)
    total = means.sum()
    if total <= 0:
        weights = np.full(len(categories), 1.0 / len(categories))
    else:
        weights = means / total
    return {category: float(weight) for category, weight in zip(categories, weights)}


def get_preferences(db: Session, user_id: int, window: Optional[int] = None) -> Dict[str, float]:
    engagements = recent_engagements(db, user_id, window or settings.preference_window)
    preferences = aggregate_preferences(engagements)
    logger.info(f"Preferences for user {user_id} from {len(engagements)} events: {preferences}")
    return preferences


def get_category_stats(db: Session, user_id: int) -> List[CategoryStat]:
    """Per-category engagement summary across the user's whole history."""
    rows = (
        db.query(
            Engagement.category,
            func.avg(Engagement.engagement_score),
            func.count(Engagement.id),
            func.avg(Engagement.completion_rate),
        )
        .filter(Engagement.user_id == user_id)
        .group_by(Engagement.category)
        .all()
    )
    stats = [
        CategoryStat(
            category=category or UNCATEGORIZED,
            avg_engagement=float(avg_score or 0.0),
            total_watched=int(count or 0),
            avg_completion_rate=float(avg_completion or 0.0),
        )
        for category, avg_score, count, avg_completion in rows
    ]
    stats.sort(key=lambda s: s.avg_engagement, reverse=True)
    return stats


def get_engagement_stats(db: Session, user_id: int) -> EngagementStats:
    engagements = recent_engagements(db, user_id, settings.stats_window)
    if not engagements:
        return EngagementStats()

    return EngagementStats(
        total_videos_watched=len(engagements),
        avg_completion_rate=float(np.mean([e.completion_rate or 0.0 for e in engagements])),
        avg_engagement_score=float(np.mean([e.engagement_score or 0.0 for e in engagements])),
        total_watch_time=float(sum(e.watch_time or 0.0 for e in engagements)),
        interactions=InteractionCounts(
            likes=sum(1 for e in engagements if e.liked),
            comments=sum(1 for e in engagements if e.commented),
            shares=sum(1 for e in engagements if e.shared),
        ),
    )
