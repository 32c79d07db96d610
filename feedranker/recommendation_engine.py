from typing import Callable, Dict, List, Optional, Sequence, Tuple
import logging
import math

import numpy as np
from sqlalchemy.orm import Session

from .catalog import (
    ENTERTAINMENT_CATEGORIES,
    fetch_category,
    fetch_entertainment,
    fetch_external_feed,
    fetch_recovery,
    fetch_trending,
    fetch_uploaded_feed,
    get_user_profile,
)
from .config import Settings, settings as default_settings
from .database import Engagement, Video, utcnow
from .disengagement import DisengagementPolicy, detect_disengagement
from .errors import DegradedDependency, NotFound
from .normalizer import CandidateVideo, normalize_external, normalize_uploaded
from .preferences import get_preferences
from .ranking import diversify, paginate, rank_candidates
from .schemas import (
    DisengagementAssessment,
    FeedVideo,
    RecommendedFeedResponse,
    RecommendedVideo,
    SourceCounts,
    UnifiedFeedResponse,
)

logger = logging.getLogger(__name__)

# Guards floor() against weights like 0.3 landing a hair under an integer
_QUOTA_EPSILON = 1e-9


def recovery_mix_quotas(count: int, severity: float, cap: float = 0.7) -> Tuple[int, int]:
    """Split ``count`` slots into (entertainment, educational recovery) for a disengaging user."""
    ratio = min(severity / 100.0, cap)
    entertainment = int(math.floor(count * ratio + _QUOTA_EPSILON))
    entertainment = max(0, min(count, entertainment))
    return entertainment, count - entertainment


def category_quotas(count: int, preferences: Dict[str, float]) -> List[Tuple[str, int]]:
    """Per-category slot counts proportional to preference weight; zero quotas are dropped."""
    quotas = []
    for category, weight in preferences.items():
        quota = int(math.floor(count * weight + _QUOTA_EPSILON))
        if quota > 0:
            quotas.append((category, quota))
    return quotas


def predict_engagement(candidate: CandidateVideo, preferences: Dict[str, float], disengagement: DisengagementAssessment,
                       recovery_max_duration: float = 180) -> float:
    """Heuristic 0-100 estimate of how well a video will land with the user right now."""
    score = 50.0

    # Category match bonus
    score += (preferences.get(candidate.category) or 0.1) * 30

    # Popularity factors
    score += min(candidate.view_count / 1000 * 5, 10)
    score += min(candidate.like_count / 10 * 5, 10)

    # A disengaging user gets lighter, shorter content pushed up
    if disengagement.is_disengaging:
        if candidate.category in ENTERTAINMENT_CATEGORIES:
            score += 20
        if candidate.duration_seconds < recovery_max_duration:
            score += 15

    return min(100.0, score)


class RecommendationEngine:
    def __init__(self, db: Session, settings: Settings = default_settings, rng: Optional[np.random.Generator] = None):
        self.db = db
        self.settings = settings
        self.rng = rng if rng is not None else np.random.default_rng(settings.random_seed)
        self.policy = DisengagementPolicy.from_settings(settings)

    def get_preferences(self, user_id: int) -> Dict[str, float]:
        return get_preferences(self.db, user_id, self.settings.preference_window)

    def get_disengagement(self, user_id: int, session_id: str) -> DisengagementAssessment:
        return detect_disengagement(self.db, user_id, session_id, self.policy)

    def _recent_video_ids(self, user_id: int, limit: int) -> List[str]:
        rows = (
            self.db.query(Engagement.video_id)
            .filter(Engagement.user_id == user_id)
            .order_by(Engagement.created_at.desc(), Engagement.id.desc())
            .limit(limit)
            .all()
        )
        return [video_id for (video_id,) in rows]

    def _safe_fetch(self, label: str, fetch: Callable[..., list], *args, **kwargs) -> list:
        try:
            return fetch(self.db, *args, **kwargs)
        except DegradedDependency as e:
            logger.error(f"Catalog read '{label}' degraded, continuing without it: {e}", exc_info=True)
            return []

    def shuffle(self, items: Sequence) -> list:
        """Uniform random permutation (Fisher-Yates equivalent) from the injected generator."""
        order = self.rng.permutation(len(items))
        return [items[i] for i in order]

    def _recovery_mix(self, count: int, disengagement: DisengagementAssessment, exclude: List[str]) -> List[Video]:
        entertainment_quota, recovery_quota = recovery_mix_quotas(
            count, disengagement.severity, self.settings.entertainment_cap
        )
        logger.info(
            f"Recovery mix: {entertainment_quota} entertainment / {recovery_quota} educational "
            f"(severity: {disengagement.severity})"
        )
        entertaining = self._safe_fetch(
            "entertainment", fetch_entertainment, exclude, entertainment_quota,
            min_views=self.settings.entertainment_min_views,
        )
        picked = exclude + [str(v.id) for v in entertaining]
        recovery = self._safe_fetch(
            "recovery", fetch_recovery, picked, recovery_quota,
            max_duration=self.settings.recovery_max_duration,
        )
        return entertaining + recovery

    def _preference_mix(self, count: int, preferences: Dict[str, float], exclude: List[str]) -> List[Video]:
        videos: List[Video] = []
        for category, quota in category_quotas(count, preferences):
            videos.extend(self._safe_fetch(
                f"category:{category}", fetch_category, category, exclude + [str(v.id) for v in videos], quota
            ))

        # Fill remaining slots with trending content
        remaining = count - len(videos)
        if remaining > 0:
            trending = self._safe_fetch("trending", fetch_trending, exclude + [str(v.id) for v in videos], remaining)
            videos.extend(trending)
            logger.info(f"Filled {len(trending)} of {remaining} remaining slots with trending videos")
        return videos

    def get_recommended_feed(self, user_id: int, session_id: str, count: int = 20) -> RecommendedFeedResponse:
        """
        Personalized feed over the uploaded catalog.

        An engaged user gets category quotas proportional to their preference
        profile, topped up with trending videos. A disengaging user gets a
        recovery mix of entertaining and short educational videos. The pool is
        shuffled, then ordered by predicted engagement.

        Raises:
            NotFound: if the user does not exist
        """
        if get_user_profile(self.db, user_id) is None:
            raise NotFound(f"User {user_id} not found")

        logger.info(f"Generating recommendations for user {user_id} (session {session_id}, count {count})")

        disengagement = self.get_disengagement(user_id, session_id)
        preferences = self.get_preferences(user_id)

        # Avoid immediate repeats
        exclude = self._recent_video_ids(user_id, self.settings.exclude_recent)

        if disengagement.is_disengaging:
            videos = self._recovery_mix(count, disengagement, exclude)
        else:
            videos = self._preference_mix(count, preferences, exclude)

        candidates = self.shuffle([normalize_uploaded(v) for v in videos])
        scored = [
            (c, predict_engagement(c, preferences, disengagement, self.settings.recovery_max_duration))
            for c in candidates
        ]
        scored.sort(key=lambda x: x[1], reverse=True)

        result = [
            RecommendedVideo(**candidate.to_dict(), predicted_engagement=score)
            for candidate, score in scored[:count]
        ]
        logger.info(f"Generated {len(result)} recommendations for user {user_id}")
        return RecommendedFeedResponse(
            session_id=session_id,
            videos=result,
            disengagement=disengagement,
            preferences=preferences,
        )

    def get_unified_feed(
        self,
        user_id: Optional[int] = None,
        page: int = 1,
        page_size: int = 20,
        category: Optional[str] = None,
    ) -> UnifiedFeedResponse:
        """
        Ranked feed across uploaded and externally indexed videos.

        Anonymous callers (or unknown user ids) get non-personalized scoring:
        no interest bonus and no de-prioritization of viewed videos.
        """
        interests = frozenset()
        viewed = set()
        if user_id is not None:
            profile = get_user_profile(self.db, user_id)
            if profile is None:
                logger.warning(f"Unknown user {user_id} for unified feed; serving non-personalized ranking")
            else:
                interests = profile.interests
                viewed = set(self._recent_video_ids(user_id, self.settings.viewed_window))

        uploaded = self._safe_fetch("uploaded-feed", fetch_uploaded_feed, category, self.settings.uploaded_candidate_cap)
        external = self._safe_fetch("external-feed", fetch_external_feed, category, self.settings.external_candidate_cap)

        candidates = [normalize_uploaded(v) for v in uploaded] + [normalize_external(v) for v in external]
        ranked = rank_candidates(
            candidates,
            interests,
            viewed,
            utcnow(),
            rng=self.rng,
            max_jitter=self.settings.max_jitter,
            viewed_penalty=self.settings.viewed_penalty,
        )
        ordered = diversify(ranked, self.settings.category_run_limit)
        window, pagination = paginate(ordered, page, page_size)

        return UnifiedFeedResponse(
            videos=[FeedVideo(**s.candidate.to_dict()) for s in window],
            pagination=pagination,
            source_counts=SourceCounts(uploaded=len(uploaded), external=len(external)),
        )
