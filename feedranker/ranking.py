"""
Unified scoring and diversification for the cross-source feed.

Both catalogs are scored onto a comparable, roughly 0-100 scale. A small
random jitter keeps equal candidates from freezing into the same order on
every refresh; pass ``max_jitter=0`` for deterministic scores.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Collection, Iterable, List, Optional, Sequence, Tuple, TypeVar
import math

import numpy as np

from .normalizer import CandidateVideo, EXTERNAL
from .schemas import Pagination

T = TypeVar("T")

SECONDS_PER_DAY = 60 * 60 * 24
MIN_AGE_DAYS = 0.1


@dataclass
class ScoredCandidate:
    candidate: CandidateVideo
    score: float

    @property
    def category(self) -> str:
        return self.candidate.category


def age_in_days(published_at: Optional[datetime], now: datetime) -> float:
    if published_at is None:
        return MIN_AGE_DAYS
    age = (now - published_at).total_seconds() / SECONDS_PER_DAY
    return max(age, MIN_AGE_DAYS)


def _jitter(rng: Optional[np.random.Generator], max_jitter: float) -> float:
    if rng is None or max_jitter <= 0:
        return 0.0
    return float(rng.uniform(0.0, max_jitter))


def score_uploaded(
    candidate: CandidateVideo,
    interests: Collection[str],
    now: datetime,
    rng: Optional[np.random.Generator] = None,
    max_jitter: float = 5.0,
) -> float:
    age_days = age_in_days(candidate.published_at, now)
    likes_per_day = candidate.like_count / age_days

    score = min(candidate.engagement_rate * 3, 30)
    score += min(likes_per_day * 5, 20)
    score += min(candidate.completion_rate * 0.2, 20)
    score += max(0.0, 15 - age_days * 0.5)
    if interests and candidate.category in interests:
        score += 10
    return score + _jitter(rng, max_jitter)


def score_external(
    candidate: CandidateVideo,
    interests: Collection[str],
    now: datetime,
    rng: Optional[np.random.Generator] = None,
    max_jitter: float = 5.0,
) -> float:
    age_days = age_in_days(candidate.published_at, now)

    # View count on a log scale, 0-20
    score = min(math.log10(max(candidate.view_count, 1)) * 4, 20)
    score += max(0.0, 15 - age_days * 0.05)
    subject = (candidate.category or "").lower()
    if interests and any(interest.lower() in subject for interest in interests):
        score += 10
    return score + _jitter(rng, max_jitter)


def score_candidate(candidate: CandidateVideo, interests: Collection[str], now: datetime,
                    rng: Optional[np.random.Generator] = None, max_jitter: float = 5.0) -> float:
    scorer = score_external if candidate.source == EXTERNAL else score_uploaded
    return scorer(candidate, interests, now, rng=rng, max_jitter=max_jitter)


def deprioritize(scored: Iterable[ScoredCandidate], viewed_ids: Collection[str], factor: float = 0.3) -> List[ScoredCandidate]:
    """Scale down already-viewed candidates. They stay in the list."""
    return [
        ScoredCandidate(s.candidate, s.score * factor) if s.candidate.id in viewed_ids else s
        for s in scored
    ]


def rank_candidates(
    candidates: Iterable[CandidateVideo],
    interests: Collection[str],
    viewed_ids: Collection[str],
    now: datetime,
    rng: Optional[np.random.Generator] = None,
    max_jitter: float = 5.0,
    viewed_penalty: float = 0.3,
) -> List[ScoredCandidate]:
    scored = [ScoredCandidate(c, score_candidate(c, interests, now, rng=rng, max_jitter=max_jitter)) for c in candidates]
    scored = deprioritize(scored, viewed_ids, viewed_penalty)
    scored.sort(key=lambda s: s.score, reverse=True)
    return scored


def _tail_run(items: Sequence[T], category: str, key: Callable[[T], str]) -> int:
    run = 0
    for item in reversed(items):
        if key(item) != category:
            break
        run += 1
    return run


def diversify(ranked: Sequence[T], run_limit: int = 3, key: Callable[[T], str] = lambda s: s.category) -> List[T]:
    """
    Reorder a ranked list so no ``run_limit`` consecutive entries share a category.

    When the next candidate would complete a forbidden run, the first
    candidate of another category further down is pulled forward and the
    skipped one goes back to the front of the queue. If every remaining
    candidate has the same category the run is accepted.
    """
    output: List[T] = []
    remaining = list(ranked)
    while remaining:
        candidate = remaining.pop(0)
        category = key(candidate)
        if run_limit > 1 and _tail_run(output, category, key) >= run_limit - 1:
            swap_idx = next((i for i, other in enumerate(remaining) if key(other) != category), None)
            if swap_idx is not None:
                output.append(remaining.pop(swap_idx))
                remaining.insert(0, candidate)
                continue
        output.append(candidate)
    return output


def paginate(items: Sequence[T], page: int, page_size: int) -> Tuple[List[T], Pagination]:
    """Plain slice of a fully ranked list."""
    page = max(1, page)
    offset = (page - 1) * page_size
    window = list(items[offset:offset + page_size])
    return window, Pagination(
        current=page,
        page_size=page_size,
        has_more=offset + page_size < len(items),
        total=len(items),
    )
