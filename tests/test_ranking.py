from datetime import datetime, timedelta

import numpy as np
import pytest

from feedranker.database import ExternalVideo, Video
from feedranker.normalizer import CandidateVideo, normalize_external, normalize_uploaded
from feedranker.ranking import (
    ScoredCandidate,
    age_in_days,
    deprioritize,
    diversify,
    paginate,
    rank_candidates,
    score_external,
    score_uploaded,
)

NOW = datetime(2024, 6, 1, 12, 0, 0)


def candidate(id, category="math", source="uploaded", **kw):
    return CandidateVideo(id=id, source=source, category=category, published_at=kw.pop("published_at", NOW), **kw)


def max_run(categories):
    longest = run = 0
    previous = None
    for category in categories:
        run = run + 1 if category == previous else 1
        previous = category
        longest = max(longest, run)
    return longest


def test_age_has_floor():
    assert age_in_days(NOW, NOW) == pytest.approx(0.1)
    assert age_in_days(None, NOW) == pytest.approx(0.1)
    assert age_in_days(NOW - timedelta(days=3), NOW) == pytest.approx(3.0)


def test_score_uploaded_components():
    c = candidate("1", engagement_rate=20)
    assert score_uploaded(c, frozenset(), NOW, max_jitter=0) == pytest.approx(30 + 14.95)
    assert score_uploaded(c, frozenset({"math"}), NOW, max_jitter=0) == pytest.approx(30 + 14.95 + 10)


def test_score_external_matches_interest_substring():
    c = candidate("yt", category="Mathematics", source="external", view_count=10000)
    base = score_external(c, frozenset(), NOW, max_jitter=0)
    assert base == pytest.approx(16 + 14.995)
    assert score_external(c, frozenset({"math"}), NOW, max_jitter=0) == pytest.approx(base + 10)


def test_jitter_is_bounded_and_seeded():
    c = candidate("1")
    base = score_uploaded(c, frozenset(), NOW, max_jitter=0)
    first = score_uploaded(c, frozenset(), NOW, rng=np.random.default_rng(7), max_jitter=5)
    second = score_uploaded(c, frozenset(), NOW, rng=np.random.default_rng(7), max_jitter=5)
    assert first == second
    assert base <= first < base + 5


def test_deprioritize_keeps_viewed_candidates():
    scored = [ScoredCandidate(candidate("1"), 50.0), ScoredCandidate(candidate("2"), 40.0)]
    result = deprioritize(scored, {"1"})
    assert [s.candidate.id for s in result] == ["1", "2"]
    assert result[0].score == pytest.approx(15.0)
    assert result[1].score == pytest.approx(40.0)


def test_rank_pushes_viewed_down_but_keeps_them():
    strong = candidate("1", engagement_rate=5)
    weak = candidate("2")
    ranked = rank_candidates([strong, weak], frozenset(), {"1"}, NOW, max_jitter=0)
    assert [s.candidate.id for s in ranked] == ["2", "1"]


def test_diversify_breaks_runs():
    ranked = ["a", "a", "a", "b", "a", "a", "c"]
    result = diversify(ranked, 3, key=lambda s: s)
    assert sorted(result) == sorted(ranked)
    assert max_run(result) <= 2
    assert result[:4] == ["a", "a", "b", "a"]


def test_diversify_accepts_uniform_tail():
    assert diversify(["a", "a", "a", "a"], 3, key=lambda s: s) == ["a", "a", "a", "a"]
    assert diversify(["b", "a", "a", "a"], 3, key=lambda s: s) == ["b", "a", "a", "a"]


def test_diversify_scored_candidates_by_category():
    ranked = [ScoredCandidate(candidate(str(i), category="math" if i < 6 else "art"), 100 - i) for i in range(9)]
    result = diversify(ranked)
    assert len(result) == 9
    assert max_run([s.category for s in result[:8]]) <= 2


def test_paginate():
    items = list(range(45))
    window, pagination = paginate(items, 2, 20)
    assert window == list(range(20, 40))
    assert pagination.has_more is True
    assert pagination.total == 45

    window, pagination = paginate(items, 3, 20)
    assert window == list(range(40, 45))
    assert pagination.has_more is False
    assert pagination.current == 3

    window, pagination = paginate(items, 4, 20)
    assert window == []


def test_normalize_external_defaults():
    c = normalize_external(ExternalVideo(video_id="yt-1", title="Intro"))
    assert c.id == "yt-1"
    assert c.source == "external"
    assert c.category == "education"
    assert c.creator == "YouTube Creator"
    assert c.like_count == 0
    assert c.duration_seconds == 0.0


def test_normalize_uploaded_defaults():
    c = normalize_uploaded(Video(id=5, title="Loops", category="coding", views=12, like_count=3))
    assert c.id == "5"
    assert c.source == "uploaded"
    assert c.creator == "Unknown"
    assert c.view_count == 12
    assert c.like_count == 3
    assert c.published_at is None
