from types import SimpleNamespace

import pytest

from conftest import add_user, add_video
from feedranker.engagement import EngagementRecorder
from feedranker.preferences import (
    DEFAULT_PREFERENCES,
    aggregate_preferences,
    get_category_stats,
    get_engagement_stats,
    get_preferences,
)


def event(category, score):
    return SimpleNamespace(category=category, engagement_score=score)


def test_no_history_returns_default_distribution():
    assert aggregate_preferences([]) == DEFAULT_PREFERENCES


def test_weights_are_normalized_category_means():
    prefs = aggregate_preferences([event("math", 60), event("math", 40), event("music", 50)])
    assert prefs == {"math": pytest.approx(0.5), "music": pytest.approx(0.5)}
    assert sum(prefs.values()) == pytest.approx(1.0)


def test_all_zero_scores_split_evenly():
    prefs = aggregate_preferences([event("math", 0), event("art", 0), event("art", 0), event("science", 0)])
    assert set(prefs) == {"math", "art", "science"}
    for weight in prefs.values():
        assert weight == pytest.approx(1 / 3)


def test_missing_category_is_other():
    prefs = aggregate_preferences([event(None, 10), event("math", 30)])
    assert prefs["other"] == pytest.approx(0.25)
    assert prefs["math"] == pytest.approx(0.75)


def test_preferences_and_stats_from_store(db):
    user = add_user(db)
    math = add_video(db, category="math", duration=100)
    art = add_video(db, category="art", duration=100)
    recorder = EngagementRecorder(db)
    recorder.record(user.id, {"video_id": str(math.id), "watch_time": 100, "liked": True})
    recorder.record(user.id, {"video_id": str(art.id), "watch_time": 50})

    prefs = get_preferences(db, user.id)
    assert sum(prefs.values()) == pytest.approx(1.0)
    assert prefs["math"] > prefs["art"]

    stats = get_category_stats(db, user.id)
    assert [s.category for s in stats] == ["math", "art"]
    assert stats[0].total_watched == 1
    assert stats[0].avg_completion_rate == pytest.approx(100.0)

    summary = get_engagement_stats(db, user.id)
    assert summary.total_videos_watched == 2
    assert summary.total_watch_time == pytest.approx(150.0)
    assert summary.interactions.likes == 1


def test_stats_for_user_without_history(db):
    user = add_user(db)
    assert get_preferences(db, user.id) == DEFAULT_PREFERENCES
    assert get_category_stats(db, user.id) == []
    assert get_engagement_stats(db, user.id).total_videos_watched == 0
