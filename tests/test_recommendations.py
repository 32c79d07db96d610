import numpy as np
import pytest

from conftest import add_external, add_user, add_video
from feedranker import recommendation_engine
from feedranker.config import Settings
from feedranker.engagement import EngagementRecorder
from feedranker.errors import DegradedDependency, NotFound
from feedranker.normalizer import CandidateVideo
from feedranker.recommendation_engine import (
    RecommendationEngine,
    category_quotas,
    predict_engagement,
    recovery_mix_quotas,
)
from feedranker.schemas import DisengagementAssessment


def test_recovery_mix_quotas():
    assert recovery_mix_quotas(10, 70) == (7, 3)
    assert recovery_mix_quotas(10, 40) == (4, 6)
    # Entertainment share is capped
    assert recovery_mix_quotas(10, 100) == (7, 3)
    assert sum(recovery_mix_quotas(7, 55)) == 7


def test_category_quotas_drop_empty_slots():
    assert category_quotas(10, {"math": 0.3, "art": 0.7}) == [("math", 3), ("art", 7)]
    assert category_quotas(10, {"math": 0.95, "art": 0.05}) == [("math", 9)]


def test_predict_engagement():
    engaged = DisengagementAssessment()
    math = CandidateVideo(id="1", source="uploaded", category="math")
    assert predict_engagement(math, {"math": 0.5}, engaged) == pytest.approx(65.0)
    assert predict_engagement(math, {}, engaged) == pytest.approx(53.0)

    disengaged = DisengagementAssessment(is_disengaging=True, severity=70)
    music = CandidateVideo(id="2", source="uploaded", category="music", duration_seconds=60)
    assert predict_engagement(music, {}, disengaged) == pytest.approx(88.0)

    popular = CandidateVideo(id="3", source="uploaded", category="music", view_count=5000, like_count=100)
    assert predict_engagement(popular, {"music": 1.0}, disengaged) == 100.0


def test_recommended_feed_unknown_user(db):
    with pytest.raises(NotFound):
        RecommendationEngine(db).get_recommended_feed(404, "s1", 10)


def test_recommended_feed_for_engaged_user(db):
    user = add_user(db)
    for i, category in enumerate(["education", "science", "math", "coding", "art", "music"] * 3):
        add_video(db, title=f"v{i}", category=category, views=i * 10)

    feed = RecommendationEngine(db, rng=np.random.default_rng(3)).get_recommended_feed(user.id, "s1", 10)
    assert feed.session_id == "s1"
    assert feed.disengagement.is_disengaging is False
    assert len(feed.videos) == 10
    ids = [v.id for v in feed.videos]
    assert len(set(ids)) == len(ids)
    scores = [v.predicted_engagement for v in feed.videos]
    assert scores == sorted(scores, reverse=True)


def test_recommended_feed_recovery_mix(db):
    user = add_user(db)
    recorder = EngagementRecorder(db)
    watched = []
    for i in range(4):
        video = add_video(db, title=f"watched{i}", category="math", duration=100)
        recorder.record(user.id, {"video_id": str(video.id), "session_id": "s1", "watch_time": 5})
        watched.append(str(video.id))

    for i in range(10):
        add_video(db, title=f"fun{i}", category="music", views=5000 + i)
        add_video(db, title=f"short{i}", category="education", duration=120, likes=i)

    feed = RecommendationEngine(db, rng=np.random.default_rng(3)).get_recommended_feed(user.id, "s1", 10)
    assert feed.disengagement.is_disengaging is True
    assert len(feed.videos) == 10
    assert not set(watched) & {v.id for v in feed.videos}
    categories = [v.category for v in feed.videos]
    entertainment, _ = recovery_mix_quotas(10, feed.disengagement.severity)
    assert categories.count("music") == entertainment
    assert categories.count("education") == 10 - entertainment


def test_unified_feed_anonymous(db):
    add_video(db, title="up1", category="math")
    add_video(db, title="up2", category="art")
    add_video(db, title="hidden", category="math", is_private=True)
    add_video(db, title="pending", category="math", status="pending")
    add_external(db, video_id="yt-1", subject="mathematics")
    add_external(db, video_id="yt-2", subject="history", is_active=False)

    feed = RecommendationEngine(db, rng=np.random.default_rng(0)).get_unified_feed()
    assert feed.source_counts.uploaded == 2
    assert feed.source_counts.external == 1
    assert feed.pagination.total == 3
    assert {v.source for v in feed.videos} == {"uploaded", "external"}


def test_unified_feed_category_and_unknown_user(db):
    add_video(db, title="up1", category="math")
    add_video(db, title="up2", category="art")
    add_external(db, video_id="yt-1", subject="Mathematics")
    add_external(db, video_id="yt-2", subject="history")

    feed = RecommendationEngine(db).get_unified_feed(user_id=12345, category="math")
    assert len(feed.videos) == 2
    assert {v.category for v in feed.videos} == {"math", "Mathematics"}
    assert feed.source_counts.uploaded == 1
    assert feed.source_counts.external == 1


def test_unified_feed_survives_degraded_catalog(db, monkeypatch):
    add_video(db, title="up1", category="math")

    def broken(*args, **kwargs):
        raise DegradedDependency("external index unavailable")

    monkeypatch.setattr(recommendation_engine, "fetch_external_feed", broken)
    feed = RecommendationEngine(db).get_unified_feed()
    assert feed.source_counts.external == 0
    assert len(feed.videos) == 1


def test_unified_feed_deprioritizes_viewed(db):
    user = add_user(db, interests=["math"])
    seen = add_video(db, title="seen", category="math", views=100, likes=50)
    fresh = add_video(db, title="fresh", category="math")
    EngagementRecorder(db).record(user.id, {"video_id": str(seen.id), "watch_time": 10})

    settings = Settings()
    settings.max_jitter = 0
    feed = RecommendationEngine(db, settings=settings).get_unified_feed(user_id=user.id)
    assert [v.id for v in feed.videos] == [str(fresh.id), str(seen.id)]


def test_predict_engagement_zero_weight_uses_floor():
    math = CandidateVideo(id="1", source="uploaded", category="math")
    assert predict_engagement(math, {"math": 0.0, "art": 1.0}, DisengagementAssessment()) == pytest.approx(53.0)
