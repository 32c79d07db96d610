from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from conftest import add_user, add_video
from feedranker.disengagement import DisengagementPolicy, assess_window, detect_disengagement
from feedranker.engagement import EngagementRecorder, compute_engagement_score


def make_events(completions, scores=None, skips=None, spacing=60.0):
    """Newest-first window with ``spacing`` seconds between events."""
    start = datetime(2024, 1, 1, 12, 0, 0)
    events = []
    for i, completion in enumerate(completions):
        events.append(SimpleNamespace(
            completion_rate=completion,
            engagement_score=scores[i] if scores else compute_engagement_score(completion_rate=completion),
            skipped_at=skips[i] if skips else None,
            created_at=start - timedelta(seconds=spacing * i),
        ))
    return events


def test_too_few_events_is_engaged():
    result = assess_window(make_events([0, 0]))
    assert result.is_disengaging is False
    assert result.severity == 0
    assert result.reasons == []


def test_very_low_completion_window():
    result = assess_window(make_events([10, 15, 12, 8, 20]))
    assert result.is_disengaging is True
    assert result.severity == 60
    assert result.reasons == ["very-low-completion", "low-engagement"]
    assert result.metrics.avg_completion_rate == pytest.approx(13.0)
    assert result.metrics.window_size == 5


def test_severity_at_threshold_is_not_disengaging():
    # low completion (20) + rapid scrolling (10) = 30, not above the threshold
    result = assess_window(make_events([30, 30, 30], scores=[50, 50, 50], spacing=5))
    assert result.severity == 30
    assert result.reasons == ["low-completion", "rapid-scrolling"]
    assert result.is_disengaging is False


def test_skipping_counts_zero_offsets():
    result = assess_window(make_events([80, 80, 80, 80], scores=[60] * 4, skips=[0, 0, 0, None]))
    assert result.metrics.skip_rate == pytest.approx(0.75)
    assert result.reasons == ["excessive-skipping"]
    assert result.severity == 30


def test_all_clauses_cap_at_100():
    result = assess_window(make_events([5] * 5, scores=[0] * 5, skips=[1] * 5, spacing=2))
    assert result.severity == 100
    assert result.reasons == ["very-low-completion", "excessive-skipping", "low-engagement", "rapid-scrolling"]


def test_window_only_looks_at_newest_events():
    healthy = make_events([90] * 5, scores=[80] * 5)
    stale = make_events([0] * 5, scores=[0] * 5)
    result = assess_window(healthy + stale)
    assert result.is_disengaging is False
    assert result.metrics.window_size == 5


def test_custom_policy_threshold():
    policy = DisengagementPolicy(threshold=10)
    result = assess_window(make_events([30, 30, 30], scores=[50, 50, 50]), policy)
    assert result.severity == 20
    assert result.is_disengaging is True


def test_detect_disengagement_is_session_scoped(db):
    user = add_user(db)
    recorder = EngagementRecorder(db)
    for i in range(4):
        video = add_video(db, title=f"v{i}", duration=100)
        recorder.record(user.id, {"video_id": str(video.id), "session_id": "bored", "watch_time": 5})

    assert detect_disengagement(db, user.id, "bored").is_disengaging is True
    fresh = detect_disengagement(db, user.id, "another-session")
    assert fresh.is_disengaging is False
    assert fresh.severity == 0
