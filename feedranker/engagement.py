from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional, Tuple, Union
import logging

from pydantic import ValidationError
from sqlalchemy import func
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from .config import Settings, settings as default_settings
from .database import Engagement, ExternalVideo, User, Video, ViewingHistory, NO_SESSION, utcnow
from .errors import ConfigurationError, NotFound, ValidationFailure
from .schemas import BatchResponse, EngagementEvent, TrackResponse

logger = logging.getLogger(__name__)

EventPayload = Union[EngagementEvent, Dict[str, Any]]


def compute_completion_rate(watch_time: Optional[float], total_duration: Optional[float]) -> Optional[float]:
    """Percentage of the video watched, clamped to 0-100. None when the duration is unknown."""
    if watch_time is None or not total_duration or total_duration <= 0:
        return None
    return max(0.0, min(100.0, watch_time / total_duration * 100.0))


def compute_engagement_score(
    completion_rate: float = 0.0,
    liked: bool = False,
    commented: bool = False,
    shared: bool = False,
    replays: int = 0,
    pause_count: int = 0,
    seek_count: int = 0,
    skipped_at: Optional[float] = None,
    total_duration: float = 0.0,
) -> float:
    """
    Composite 0-100 engagement score for one viewing.

    Completion contributes up to 40 points, interactions 15/20/25, replays up to 10.
    Frequent pausing, heavy seeking and skipping within the first 30% of the video
    are penalised.
    """
    score = (completion_rate or 0.0) * 0.4

    if liked:
        score += 15
    if commented:
        score += 20
    if shared:
        score += 25

    score += min((replays or 0) * 3, 10)

    if (pause_count or 0) > 3:
        score -= 5
    if (seek_count or 0) > 5:
        score -= 10
    if skipped_at is not None and skipped_at < (total_duration or 0.0) * 0.3:
        score -= 15

    return float(max(0.0, min(100.0, score)))


def score_engagement(engagement: Engagement) -> float:
    return compute_engagement_score(
        completion_rate=engagement.completion_rate,
        liked=engagement.liked,
        commented=engagement.commented,
        shared=engagement.shared,
        replays=engagement.replays,
        pause_count=engagement.pause_count,
        seek_count=engagement.seek_count,
        skipped_at=engagement.skipped_at,
        total_duration=engagement.total_duration,
    )


def _insert_for(db: Session):
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return pg_insert
    if dialect == "sqlite":
        return sqlite_insert
    raise ConfigurationError(f"Atomic upsert is not supported on {dialect}")


class EngagementRecorder:
    """Sole writer of engagement rows and their best-effort side channels."""

    def __init__(self, db: Session, session_factory: Optional[sessionmaker] = None, settings: Settings = default_settings):
        self.db = db
        self.settings = settings
        self.session_factory = session_factory or sessionmaker(autocommit=False, autoflush=False, bind=db.get_bind())

    def _validate(self, payload: EventPayload) -> EngagementEvent:
        if isinstance(payload, EngagementEvent):
            return payload
        try:
            return EngagementEvent.model_validate(payload)
        except ValidationError as e:
            raise ValidationFailure(f"Invalid engagement event: {e}")

    def _resolve_video(self, video_id: str) -> Tuple[str, Optional[str], float]:
        """Find the video in either catalog. Returns (source, category, duration)."""
        if video_id.isdigit():
            video = self.db.get(Video, int(video_id))
            if video is not None:
                return "uploaded", video.category, float(video.duration or 0.0)
        external = self.db.query(ExternalVideo).filter(ExternalVideo.video_id == video_id).first()
        if external is not None:
            return "external", external.subject or "education", float(external.duration or 0.0)
        raise NotFound(f"Video {video_id} not found")

    def record(self, user_id: int, payload: EventPayload) -> TrackResponse:
        """Validate, upsert and rescore one engagement event for (user, video, session)."""
        event = self._validate(payload)

        if self.db.get(User, user_id) is None:
            raise NotFound(f"User {user_id} not found")
        source, category, duration = self._resolve_video(event.video_id)

        data = event.model_dump(exclude_none=True)
        session_id = data.pop("session_id", None) or NO_SESSION
        now = utcnow()

        try:
            insert = _insert_for(self.db)
            stmt = (
                insert(Engagement)
                .values(
                    user_id=user_id,
                    video_id=event.video_id,
                    video_source=source,
                    session_id=session_id,
                    category=category,
                    total_duration=duration,
                    started_at=now,
                    created_at=now,
                    updated_at=now,
                )
                .on_conflict_do_nothing(index_elements=["user_id", "video_id", "session_id"])
            )
            self.db.execute(stmt)

            # Row lock serializes concurrent writers of the same key
            engagement = (
                self.db.query(Engagement)
                .filter(
                    Engagement.user_id == user_id,
                    Engagement.video_id == event.video_id,
                    Engagement.session_id == session_id,
                )
                .populate_existing()
                .with_for_update()
                .one()
            )
            self._merge(engagement, data, duration, now)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        result = TrackResponse(
            engagement_id=engagement.id,
            engagement_score=engagement.engagement_score,
            completion_rate=engagement.completion_rate,
        )
        logger.info(
            f"Tracked engagement {result.engagement_id} for user {user_id} on {event.video_id} "
            f"(session {session_id}, score {result.engagement_score:.1f})"
        )

        if source == "uploaded" and ("watch_time" in data or "completion_rate" in data):
            self._refresh_video_aggregates(event.video_id)
        self._append_viewing_history(user_id, event.video_id, watch_time=data.get("watch_time", 0.0),
                                     completion_rate=result.completion_rate)
        return result

    def _merge(self, engagement: Engagement, data: Dict[str, Any], video_duration: float, now) -> None:
        """Field-wise merge of a partial event into the stored row, then rescore."""
        if "watch_time" in data:
            engagement.watch_time = max(engagement.watch_time or 0.0, data["watch_time"])
        if "total_duration" in data:
            engagement.total_duration = data["total_duration"]
        elif not engagement.total_duration and video_duration:
            engagement.total_duration = video_duration

        # Interaction flags only ever turn on
        for flag in ("liked", "commented", "shared"):
            if data.get(flag):
                setattr(engagement, flag, True)

        for counter in ("replays", "pause_count", "seek_count"):
            if counter in data:
                setattr(engagement, counter, data[counter])

        if "skipped_at" in data:
            engagement.skipped_at = data["skipped_at"]
        if "skip_reason" in data:
            engagement.skip_reason = None if data["skip_reason"] == "none" else data["skip_reason"]
        if data.get("category"):
            engagement.category = data["category"]

        if "completion_rate" in data and "watch_time" not in data:
            engagement.completion_rate = data["completion_rate"]
        else:
            rate = compute_completion_rate(engagement.watch_time, engagement.total_duration)
            if rate is not None:
                engagement.completion_rate = rate
            elif "completion_rate" in data:
                engagement.completion_rate = data["completion_rate"]

        if (engagement.completion_rate or 0.0) >= self.settings.completed_threshold:
            engagement.completed_at = engagement.completed_at or now
        else:
            engagement.completed_at = None

        engagement.updated_at = now
        engagement.engagement_score = score_engagement(engagement)

    def _refresh_video_aggregates(self, video_id: str) -> None:
        try:
            avg_completion, avg_watch = (
                self.db.query(func.avg(Engagement.completion_rate), func.avg(Engagement.watch_time))
                .filter(Engagement.video_id == video_id, Engagement.video_source == "uploaded")
                .one()
            )
            self.db.query(Video).filter(Video.id == int(video_id)).update(
                {
                    Video.completion_rate: float(avg_completion or 0.0),
                    Video.average_watch_time: float(avg_watch or 0.0),
                },
                synchronize_session=False,
            )
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.warning(f"Failed to update video aggregate stats for {video_id}: {e}")

    def _append_viewing_history(self, user_id: int, video_id: str, watch_time: float, completion_rate: float) -> None:
        try:
            self.db.add(ViewingHistory(
                user_id=user_id,
                video_id=video_id,
                watch_time=watch_time or 0.0,
                completed=(completion_rate or 0.0) >= self.settings.completed_threshold,
                timestamp=utcnow(),
            ))
            self.db.flush()

            stale = (
                self.db.query(ViewingHistory.id)
                .filter(ViewingHistory.user_id == user_id)
                .order_by(ViewingHistory.timestamp.desc(), ViewingHistory.id.desc())
                .offset(self.settings.viewing_history_limit)
                .all()
            )
            if stale:
                self.db.query(ViewingHistory).filter(
                    ViewingHistory.id.in_([row_id for (row_id,) in stale])
                ).delete(synchronize_session=False)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.warning(f"Failed to update viewing history for user {user_id}: {e}")

    def _record_isolated(self, user_id: int, payload: EventPayload) -> TrackResponse:
        db = self.session_factory()
        try:
            return EngagementRecorder(db, session_factory=self.session_factory, settings=self.settings).record(user_id, payload)
        finally:
            db.close()

    def record_batch(self, user_id: int, events: List[EventPayload]) -> BatchResponse:
        """
        Record a list of events with independent outcomes.

        Each item runs on its own session in a worker thread; a failing item is
        logged and counted, never propagated.
        """
        if not events:
            raise ValidationFailure("events array is required")

        tracked = 0
        workers = max(1, min(self.settings.batch_max_workers, len(events)))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = [pool.submit(self._record_isolated, user_id, event) for event in events]
            for idx, future in enumerate(futures):
                try:
                    future.result()
                    tracked += 1
                except Exception as e:
                    logger.warning(f"Batch item {idx} for user {user_id} failed: {e}")

        logger.info(f"Batch for user {user_id}: tracked {tracked}/{len(events)} events")
        return BatchResponse(tracked_count=tracked, total_count=len(events))
