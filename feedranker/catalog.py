"""Read-only query surface over the two video catalogs and user profiles."""

from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Set
import functools

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from .database import ExternalVideo, User, Video
from .errors import DegradedDependency

ENTERTAINMENT_CATEGORIES = ("art", "music", "sports", "cooking")
RECOVERY_CATEGORIES = ("education", "science", "history")


def catalog_read(fn):
    """Surface storage failures of a catalog query as DegradedDependency."""
    @functools.wraps(fn)
    def wrapper(db: Session, *args, **kwargs):
        try:
            return fn(db, *args, **kwargs)
        except SQLAlchemyError as e:
            db.rollback()
            raise DegradedDependency(f"{fn.__name__} failed: {e}") from e
    return wrapper


@dataclass(frozen=True)
class UserProfile:
    id: int
    interests: frozenset = field(default_factory=frozenset)


def get_user_profile(db: Session, user_id: int) -> Optional[UserProfile]:
    user = db.get(User, user_id)
    if user is None:
        return None
    return UserProfile(id=user.id, interests=frozenset(user.interests or []))


def _uploaded_ids(video_ids: Iterable[str]) -> Set[int]:
    return {int(v) for v in video_ids if str(v).isdigit()}


def _active_uploaded(db: Session, exclude: Iterable[str] = ()):
    query = (
        db.query(Video)
        .options(joinedload(Video.creator))
        .filter(Video.status == "approved", Video.is_private == False)  # noqa: E712
    )
    excluded = _uploaded_ids(exclude)
    if excluded:
        query = query.filter(~Video.id.in_(excluded))
    return query


@catalog_read
def fetch_entertainment(db: Session, exclude: Iterable[str], limit: int, min_views: int = 1000) -> List[Video]:
    """Light, popular videos: an entertainment category or a proven audience."""
    if limit <= 0:
        return []
    return (
        _active_uploaded(db, exclude)
        .filter(or_(Video.category.in_(ENTERTAINMENT_CATEGORIES), Video.views >= min_views))
        .order_by(Video.views.desc(), Video.like_count.desc(), Video.id)
        .limit(limit)
        .all()
    )


@catalog_read
def fetch_recovery(db: Session, exclude: Iterable[str], limit: int, max_duration: float = 180) -> List[Video]:
    """Short educational videos to ease a disengaging viewer back in."""
    if limit <= 0:
        return []
    return (
        _active_uploaded(db, exclude)
        .filter(Video.category.in_(RECOVERY_CATEGORIES), Video.duration <= max_duration)
        .order_by(Video.like_count.desc(), Video.id)
        .limit(limit)
        .all()
    )


@catalog_read
def fetch_category(db: Session, category: str, exclude: Iterable[str], limit: int) -> List[Video]:
    if limit <= 0:
        return []
    return (
        _active_uploaded(db, exclude)
        .filter(Video.category == category)
        .order_by(Video.created_at.desc(), Video.like_count.desc(), Video.views.desc(), Video.id)
        .limit(limit)
        .all()
    )


@catalog_read
def fetch_trending(db: Session, exclude: Iterable[str], limit: int) -> List[Video]:
    if limit <= 0:
        return []
    return (
        _active_uploaded(db, exclude)
        .order_by(Video.views.desc(), Video.like_count.desc(), Video.id)
        .limit(limit)
        .all()
    )


@catalog_read
def fetch_uploaded_feed(db: Session, category: Optional[str], cap: int) -> List[Video]:
    query = _active_uploaded(db)
    if category:
        query = query.filter(Video.category == category)
    return (
        query.order_by(func.coalesce(Video.published_at, Video.uploaded_at).desc(), Video.id.desc())
        .limit(cap)
        .all()
    )


@catalog_read
def fetch_external_feed(db: Session, category: Optional[str], cap: int) -> List[ExternalVideo]:
    query = db.query(ExternalVideo).filter(ExternalVideo.is_active == True)  # noqa: E712
    if category:
        query = query.filter(ExternalVideo.subject.ilike(f"%{category}%"))
    return query.order_by(ExternalVideo.cached_at.desc(), ExternalVideo.id.desc()).limit(cap).all()
