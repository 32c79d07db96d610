import os
import sys
import tempfile
from pathlib import Path
import pytest

# Ensure project root is on sys.path
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Keep the module-level engine away from the working directory
os.environ.setdefault("DATABASE_URL", f"sqlite:///{Path(tempfile.gettempdir()) / 'feedranker-test.db'}")

from sqlalchemy.orm import sessionmaker

from feedranker.database import ExternalVideo, User, Video, get_db, init_db, make_engine, utcnow
from feedranker.main import app


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture
def engine(tmp_path):
    # File-backed so batch worker threads get their own connections
    eng = make_engine(f"sqlite:///{tmp_path / 'feed.db'}")
    init_db(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def override_db(session_factory):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    yield
    app.dependency_overrides.pop(get_db, None)


def add_user(db, username="alice", interests=None):
    user = User(username=username, interests=interests or [])
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def add_video(db, title="Video", category="math", duration=100.0, views=0, likes=0, **kw):
    video = Video(
        title=title,
        category=category,
        duration=duration,
        views=views,
        like_count=likes,
        status=kw.pop("status", "approved"),
        published_at=kw.pop("published_at", utcnow()),
        **kw,
    )
    db.add(video)
    db.commit()
    db.refresh(video)
    return video


def add_external(db, video_id="yt-1", subject="science", view_count=1000, **kw):
    video = ExternalVideo(video_id=video_id, title=kw.pop("title", video_id), subject=subject,
                          view_count=view_count, published_at=kw.pop("published_at", utcnow()), **kw)
    db.add(video)
    db.commit()
    db.refresh(video)
    return video
