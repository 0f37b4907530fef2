"""Shared pytest fixtures: in-memory database, scripted LLM backend, video factory."""
import json
from datetime import datetime, timezone
from uuid import uuid4

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import tracker.models  # noqa: F401
from tracker.db.base import Base
from tracker.models import Video
from tracker.services.llm import LLMBackend
from tracker.services.oracle import ExtractionOracle

USER_ID = "user-1"


class ScriptedBackend(LLMBackend):
    """Replays canned responses in order and records every prompt it was sent."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    def complete(self, system: str, prompt: str) -> str:
        self.calls.append((system, prompt))
        if not self.responses:
            raise RuntimeError("no scripted response left")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        if isinstance(response, (dict, list)):
            return json.dumps(response)
        return response


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def scripted_oracle():
    """Build an ExtractionOracle whose backend answers with the given responses."""
    def _make(*responses):
        backend = ScriptedBackend(responses)
        oracle = ExtractionOracle(backend=backend)
        return oracle, backend
    return _make


@pytest.fixture
def make_video(db):
    def _make(title="Untitled", user_id=USER_ID, **kwargs):
        video = Video(
            id=kwargs.pop("id", str(uuid4())),
            user_id=user_id,
            title=title,
            source=kwargs.pop("source", "manual"),
            created_at=kwargs.pop("created_at", datetime.now(timezone.utc)),
            **kwargs,
        )
        db.add(video)
        db.commit()
        return video
    return _make
