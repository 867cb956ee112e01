from __future__ import annotations

from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from remediation.content import get_content_suggester
from remediation.db import Base, get_db
from remediation.main import app
from remediation.models import ExamPaper, Question
from remediation.routers.auth import User, get_current_user


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def paper(db) -> ExamPaper:
    """A three-question paper: two single_choice items and one cloze item."""
    p = ExamPaper(id="paper1", title="2024 中考英语模拟卷")
    db.add(p)
    db.add_all([
        Question(
            id="q1", paper_id="paper1", section_type="single_choice", order_index=1,
            content="The bridge ____ last year.", options=["A. built", "B. was built", "C. builds", "D. is building"],
            correct_answer="A", meta={"kps": ["grammar.voice"]},
        ),
        Question(
            id="q2", paper_id="paper1", section_type="single_choice", order_index=2,
            content="She has a strong ____ to become a doctor.", options=["A. ambition", "B. amount", "C. action", "D. advice"],
            correct_answer="B",
        ),
        Question(
            id="q3", paper_id="paper1", section_type="cloze", order_index=3,
            content="However, he didn't give up.", options=["A", "B", "C", "D"], correct_answer="C",
        ),
    ])
    db.commit()
    return p


class StubSuggester:
    """Content suggester double that returns canned payloads or raises."""

    def __init__(self, payload: Optional[Dict[str, Any]] = None, error: Optional[Exception] = None) -> None:
        self.payload = payload
        self.error = error
        self.contexts: List[Dict[str, Any]] = []

    async def suggest_content(self, context: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        self.contexts.append(context)
        if self.error is not None:
            raise self.error
        return self.payload


class _Auth:
    def __init__(self) -> None:
        self.username: Optional[str] = "alice"

    def as_user(self, username: Optional[str]) -> None:
        self.username = username


@pytest.fixture
def auth():
    return _Auth()


@pytest.fixture
def suggester_holder():
    return {"suggester": None}


@pytest.fixture
def client(session_factory, auth, suggester_holder):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    def _current_user():
        return User(username=auth.username)

    async def _suggester():
        yield suggester_holder["suggester"]

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_content_suggester] = _suggester
    app.dependency_overrides[get_current_user] = _current_user
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def anonymous_client(session_factory):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    yield TestClient(app)
    app.dependency_overrides.clear()
