"""
Pytest fixtures for LivePoll tests.
"""

import random

import pytest

from ..api.service import APIService
from ..session import ActivityType, Session, SessionDirectory


@pytest.fixture
def session() -> Session:
    """An empty session owned by 'presenter'."""
    return Session(code="123456", presenter_id="presenter", name="Test Session")


@pytest.fixture
def session_with_activities(session: Session) -> Session:
    """Session with one activity of each kind, in order poll, quiz, wordcloud, qa."""
    session.create_activity(ActivityType.POLL, "Favourite colour?", ["Red", "Green", "Blue"])
    session.create_activity(ActivityType.QUIZ, "2 + 2?", ["3", "4", "5"], correct_answer=1)
    session.create_activity(ActivityType.WORDCLOUD, "One word for today")
    session.create_activity(ActivityType.QA, "Questions for the speaker")

    session.add_participant("alice", "Alice")
    session.add_participant("bob", "Bob")
    return session


@pytest.fixture
def directory() -> SessionDirectory:
    """Directory with a seeded code source."""
    return SessionDirectory(rng=random.Random(42))


@pytest.fixture
def service(directory: SessionDirectory) -> APIService:
    """A fresh API service."""
    return APIService(directory=directory)


@pytest.fixture
def live_room(service: APIService):
    """
    Service with a session created by 'presenter' and joined by
    'alice' and 'bob', holding one activity of each kind.

    Returns (service, code, activity_ids_by_type).
    """
    created = service.handle("presenter", "create-session", {"name": "Room"})
    code = created.ack["session"]["code"]

    ids = {}
    for payload in [
        {"type": "poll", "question": "Lunch?", "options": ["Pizza", "Salad"]},
        {"type": "quiz", "question": "Capital of France?", "options": ["Rome", "Paris"], "correct_answer": 1},
        {"type": "wordcloud", "question": "Mood?"},
        {"type": "qa", "question": "Ask me anything"},
    ]:
        dispatch = service.handle("presenter", "add-activity", {"code": code, **payload})
        ids[payload["type"]] = dispatch.ack["activity"]["id"]

    service.handle("alice", "join-session", {"code": code, "name": "Alice"})
    service.handle("bob", "join-session", {"code": code, "name": "Bob"})
    return service, code, ids
