"""Shared fixtures: in-memory SQLite store, change feed, counter sync and per-user facades."""
from typing import List, Tuple

import pytest
from sqlalchemy.orm import sessionmaker

from social_graph.auth import StaticUserProvider
from social_graph.crud.comments import CommentsCRUD
from social_graph.crud.user import UserCRUD
from social_graph.database import build_engine, create_tables, transaction
from social_graph.realtime import ChangeFeed
from social_graph.services.counter_sync import EngagementCounterSync
from social_graph.services.facade import SocialGraphFacade, connect_counter_feed
from social_graph.services.notifications import FriendRequestNotifier
from social_graph.utils.email_sender import EmailSender


class RecordingEmailSender(EmailSender):
    """Keeps every email instead of sending it."""

    def __init__(self, fail: bool = False):
        self.sent: List[Tuple[str, str, str]] = []
        self.fail = fail

    def send_email(self, to_email, subject, html_content):
        if self.fail:
            raise RuntimeError("provider unavailable")
        self.sent.append((to_email, subject, html_content))
        return {"message": "queued"}


@pytest.fixture
def engine():
    engine = build_engine("sqlite://")
    create_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


@pytest.fixture
def feed(session_factory):
    feed = ChangeFeed().attach(session_factory)
    yield feed
    feed.detach()


@pytest.fixture
def counters(feed, session_factory):
    counters = EngagementCounterSync(staleness_seconds=30, consumed_cache_size=100)
    connect_counter_feed(feed, counters, session_factory)
    return counters


@pytest.fixture
def email_sender():
    return RecordingEmailSender()


@pytest.fixture
def notifier(email_sender):
    return FriendRequestNotifier(email_sender=email_sender, enabled=True, site_url="https://journal.test")


@pytest.fixture
def trade_setup_id(session_factory):
    """Seed alice, bob and carol plus one trade setup owned by alice."""
    db = session_factory()
    try:
        with transaction(db):
            UserCRUD.create_user(db, "alice", username="alice", email="alice@example.com")
            UserCRUD.create_user(db, "bob", username="bob", email="bob@example.com")
            UserCRUD.create_user(db, "carol", username="carol", email_friend_requests=False)
            setup = CommentsCRUD.create_trade_setup(db, "alice", "EURUSD London breakout")
        return setup.id
    finally:
        db.close()


@pytest.fixture
def db(session_factory, trade_setup_id):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def facade_for(session_factory, counters, notifier, trade_setup_id):
    """Factory building a facade acting as the given user, each on its own session."""
    sessions = []

    def make(user_id):
        session = session_factory()
        sessions.append(session)
        return SocialGraphFacade(session, StaticUserProvider(user_id), counters=counters, notifier=notifier)

    yield make
    for session in sessions:
        session.close()
