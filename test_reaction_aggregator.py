import asyncio

import pytest
from sqlalchemy.exc import IntegrityError

from social_graph.crud.comments import CommentsCRUD
from social_graph.crud.reactions import ReactionsCRUD
from social_graph.database import transaction
from social_graph.errors import CommentNotFoundError, ValidationError
from social_graph.models.reaction import CommentReaction, ReactionType
from social_graph.services.reaction_aggregator import (
    ReactionAggregator,
    counter_delta,
    parse_reaction_type,
    predict_transition,
)


@pytest.fixture
def comment_id(db, trade_setup_id):
    with transaction(db):
        setup = CommentsCRUD.get_trade_setup(db, trade_setup_id)
        comment = CommentsCRUD.create_comment(db, setup, "bob", "Stop looks too tight")
    return comment.id


@pytest.fixture
def aggregator(db):
    return ReactionAggregator(db)


def react(aggregator, comment_id, user_id, reaction_type):
    return asyncio.run(aggregator.react(comment_id, user_id, reaction_type))


class TestReact:

    def test_first_like(self, aggregator, comment_id):
        outcome = react(aggregator, comment_id, "alice", "LIKE")

        assert outcome.reaction == ReactionType.LIKE
        assert outcome.previous is None
        assert (outcome.likes_count, outcome.dislikes_count) == (1, 0)
        assert outcome.operation == "LIKE.insert"
        assert outcome.row_id is not None

    def test_same_type_toggles_off(self, aggregator, comment_id, db):
        react(aggregator, comment_id, "alice", "LIKE")
        outcome = react(aggregator, comment_id, "alice", "LIKE")

        assert outcome.reaction is None
        assert (outcome.likes_count, outcome.dislikes_count) == (0, 0)
        assert outcome.operation == "LIKE.delete"
        assert ReactionsCRUD.get_reaction(db, comment_id, "alice") is None

    def test_other_type_replaces(self, aggregator, comment_id, db):
        react(aggregator, comment_id, "bob", "LIKE")
        before = react(aggregator, comment_id, "alice", "DISLIKE")
        first = react(aggregator, comment_id, "alice", "LIKE")
        second = react(aggregator, comment_id, "alice", "DISLIKE")

        assert (before.likes_count, before.dislikes_count) == (1, 1)
        assert (first.likes_count, first.dislikes_count) == (2, 0)
        assert (second.likes_count, second.dislikes_count) == (1, 1)
        assert second.operation == "LIKE->DISLIKE"
        assert db.query(CommentReaction).filter(CommentReaction.comment_id == comment_id).count() == 2

    def test_like_then_dislike_relative_to_start(self, aggregator, comment_id):
        react(aggregator, comment_id, "bob", "LIKE")
        react(aggregator, comment_id, "carol", "LIKE")
        start = (2, 0)

        react(aggregator, comment_id, "alice", "LIKE")
        outcome = react(aggregator, comment_id, "alice", "DISLIKE")
        assert (outcome.likes_count, outcome.dislikes_count) == (start[0], start[1] + 1)

    def test_lowercase_type_accepted(self, aggregator, comment_id):
        assert react(aggregator, comment_id, "alice", "dislike").reaction == ReactionType.DISLIKE

    def test_unknown_type(self, aggregator, comment_id):
        with pytest.raises(ValidationError):
            react(aggregator, comment_id, "alice", "LOVE")

    def test_missing_comment(self, aggregator):
        with pytest.raises(CommentNotFoundError):
            react(aggregator, "no-such-comment", "alice", "LIKE")

    def test_insert_race_retries_against_existing_row(self, aggregator, comment_id, db, monkeypatch):
        react(aggregator, comment_id, "alice", "LIKE")

        real_get = ReactionsCRUD.get_reaction
        calls = {"n": 0}

        def stale_first_read(session, c_id, user_id):
            calls["n"] += 1
            if calls["n"] == 1:
                return None
            return real_get(session, c_id, user_id)

        monkeypatch.setattr(ReactionsCRUD, "get_reaction", staticmethod(stale_first_read))
        outcome = react(aggregator, comment_id, "alice", "DISLIKE")

        assert outcome.reaction == ReactionType.DISLIKE
        assert (outcome.likes_count, outcome.dislikes_count) == (0, 1)

    def test_second_failure_propagates(self, aggregator, comment_id, monkeypatch):
        def always_conflict(*args, **kwargs):
            raise IntegrityError("INSERT", {}, Exception("unique_comment_reaction"))

        monkeypatch.setattr(ReactionsCRUD, "add_reaction", staticmethod(always_conflict))
        with pytest.raises(IntegrityError):
            react(aggregator, comment_id, "alice", "LIKE")


class TestHelpers:

    def test_parse_reaction_type(self):
        assert parse_reaction_type("like") == ReactionType.LIKE
        assert parse_reaction_type(ReactionType.DISLIKE) == ReactionType.DISLIKE

    def test_predict_transition(self):
        assert predict_transition(None, ReactionType.LIKE) == ReactionType.LIKE
        assert predict_transition(ReactionType.LIKE, ReactionType.LIKE) is None
        assert predict_transition(ReactionType.LIKE, ReactionType.DISLIKE) == ReactionType.DISLIKE

    def test_counter_delta(self):
        assert counter_delta(None, ReactionType.LIKE) == {"likes_count": 1}
        assert counter_delta(ReactionType.LIKE, None) == {"likes_count": -1}
        assert counter_delta(ReactionType.LIKE, ReactionType.DISLIKE) == {"likes_count": -1, "dislikes_count": 1}
        assert counter_delta(None, None) == {}
