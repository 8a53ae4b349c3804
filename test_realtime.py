import pytest

from social_graph.crud.comments import CommentsCRUD
from social_graph.database import transaction
from social_graph.realtime import DELETE, INSERT, UPDATE, ChangeEvent


@pytest.fixture
def received(feed):
    events = []
    feed.subscribe("*", events.append)
    return events


def tables(events):
    return [(e.event_type, e.table) for e in events]


class TestChangeFeed:

    def test_published_on_commit(self, db, received, trade_setup_id):
        with transaction(db):
            setup = CommentsCRUD.get_trade_setup(db, trade_setup_id)
            comment = CommentsCRUD.create_comment(db, setup, "bob", "Watching 1.0900")
            assert received == []

        assert (INSERT, "trade_setup_comments") in tables(received)
        assert (UPDATE, "trade_setups") in tables(received)
        [insert] = [e for e in received if e.event_type == INSERT]
        assert insert.row_id == comment.id
        assert insert.row["trade_setup_id"] == trade_setup_id

    def test_rollback_discards(self, db, received, trade_setup_id):
        with pytest.raises(RuntimeError):
            with transaction(db):
                setup = CommentsCRUD.get_trade_setup(db, trade_setup_id)
                CommentsCRUD.create_comment(db, setup, "bob", "Never mind")
                raise RuntimeError("abort")
        assert received == []

    def test_update_carries_previous_row(self, db, received, trade_setup_id):
        with transaction(db):
            setup = CommentsCRUD.get_trade_setup(db, trade_setup_id)
            comment = CommentsCRUD.create_comment(db, setup, "bob", "draft")
        received.clear()

        with transaction(db):
            CommentsCRUD.update_comment_content(db, comment, "final")
        [update] = [e for e in received if e.table == "trade_setup_comments"]
        assert update.event_type == UPDATE
        assert update.row["content"] == "final"
        assert update.old_row["content"] == "draft"

    def test_delete_event(self, db, received, trade_setup_id):
        with transaction(db):
            setup = CommentsCRUD.get_trade_setup(db, trade_setup_id)
            comment = CommentsCRUD.create_comment(db, setup, "bob", "temp")
        received.clear()

        with transaction(db):
            CommentsCRUD.delete_comment(db, comment)
        [delete] = [e for e in received if e.event_type == DELETE]
        assert delete.row_id == comment.id

    def test_unwatched_tables_skipped(self, db, received):
        from social_graph.crud.user import UserCRUD
        with transaction(db):
            UserCRUD.create_user(db, "dave")
        assert received == []

    def test_per_table_subscription_and_unsubscribe(self, feed):
        likes = []
        unsubscribe = feed.subscribe("trade_setup_likes", likes.append)
        like = ChangeEvent(INSERT, "trade_setup_likes", {"id": "l1"})

        feed.deliver(ChangeEvent(INSERT, "friendships", {"id": "f1"}))
        feed.deliver(like)
        unsubscribe()
        feed.deliver(like)
        assert likes == [like]

    def test_failing_subscriber_does_not_stop_others(self, feed):
        seen = []

        def broken(change):
            raise ValueError("bad subscriber")

        feed.subscribe("friendships", broken)
        feed.subscribe("friendships", seen.append)
        feed.deliver(ChangeEvent(INSERT, "friendships", {"id": "f1"}))
        assert len(seen) == 1

    def test_disconnect_drops_and_reconnect_notifies(self, feed):
        seen, reconnects = [], []
        feed.subscribe("friendships", seen.append)
        feed.on_reconnect(lambda: reconnects.append(True))

        feed.disconnect()
        feed.deliver(ChangeEvent(INSERT, "friendships", {"id": "f1"}))
        feed.reconnect()
        feed.reconnect()

        assert seen == []
        assert reconnects == [True]
