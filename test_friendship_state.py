import asyncio

import pytest

from social_graph.crud.friends import FriendsCRUD
from social_graph.errors import (
    AlreadyFriendsError,
    DuplicateRequestError,
    NotAuthorizedError,
    ReciprocalRequestError,
    RequestNotFoundError,
    SelfReferenceError,
)
from social_graph.models.friend_request import FriendRequestStatus
from social_graph.models.friendship import FriendshipStatus
from social_graph.services.friendship_state import FriendshipStateMachine, RelationshipState
from social_graph.services.identity import normalize


@pytest.fixture
def machine(db):
    return FriendshipStateMachine(db)


def relationship(machine, a, b):
    return asyncio.run(machine.get_relationship(a, b))


def befriend(machine, a, b):
    asyncio.run(machine.send_request(a, b))
    asyncio.run(machine.accept_request(b, a))


class TestSendRequest:

    def test_pending_seen_from_both_sides(self, machine):
        friend_request = asyncio.run(machine.send_request("alice", "bob"))

        assert friend_request.status == FriendRequestStatus.PENDING.value
        assert friend_request.sender_id == "alice"
        assert relationship(machine, "alice", "bob") == RelationshipState.PENDING_SENT
        assert relationship(machine, "bob", "alice") == RelationshipState.PENDING_RECEIVED

    def test_self_request_rejected(self, machine):
        with pytest.raises(SelfReferenceError):
            asyncio.run(machine.send_request("alice", "alice"))

    def test_repeat_is_duplicate(self, machine):
        asyncio.run(machine.send_request("alice", "bob"))
        with pytest.raises(DuplicateRequestError):
            asyncio.run(machine.send_request("alice", "bob"))

    def test_reverse_is_reciprocal(self, machine):
        asyncio.run(machine.send_request("alice", "bob"))
        with pytest.raises(ReciprocalRequestError):
            asyncio.run(machine.send_request("bob", "alice"))

    def test_already_friends(self, machine):
        befriend(machine, "alice", "bob")
        with pytest.raises(AlreadyFriendsError):
            asyncio.run(machine.send_request("bob", "alice"))

    def test_blocked_pair_cannot_request(self, machine):
        asyncio.run(machine.block("bob", "alice"))
        with pytest.raises(NotAuthorizedError):
            asyncio.run(machine.send_request("alice", "bob"))

    def test_racing_insert_maps_to_request_error(self, machine, monkeypatch):
        asyncio.run(machine.send_request("bob", "alice"))

        real_find = FriendsCRUD.find_request_between
        calls = {"n": 0}

        def stale_first_read(db, user_a, user_b):
            calls["n"] += 1
            if calls["n"] == 1:
                return None
            return real_find(db, user_a, user_b)

        monkeypatch.setattr(FriendsCRUD, "find_request_between", staticmethod(stale_first_read))
        with pytest.raises(ReciprocalRequestError):
            asyncio.run(machine.send_request("alice", "bob"))
        assert relationship(machine, "alice", "bob") == RelationshipState.PENDING_RECEIVED


class TestRespond:

    def test_accept_makes_friends(self, machine, db):
        befriend(machine, "alice", "bob")

        assert relationship(machine, "alice", "bob") == RelationshipState.FRIENDS
        assert relationship(machine, "bob", "alice") == RelationshipState.FRIENDS
        friendship = FriendsCRUD.get_friendship(db, normalize("alice", "bob"))
        assert friendship.status == FriendshipStatus.ACCEPTED.value

    def test_accept_stamps_updated_at(self, machine):
        sent = asyncio.run(machine.send_request("alice", "bob"))
        created_at = sent.created_at
        accepted = asyncio.run(machine.accept_request("bob", "alice"))
        assert accepted.updated_at >= created_at

    def test_sender_cannot_accept_own_request(self, machine):
        asyncio.run(machine.send_request("alice", "bob"))
        with pytest.raises(RequestNotFoundError):
            asyncio.run(machine.accept_request("alice", "bob"))

    def test_accept_twice_is_not_found(self, machine):
        befriend(machine, "alice", "bob")
        with pytest.raises(RequestNotFoundError):
            asyncio.run(machine.accept_request("bob", "alice"))

    def test_decline_then_request_again(self, machine, db):
        asyncio.run(machine.send_request("alice", "bob"))
        declined = asyncio.run(machine.decline_request("bob", "alice"))

        assert declined.status == FriendRequestStatus.DECLINED.value
        assert relationship(machine, "alice", "bob") == RelationshipState.NONE
        # The declined row is kept until a new request supersedes it
        assert FriendsCRUD.find_request_between(db, "alice", "bob").status == FriendRequestStatus.DECLINED.value

        fresh = asyncio.run(machine.send_request("alice", "bob"))
        assert fresh.id != declined.id
        assert relationship(machine, "bob", "alice") == RelationshipState.PENDING_RECEIVED

    def test_declined_recipient_may_send_instead(self, machine):
        asyncio.run(machine.send_request("alice", "bob"))
        asyncio.run(machine.decline_request("bob", "alice"))
        asyncio.run(machine.send_request("bob", "alice"))
        assert relationship(machine, "bob", "alice") == RelationshipState.PENDING_SENT

    def test_cancel_deletes_request(self, machine, db):
        asyncio.run(machine.send_request("alice", "bob"))
        asyncio.run(machine.cancel_request("alice", "bob"))

        assert FriendsCRUD.find_request_between(db, "alice", "bob") is None
        assert relationship(machine, "alice", "bob") == RelationshipState.NONE

    def test_accept_after_cancel_is_not_found(self, machine):
        asyncio.run(machine.send_request("alice", "bob"))
        asyncio.run(machine.cancel_request("alice", "bob"))
        with pytest.raises(RequestNotFoundError):
            asyncio.run(machine.accept_request("bob", "alice"))

    def test_recipient_cannot_cancel(self, machine):
        asyncio.run(machine.send_request("alice", "bob"))
        with pytest.raises(RequestNotFoundError):
            asyncio.run(machine.cancel_request("bob", "alice"))


class TestUnfriend:

    def test_alice_and_bob(self, machine):
        asyncio.run(machine.send_request("alice", "bob"))
        assert relationship(machine, "alice", "bob") == RelationshipState.PENDING_SENT
        assert relationship(machine, "bob", "alice") == RelationshipState.PENDING_RECEIVED

        asyncio.run(machine.accept_request("bob", "alice"))
        assert relationship(machine, "alice", "bob") == RelationshipState.FRIENDS
        assert relationship(machine, "bob", "alice") == RelationshipState.FRIENDS

        assert asyncio.run(machine.unfriend("alice", "bob")) is True
        assert relationship(machine, "alice", "bob") == RelationshipState.NONE
        assert relationship(machine, "bob", "alice") == RelationshipState.NONE

    def test_either_side_can_unfriend(self, machine, db):
        befriend(machine, "alice", "bob")
        assert asyncio.run(machine.unfriend("bob", "alice")) is True
        assert FriendsCRUD.get_friendship(db, normalize("alice", "bob")) is None

    def test_not_friends(self, machine):
        assert asyncio.run(machine.unfriend("alice", "bob")) is False

    def test_pending_request_survives_unfriend(self, machine):
        asyncio.run(machine.send_request("alice", "bob"))
        assert asyncio.run(machine.unfriend("alice", "bob")) is False
        assert relationship(machine, "alice", "bob") == RelationshipState.PENDING_SENT


class TestBlocking:

    def test_block_seen_from_both_sides(self, machine):
        friendship = asyncio.run(machine.block("alice", "bob"))

        assert friendship.status == FriendshipStatus.BLOCKED.value
        assert friendship.action_user_id == "alice"
        assert (friendship.user1_id, friendship.user2_id) == ("alice", "bob")
        assert relationship(machine, "alice", "bob") == RelationshipState.BLOCKED
        assert relationship(machine, "bob", "alice") == RelationshipState.BLOCKED

    def test_block_by_higher_id_lands_on_same_row(self, machine, db):
        asyncio.run(machine.block("bob", "alice"))
        friendship = FriendsCRUD.get_friendship(db, normalize("alice", "bob"))
        assert (friendship.user1_id, friendship.user2_id) == ("alice", "bob")
        assert friendship.action_user_id == "bob"

    def test_block_overrides_friendship(self, machine):
        befriend(machine, "alice", "bob")
        asyncio.run(machine.block("bob", "alice"))
        assert relationship(machine, "alice", "bob") == RelationshipState.BLOCKED

    def test_cannot_block_self(self, machine):
        with pytest.raises(SelfReferenceError):
            asyncio.run(machine.block("alice", "alice"))

    def test_only_blocker_can_unblock(self, machine):
        asyncio.run(machine.block("alice", "bob"))
        with pytest.raises(NotAuthorizedError):
            asyncio.run(machine.unblock("bob", "alice"))
        assert relationship(machine, "bob", "alice") == RelationshipState.BLOCKED

    def test_unblock_restores_friends(self, machine, db):
        befriend(machine, "alice", "bob")
        asyncio.run(machine.block("alice", "bob"))

        assert asyncio.run(machine.unblock("alice", "bob")) is True
        assert relationship(machine, "alice", "bob") == RelationshipState.FRIENDS
        friendship = FriendsCRUD.get_friendship(db, normalize("alice", "bob"))
        assert friendship.status == FriendshipStatus.ACCEPTED.value

    def test_unblock_restores_none(self, machine, db):
        asyncio.run(machine.block("alice", "bob"))
        asyncio.run(machine.unblock("alice", "bob"))

        assert relationship(machine, "alice", "bob") == RelationshipState.NONE
        assert FriendsCRUD.get_friendship(db, normalize("alice", "bob")) is None

    def test_unblock_restores_pending(self, machine):
        asyncio.run(machine.send_request("alice", "bob"))
        asyncio.run(machine.block("bob", "alice"))
        asyncio.run(machine.unblock("bob", "alice"))
        assert relationship(machine, "bob", "alice") == RelationshipState.PENDING_RECEIVED

    def test_unblock_without_block(self, machine):
        assert asyncio.run(machine.unblock("alice", "bob")) is False


class TestQueries:

    def test_list_friends_skips_blocked(self, machine):
        befriend(machine, "alice", "bob")
        befriend(machine, "carol", "alice")
        asyncio.run(machine.block("alice", "carol"))

        friends = asyncio.run(machine.list_friends("alice"))
        assert [friend_id for friend_id, _ in friends] == ["bob"]

    def test_incoming_and_sent(self, machine):
        asyncio.run(machine.send_request("alice", "bob"))
        asyncio.run(machine.send_request("carol", "bob"))

        incoming = asyncio.run(machine.list_incoming_requests("bob"))
        assert sorted(r.sender_id for r in incoming) == ["alice", "carol"]
        sent = asyncio.run(machine.list_sent_requests("alice"))
        assert [r.recipient_id for r in sent] == ["bob"]
        assert asyncio.run(machine.list_sent_requests("bob")) == []

    def test_relationship_map(self, machine):
        befriend(machine, "alice", "bob")
        asyncio.run(machine.send_request("carol", "alice"))

        states = asyncio.run(machine.get_relationship_map("alice", ["bob", "carol", "dave", "alice"]))
        assert states == {
            "bob": RelationshipState.FRIENDS,
            "carol": RelationshipState.PENDING_RECEIVED,
            "dave": RelationshipState.NONE,
        }

    def test_relationship_map_blocked(self, machine):
        befriend(machine, "alice", "bob")
        asyncio.run(machine.block("bob", "alice"))
        states = asyncio.run(machine.get_relationship_map("alice", ["bob"]))
        assert states == {"bob": RelationshipState.BLOCKED}

    def test_relationship_with_self(self, machine):
        assert relationship(machine, "alice", "alice") == RelationshipState.NONE
