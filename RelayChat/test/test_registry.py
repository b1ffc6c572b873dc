"""
Unit tests for the in-memory registry.
"""

import pytest

from RelayChat.core.exceptions import (
    BannedError,
    DuplicateFeatureRequestError,
    DuplicateUserError,
    NotFoundError,
    UnauthorizedError,
)
from RelayChat.core.server.registry import BannedUser, FeatureRequest, Registry, User


class TestConnectedUsers:
    """Tests for the connected-user collection."""

    def setup_method(self):
        self.registry = Registry()

    def test_add_and_find_user(self):
        user = User("c1", "alice", is_moderator=True)

        self.registry.add_user(user)

        assert self.registry.find_user("c1") == user
        assert "c1" in self.registry
        assert len(self.registry) == 1

    def test_list_users_keeps_insertion_order(self):
        for cid, name in [("c2", "bob"), ("c1", "alice"), ("c3", "carol")]:
            self.registry.add_user(User(cid, name))

        assert [u.username for u in self.registry.list_users()] == ["bob", "alice", "carol"]

    def test_list_users_is_a_copy(self):
        self.registry.add_user(User("c1", "alice"))
        listing = self.registry.list_users()

        self.registry.remove_user("c1")

        assert [u.id for u in listing] == ["c1"]
        assert self.registry.list_users() == []

    def test_same_connection_cannot_register_twice(self):
        self.registry.add_user(User("c1", "alice"))

        with pytest.raises(DuplicateUserError):
            self.registry.add_user(User("c1", "alice again"))

        assert [u.username for u in self.registry.list_users()] == ["alice"]

    def test_display_names_need_not_be_unique(self):
        self.registry.add_user(User("c1", "sam"))
        self.registry.add_user(User("c2", "sam"))

        assert len(self.registry) == 2

    def test_remove_absent_user_is_noop(self):
        assert self.registry.remove_user("missing") is None

    def test_add_user_rejects_banned_claimed_id(self):
        self.registry.ban_user(User("old", "mallory"))

        with pytest.raises(BannedError) as excinfo:
            self.registry.add_user(User("new", "mallory"), claimed_id="old")

        assert excinfo.value.banned_id == "old"
        assert "new" not in self.registry

    def test_require_user(self):
        self.registry.add_user(User("c1", "alice"))

        assert self.registry.require_user("c1").username == "alice"
        with pytest.raises(NotFoundError):
            self.registry.require_user("c2")

    def test_require_moderator(self):
        self.registry.add_user(User("mod", "alice", is_moderator=True))
        self.registry.add_user(User("usr", "bob"))

        assert self.registry.require_moderator("mod").username == "alice"
        with pytest.raises(UnauthorizedError):
            self.registry.require_moderator("usr")
        with pytest.raises(UnauthorizedError):
            self.registry.require_moderator("nobody")


class TestBans:
    """Tests for the ban list."""

    def setup_method(self):
        self.registry = Registry()
        self.bob = User("c2", "bob")
        self.registry.add_user(self.bob)

    def test_ban_moves_user_to_ban_list(self):
        entry = self.registry.ban_user(self.bob)

        assert entry == BannedUser("c2", "bob")
        assert "c2" not in self.registry
        assert self.registry.is_banned("c2")
        assert self.registry.list_banned() == [entry]

    def test_unban_removes_exactly_one_entry(self):
        self.registry.ban_user(self.bob)
        self.registry.ban_user(User("c2", "bob-duplicate"))

        removed = self.registry.unban_user("c2")

        assert removed.username == "bob"
        assert [b.username for b in self.registry.list_banned()] == ["bob-duplicate"]

    def test_unban_absent_is_noop(self):
        assert self.registry.unban_user("c9") is None
        assert self.registry.list_banned() == []

    def test_unban_never_touches_connected_users(self):
        self.registry.add_user(User("c3", "carol"))
        self.registry.ban_user(self.bob)

        self.registry.unban_user("c2")

        assert [u.id for u in self.registry.list_users()] == ["c3"]

    def test_is_banned_with_no_identifier(self):
        assert self.registry.is_banned(None) is False


class TestFeatureRequests:
    """Tests for the feature-request collection."""

    def setup_method(self):
        self.registry = Registry()

    def test_add_and_list_in_order(self):
        self.registry.add_feature_request(FeatureRequest("fr1", "dark mode", "carol"))
        self.registry.add_feature_request(FeatureRequest("fr2", "emoji", "dave"))

        assert [r.id for r in self.registry.list_feature_requests()] == ["fr1", "fr2"]

    def test_duplicate_identifier_rejected(self):
        self.registry.add_feature_request(FeatureRequest("fr1", "dark mode", "carol"))

        with pytest.raises(DuplicateFeatureRequestError):
            self.registry.add_feature_request(FeatureRequest("fr1", "light mode", "dave"))

        assert [r.text for r in self.registry.list_feature_requests()] == ["dark mode"]

    def test_remove_by_identifier(self):
        self.registry.add_feature_request(FeatureRequest("fr1", "dark mode", "carol"))
        self.registry.add_feature_request(FeatureRequest("fr2", "emoji", "dave"))

        removed = self.registry.remove_feature_request("fr1")

        assert removed.text == "dark mode"
        assert [r.id for r in self.registry.list_feature_requests()] == ["fr2"]

    def test_remove_absent_is_noop(self):
        assert self.registry.remove_feature_request("nope") is None


class TestWireViews:
    """Tests for the payloads broadcast to clients."""

    def test_payloads_use_client_field_names(self):
        registry = Registry()
        registry.add_user(User("c1", "alice", is_moderator=True))
        registry.ban_user(User("c2", "bob"))
        registry.add_feature_request(FeatureRequest("fr1", "dark mode", "alice"))

        assert registry.user_list_payload() == [{"id": "c1", "username": "alice", "isModerator": True}]
        assert registry.banned_list_payload() == [{"id": "c2", "username": "bob"}]
        assert registry.feature_requests_payload() == [
            {"id": "fr1", "text": "dark mode", "username": "alice"}
        ]
        assert registry.stats() == {"connected_users": 1, "banned_users": 1, "feature_requests": 1}
