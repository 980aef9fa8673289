"""Unit tests for users/store.py -- the User Directory.

Covers:
- upsert inserts with role "user" and is idempotent (one record per email)
- repeated upserts never change role or created_at
- missing email is rejected
- get_role defaults to "user" for unknown emails
- set_role validation
"""

import pytest

from core.errors import InvalidInput


class TestUpsertUser:
    def test_first_upsert_inserts_user_role(self, users):
        result = users.upsert_user("a@x.com", name="A")
        assert result.upserted_id is not None
        assert result.matched_count == 0
        user = users.get_user("a@x.com")
        assert user.role == "user"
        assert user.name == "A"
        assert user.photo_url == ""
        assert user.created_at

    def test_second_upsert_matches_existing_record(self, users):
        first = users.upsert_user("a@x.com", name="A")
        second = users.upsert_user("a@x.com", name="A")
        assert second.upserted_id is None
        assert second.matched_count == 1
        assert second.modified_count == 0
        assert users.get_user("a@x.com").id == first.upserted_id

    def test_upsert_refreshes_profile_but_preserves_role(self, users):
        users.upsert_user("lib@x.com", name="Old")
        users.set_role("lib@x.com", "librarian")
        created_at = users.get_user("lib@x.com").created_at

        result = users.upsert_user("lib@x.com", name="New", photo_url="https://img/new.png")

        assert result.modified_count == 1
        user = users.get_user("lib@x.com")
        assert user.name == "New"
        assert user.photo_url == "https://img/new.png"
        assert user.role == "librarian"
        assert user.created_at == created_at

    @pytest.mark.parametrize("email", [None, ""])
    def test_missing_email_rejected(self, users, email):
        with pytest.raises(InvalidInput, match="Email required"):
            users.upsert_user(email, name="Nobody")


class TestRoles:
    def test_get_role_defaults_to_user_when_absent(self, users):
        assert users.get_role("ghost@x.com") == "user"

    def test_get_role_returns_stored_role(self, users):
        users.upsert_user("admin@x.com")
        users.set_role("admin@x.com", "admin")
        assert users.get_role("admin@x.com") == "admin"

    def test_set_role_unknown_email_returns_false(self, users):
        assert users.set_role("ghost@x.com", "admin") is False

    def test_set_role_rejects_unknown_role(self, users):
        users.upsert_user("a@x.com")
        with pytest.raises(InvalidInput):
            users.set_role("a@x.com", "superuser")
