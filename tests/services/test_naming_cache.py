"""Tests for the persisted ticket naming cache."""

from unittest.mock import patch

from sqlalchemy.exc import OperationalError

from standup.db.models import TicketName
from standup.services.naming_cache import NamingCache


class TestNamingCache:
    """Tests for NamingCache get/merge."""

    def test_get_empty(self, db_session, user):
        assert NamingCache(db_session).get(user.id) == {}

    def test_merge_then_get(self, db_session, user):
        cache = NamingCache(db_session)
        cache.merge(user.id, {"ABC-1": "Login flow", "ABC-2": "Billing export"})

        assert cache.get(user.id) == {"ABC-1": "Login flow", "ABC-2": "Billing export"}

    def test_merge_overwrites_changed_name(self, db_session, user):
        cache = NamingCache(db_session)
        cache.merge(user.id, {"ABC-1": "Login flow"})
        cache.merge(user.id, {"ABC-1": "SSO login"})

        assert cache.get(user.id) == {"ABC-1": "SSO login"}
        assert db_session.query(TicketName).count() == 1

    def test_merge_is_idempotent(self, db_session, user):
        """Merging the same mapping twice leaves storage unchanged."""
        cache = NamingCache(db_session)
        names = {"ABC-1": "Login flow", "ABC-2": "Billing export"}
        cache.merge(user.id, names)
        first = {
            (row.ticket_key, row.name, row.updated_at)
            for row in db_session.query(TicketName).all()
        }

        cache.merge(user.id, names)
        second = {
            (row.ticket_key, row.name, row.updated_at)
            for row in db_session.query(TicketName).all()
        }

        assert first == second

    def test_merge_keeps_unmentioned_keys(self, db_session, user):
        cache = NamingCache(db_session)
        cache.merge(user.id, {"ABC-1": "Login flow"})
        cache.merge(user.id, {"ABC-2": "Billing export"})

        assert cache.get(user.id) == {"ABC-1": "Login flow", "ABC-2": "Billing export"}

    def test_merge_skips_blank_names(self, db_session, user):
        cache = NamingCache(db_session)
        cache.merge(user.id, {"ABC-1": "   ", "ABC-2": "Billing export"})

        assert cache.get(user.id) == {"ABC-2": "Billing export"}

    def test_names_are_per_user(self, db_session, user):
        from standup.db.models import User

        other = User(slack_user_id="U999", slack_team_id="T0001")
        db_session.add(other)
        db_session.commit()

        cache = NamingCache(db_session)
        cache.merge(user.id, {"ABC-1": "Login flow"})

        assert cache.get(other.id) == {}

    def test_get_storage_failure_returns_empty(self, db_session, user):
        """A read failure degrades to no names instead of raising."""
        cache = NamingCache(db_session)
        cache.merge(user.id, {"ABC-1": "Login flow"})

        with patch.object(
            db_session, "query", side_effect=OperationalError("SELECT", {}, Exception("locked"))
        ):
            assert cache.get(user.id) == {}

    def test_merge_storage_failure_is_swallowed(self, db_session, user):
        """A failing pair is logged and the remaining pairs are saved."""
        cache = NamingCache(db_session)
        real_query = db_session.query
        calls = {"n": 0}

        def flaky_query(*args, **kwargs):
            calls["n"] += 1
            if calls["n"] == 1:
                raise OperationalError("SELECT", {}, Exception("locked"))
            return real_query(*args, **kwargs)

        with patch.object(db_session, "query", side_effect=flaky_query):
            cache.merge(user.id, {"ABC-1": "Login flow", "ABC-2": "Billing export"})

        assert cache.get(user.id) == {"ABC-2": "Billing export"}
