"""
Tests for worktrack/services/helpers/scoped_queries.py and entity_store.py

These tests are security-critical: they verify the owner isolation helpers
behave correctly under adversarial conditions.

Scenarios covered:
  1. ValueError when called without an owner scope
  2. NotFoundError when the id is right but the owner does not match
  3. Correct entity returned when id + owner both match
  4. get_owned_or_none returns None instead of raising NotFoundError
  5. EntityStore find / update_one / delete_one stay inside the owner scope
  6. EntityStore translates driver errors and rolls the session back

Test isolation strategy:
  Relies on the autouse `session` fixture from conftest.py which rolls back
  and recreates tables after every test. Each test creates its own data.
"""

import pytest
from sqlalchemy import text

from worktrack.core.exceptions import ConflictError, NotFoundError, StoreError
from worktrack.models import db
from worktrack.models.job import BusinessFunction, Job
from worktrack.services.helpers.entity_store import EntityStore
from worktrack.services.helpers.scoped_queries import get_owned, get_owned_or_none


# ── Test helpers ─────────────────────────────────────────────────────────────


def _make_job(owner_id: str, title: str = "Migrate DB") -> Job:
    """Create and flush a minimal Job for the given owner."""
    job = Job(owner_id=owner_id, title=title)
    db.session.add(job)
    db.session.flush()
    return job


# ── 1. ValueError — no owner provided ────────────────────────────────────────


class TestOwnerScopeRequired:
    def test_empty_owner_raises(self):
        with pytest.raises(ValueError, match="requires an owner_id scope"):
            get_owned(Job, "any-id", owner_id="")

    def test_none_owner_raises(self):
        with pytest.raises(ValueError):
            get_owned(Job, "any-id", owner_id=None)

    def test_or_none_still_raises_value_error(self):
        """Silent unscoped lookups are never acceptable."""
        with pytest.raises(ValueError):
            get_owned_or_none(Job, "any-id", owner_id="")


# ── 2–4. Lookup behaviour ────────────────────────────────────────────────────


class TestGetOwned:
    def test_returns_entity_for_owner(self):
        job = _make_job("alice")
        assert get_owned(Job, job.id, owner_id="alice") is job

    def test_cross_owner_raises_not_found(self):
        job = _make_job("alice")
        with pytest.raises(NotFoundError, match=f"Job id={job.id} not found"):
            get_owned(Job, job.id, owner_id="mallory")

    def test_or_none_returns_none_for_cross_owner(self):
        job = _make_job("alice")
        assert get_owned_or_none(Job, job.id, owner_id="mallory") is None

    def test_or_none_returns_entity(self):
        job = _make_job("alice")
        assert get_owned_or_none(Job, job.id, owner_id="alice") is job


# ── 5. EntityStore scoping ───────────────────────────────────────────────────


class TestEntityStoreScope:
    def test_find_filters_owner_and_fields(self):
        _make_job("alice", "A")
        _make_job("alice", "B").is_done = True
        _make_job("bob", "C")
        db.session.flush()
        store = EntityStore(db.session)
        assert [j.title for j in store.find(Job, "alice", is_done=False)] == ["A"]

    def test_find_without_owner_raises(self):
        with pytest.raises(ValueError, match="requires an owner_id scope"):
            EntityStore(db.session).find(Job, None)

    def test_find_one(self):
        _make_job("alice", "A")
        store = EntityStore(db.session)
        assert store.find_one(Job, "alice", title="A").title == "A"
        assert store.find_one(Job, "bob", title="A") is None

    def test_update_one_foreign_returns_none(self):
        job = _make_job("alice", "A")
        store = EntityStore(db.session)
        assert store.update_one(Job, job.id, "bob", {"title": "hijacked"}) is None
        assert job.title == "A"

    def test_delete_one_foreign_returns_false(self):
        job = _make_job("alice", "A")
        store = EntityStore(db.session)
        assert store.delete_one(Job, job.id, "bob") is False
        assert store.get(Job, job.id, "alice") is job

    def test_insert_requires_owner(self):
        with pytest.raises(ValueError, match="requires owner_id"):
            EntityStore(db.session).insert(Job(title="Ownerless"))


# ── 6. Error translation ─────────────────────────────────────────────────────


class TestEntityStoreErrors:
    def test_transaction_commits_once(self):
        store = EntityStore(db.session)
        with store.transaction():
            store.insert(BusinessFunction(owner_id="alice", name="Finance"))
        db.session.rollback()
        assert [bf.name for bf in store.find(BusinessFunction, "alice")] == ["Finance"]

    def test_integrity_error_becomes_conflict(self):
        store = EntityStore(db.session)
        with pytest.raises(ConflictError):
            with store.transaction():
                store.insert(BusinessFunction(owner_id="alice", name=None))

    def test_driver_error_becomes_store_error(self):
        store = EntityStore(db.session)
        with pytest.raises(StoreError):
            store.execute(text("SELECT * FROM no_such_table"))

    def test_failed_transaction_rolls_back(self):
        store = EntityStore(db.session)
        with pytest.raises(RuntimeError):
            with store.transaction():
                store.insert(BusinessFunction(owner_id="alice", name="Doomed"))
                raise RuntimeError("boom")
        assert store.find(BusinessFunction, "alice") == []
