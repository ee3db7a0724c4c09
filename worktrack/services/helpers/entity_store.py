"""
EntityStore — owner-scoped data access over a SQLAlchemy session.

Managers take a store handle in their constructor instead of reaching for
``db.session`` at import time, so a request, a test or a CLI command decides
which session the services run against.

Contract (all document-level operations are owner-scoped):
    find(model, owner_id, **filters)          -> list
    find_one(model, owner_id, **filters)      -> obj | None
    get(model, pk, owner_id)                  -> obj       (NotFoundError;
                                                            ValidationError for a non-string pk)
    insert(obj)                               -> obj
    update_one(model, pk, owner_id, patch)    -> obj | None
    delete_one(model, pk, owner_id)           -> bool
    execute(stmt)                             -> Result    (aggregates)
    transaction()                             -> context manager, one commit

Error translation:
    StaleDataError   → ConflictError   (optimistic version check lost a race)
    IntegrityError   → ConflictError   (uniqueness / FK violation)
    SQLAlchemyError  → StoreError      (engine unreachable, unexpected failure)

The session is rolled back before any translated error propagates, so a
failed unit of work leaves no partial writes behind.
"""

import logging
from contextlib import contextmanager

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from worktrack.core.exceptions import ConflictError, StoreError, ValidationError
from worktrack.services.helpers.scoped_queries import get_owned, get_owned_or_none

logger = logging.getLogger(__name__)


class EntityStore:
    """Owner-scoped CRUD and unit-of-work boundary around one session."""

    def __init__(self, session):
        self.session = session

    # ── Unit of work ─────────────────────────────────────────────────────

    @contextmanager
    def transaction(self):
        """Run the enclosed block as one atomic unit of work.

        Commits once on success. On failure rolls back and raises a typed
        error; service-level exceptions (NotFoundError, ValidationError)
        raised inside the block propagate unchanged after the rollback.
        """
        try:
            yield self
            self.session.commit()
        except StaleDataError as exc:
            self.session.rollback()
            logger.warning("Concurrent modification detected: %s", exc)
            raise ConflictError("Job", "version") from exc
        except IntegrityError as exc:
            self.session.rollback()
            logger.warning("Integrity error on commit: %s", exc.orig)
            raise ConflictError("Entity", "constraint", str(exc.orig)) from exc
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.exception("Store failure during unit of work")
            raise StoreError("Entity store failure", operation="commit") from exc
        except Exception:
            self.session.rollback()
            raise

    @contextmanager
    def _reading(self, operation: str):
        try:
            yield
        except StaleDataError as exc:
            self.session.rollback()
            raise ConflictError("Job", "version") from exc
        except IntegrityError as exc:
            self.session.rollback()
            raise ConflictError("Entity", "constraint", str(exc.orig)) from exc
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.exception("Store failure during %s", operation)
            raise StoreError("Entity store failure", operation=operation) from exc

    # ── Document operations ──────────────────────────────────────────────

    def _scoped(self, model, owner_id, filters):
        if not owner_id:
            raise ValueError(f"{model.__name__} query requires an owner_id scope.")
        stmt = select(model).where(model.owner_id == owner_id)
        for field, value in filters.items():
            stmt = stmt.where(getattr(model, field) == value)
        return stmt

    def find(self, model, owner_id: str, *, order_by=None, **filters) -> list:
        stmt = self._scoped(model, owner_id, filters)
        if order_by is not None:
            stmt = stmt.order_by(order_by)
        with self._reading("find"):
            return list(self.session.execute(stmt).scalars().all())

    def find_one(self, model, owner_id: str, **filters):
        stmt = self._scoped(model, owner_id, filters).limit(1)
        with self._reading("find_one"):
            return self.session.execute(stmt).scalars().first()

    def get(self, model, pk: str, owner_id: str):
        _check_pk(model, pk)
        with self._reading("get"):
            return get_owned(model, pk, owner_id=owner_id, session=self.session)

    def get_or_none(self, model, pk: str, owner_id: str):
        _check_pk(model, pk)
        with self._reading("get"):
            return get_owned_or_none(model, pk, owner_id=owner_id, session=self.session)

    def insert(self, obj):
        if not getattr(obj, "owner_id", None):
            raise ValueError(f"{type(obj).__name__} insert requires owner_id.")
        with self._reading("insert"):
            self.session.add(obj)
            self.session.flush()
        return obj

    def update_one(self, model, pk: str, owner_id: str, patch: dict):
        obj = self.get_or_none(model, pk, owner_id)
        if obj is None:
            return None
        for field, value in patch.items():
            setattr(obj, field, value)
        with self._reading("update_one"):
            self.session.flush()
        return obj

    def delete_one(self, model, pk: str, owner_id: str) -> bool:
        obj = self.get_or_none(model, pk, owner_id)
        if obj is None:
            return False
        with self._reading("delete_one"):
            self.session.delete(obj)
            self.session.flush()
        return True

    def execute(self, stmt):
        with self._reading("execute"):
            return self.session.execute(stmt)


def _check_pk(model, pk) -> None:
    # Ids are opaque strings.
    if not isinstance(pk, str):
        raise ValidationError(
            f"{model.__name__} id must be a string", details={"id": "must be a string"},
        )
