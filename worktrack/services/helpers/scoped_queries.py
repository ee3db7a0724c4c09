"""
Owner-scoped lookup helpers.

Every get-by-id in worktrack MUST go through these helpers (directly or via
EntityStore) instead of db.session.get(Model, pk). A bare .get() bypasses
owner isolation: one identity could read another's Jobs by guessing ids.

Usage:
    job = get_owned(Job, job_id, owner_id=owner_id)

    # When None is an acceptable outcome (e.g. delete returning False)
    task = get_owned_or_none(Task, task_id, owner_id=owner_id)

Cross-owner access is indistinguishable from a missing record: both raise
NotFoundError.
"""

import logging

from sqlalchemy import select

from worktrack.core.exceptions import NotFoundError
from worktrack.models import db

logger = logging.getLogger(__name__)


def _require_owner(model, pk, owner_id) -> None:
    if not owner_id:
        raise ValueError(
            f"{model.__name__} id={pk} requires an owner_id scope. "
            "Unscoped lookups are forbidden — they bypass owner isolation."
        )
    if not hasattr(model, "owner_id"):
        raise ValueError(
            f"{model.__name__} has no owner_id column. "
            "Refusing to perform an unscoped lookup."
        )


def get_owned(model, pk: str, *, owner_id: str, session=None):
    """Fetch a single entity by id with a mandatory owner filter.

    Args:
        model: SQLAlchemy model class with ``id`` and ``owner_id`` columns.
        pk: Opaque id to look up.
        owner_id: Identity that must own the row.
        session: Session to query; defaults to ``db.session``.

    Returns:
        The model instance if found within the owner's scope.

    Raises:
        ValueError: If owner_id is empty or the model is not owner-scoped.
        NotFoundError: If the row does not exist OR belongs to another owner.
    """
    _require_owner(model, pk, owner_id)
    session = session if session is not None else db.session

    stmt = select(model).where(model.id == pk, model.owner_id == owner_id)
    result = session.execute(stmt).scalar_one_or_none()

    if result is None:
        logger.debug("get_owned: %s id=%s not found for owner %s", model.__name__, pk, owner_id)
        raise NotFoundError(resource=model.__name__, resource_id=pk, owner_id=owner_id)

    return result


def get_owned_or_none(model, pk: str, *, owner_id: str, session=None):
    """Same as get_owned but returns None instead of raising NotFoundError.

    Still raises ValueError for a missing owner scope, because silent
    unscoped lookups are never acceptable regardless of return style.
    """
    try:
        return get_owned(model, pk, owner_id=owner_id, session=session)
    except NotFoundError:
        return None
