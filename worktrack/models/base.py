"""
OwnedModel — Abstract base class for owner-scoped tables.

Every persisted entity belongs to exactly one owner identity and is invisible
to all others. Models inherit from OwnedModel instead of db.Model directly.
This adds:
  - opaque string primary key (UUID4 text)
  - owner_id column with index
  - created_at / updated_at timestamps
  - touch() to force an UPDATE (and version bump) without a field change
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy.orm.attributes import flag_modified

from worktrack.models import db


def _uuid() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OwnedModel(db.Model):
    """Abstract base for owner-scoped tables."""
    __abstract__ = True

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    owner_id = db.Column(db.String(64), nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    def touch(self) -> None:
        """Mark the row changed so the next flush issues an UPDATE for it.

        On a versioned model that UPDATE carries the version check, which is
        how child-row writers (Tasks of a Job) serialize against the parent.
        """
        self.updated_at = _utcnow()
        flag_modified(self, "updated_at")

    def _timestamps(self) -> dict:
        return {
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
