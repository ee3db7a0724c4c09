"""
worktrack
Performance Indicator models.

Models:
    - PerformanceIndicator: a target metric owned by one identity
    - PIJobMapping: many-to-many edge Job ↔ PI carrying the contribution

Snapshot fields:
    PIJobMapping.job_name / pi_name / pi_target are copied from the endpoints
    when the mapping is created. They are NOT refreshed if the Job or PI is
    later renamed or re-targeted; serialized mappings flag this with
    ``names_are_snapshots``.
"""

from worktrack.models import db
from worktrack.models.base import OwnedModel


class PerformanceIndicator(OwnedModel):
    """A target metric; Jobs contribute toward it through PIJobMapping rows."""

    __tablename__ = "performance_indicators"

    name = db.Column(db.String(200), nullable=False)
    target_value = db.Column(db.Float, nullable=False, default=0)

    mappings = db.relationship(
        "PIJobMapping",
        back_populates="pi",
        cascade="all, delete-orphan",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "name": self.name,
            "target_value": self.target_value,
            **self._timestamps(),
        }

    def __repr__(self):
        return f"<PerformanceIndicator {self.id}: {self.name[:40]}>"


class PIJobMapping(OwnedModel):
    """How much one Job contributes toward one PI's target."""

    __tablename__ = "pi_job_mappings"

    job_id = db.Column(
        db.String(36), db.ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    pi_id = db.Column(
        db.String(36),
        db.ForeignKey("performance_indicators.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    job_name = db.Column(db.String(300), nullable=False, comment="Snapshot at creation")
    pi_name = db.Column(db.String(200), nullable=False, comment="Snapshot at creation")
    pi_target = db.Column(db.Float, nullable=False, default=0, comment="Mirrored from PI at creation")
    pi_impact_value = db.Column(db.Float, nullable=False, default=0)
    notes = db.Column(db.Text, nullable=True)

    job = db.relationship("Job", back_populates="mappings")
    pi = db.relationship("PerformanceIndicator", back_populates="mappings")

    def to_dict(self):
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "job_id": self.job_id,
            "pi_id": self.pi_id,
            "job_name": self.job_name,
            "pi_name": self.pi_name,
            "names_are_snapshots": True,
            "pi_target": self.pi_target,
            "pi_impact_value": self.pi_impact_value,
            "notes": self.notes,
            **self._timestamps(),
        }

    def __repr__(self):
        return f"<PIJobMapping {self.job_id} → {self.pi_id}>"
