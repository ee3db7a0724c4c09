"""
worktrack
Task domain model.

A Task is a concrete action item belonging to exactly one Job. The
``next_task`` marker is not stored: it is derived from the parent Job's
next_task_id (see worktrack.models.job).
"""

from worktrack.models import db
from worktrack.models.base import OwnedModel


# ── Constants ────────────────────────────────────────────────────────────────

LEVELS = ("High", "Medium", "Low")  # focus_level / joy_level


class Task(OwnedModel):
    """
    An action item of a Job, optionally assigned to a person, with
    effort / focus / enjoyment metadata.
    """

    __tablename__ = "tasks"

    job_id = db.Column(
        db.String(36),
        db.ForeignKey("jobs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title = db.Column(db.String(300), nullable=False)
    assignee = db.Column(db.String(150), nullable=True, comment="Person reference, not the data owner")
    scheduled_date = db.Column(db.Date, nullable=True)
    required_hours = db.Column(db.Float, nullable=True)
    focus_level = db.Column(db.String(10), nullable=True, comment="High/Medium/Low")
    joy_level = db.Column(db.String(10), nullable=True, comment="High/Medium/Low")
    notes = db.Column(db.Text, nullable=True)
    tags = db.Column(db.JSON, nullable=False, default=list)
    completed = db.Column(db.Boolean, nullable=False, default=False)
    position = db.Column(db.Integer, nullable=False, default=0, comment="Order within the Job")

    job = db.relationship("Job", back_populates="tasks")

    @property
    def next_task(self) -> bool:
        return self.job is not None and self.job.next_task_id == self.id

    def to_dict(self):
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "job_id": self.job_id,
            "title": self.title,
            "assignee": self.assignee,
            "scheduled_date": self.scheduled_date.isoformat() if self.scheduled_date else None,
            "required_hours": self.required_hours,
            "focus_level": self.focus_level,
            "joy_level": self.joy_level,
            "notes": self.notes,
            "tags": list(self.tags or []),
            "completed": bool(self.completed),
            "next_task": self.next_task,
            "position": self.position,
            **self._timestamps(),
        }

    def __repr__(self):
        return f"<Task {self.id}: {self.title[:40]}>"
