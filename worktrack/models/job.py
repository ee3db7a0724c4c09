"""
worktrack
Job domain models.

Models:
    - BusinessFunction: grouping label for Jobs (job_count is derived on read)
    - Job: unit of work owning an ordered list of Tasks and one next-task pointer

Ownership chain: owner → BusinessFunction ← Job → Task
                                            Job → PIJobMapping ← PerformanceIndicator

Next-task pointer:
    Job.next_task_id is the single source of truth for "which Task is next".
    Task.next_task is computed from it when read, so two Tasks of one Job can
    never both claim the flag. Writes to the pointer are guarded by the
    optimistic version counter (version_id) so a concurrent writer holding a
    stale row fails instead of overwriting.
"""

from worktrack.models import db
from worktrack.models.base import OwnedModel


class BusinessFunction(OwnedModel):
    """A grouping label for Jobs, used for counting and roll-up reporting."""

    __tablename__ = "business_functions"

    name = db.Column(db.String(200), nullable=False)

    jobs = db.relationship("Job", back_populates="business_function")

    def to_dict(self, job_count: int | None = None):
        data = {
            "id": self.id,
            "owner_id": self.owner_id,
            "name": self.name,
            **self._timestamps(),
        }
        if job_count is not None:
            data["job_count"] = job_count
        return data

    def __repr__(self):
        return f"<BusinessFunction {self.id}: {self.name[:40]}>"


class Job(OwnedModel):
    """
    A unit of work with optional due date, member Tasks and a designated next Task.

    Invariant: next_task_id, if set, names a Task with job_id == self.id and
    completed == False. Enforced by TaskManager, which is the only writer.
    """

    __tablename__ = "jobs"

    title = db.Column(db.String(300), nullable=False)
    notes = db.Column(db.Text, nullable=True)
    business_function_id = db.Column(
        db.String(36),
        db.ForeignKey("business_functions.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    due_date = db.Column(db.Date, nullable=True)
    is_done = db.Column(db.Boolean, nullable=False, default=False, index=True)
    # No FK constraint: jobs ↔ tasks would be a cycle. Integrity is kept by
    # TaskManager (assignment checks + clearing on complete/delete).
    next_task_id = db.Column(db.String(36), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    business_function = db.relationship("BusinessFunction", back_populates="jobs")
    tasks = db.relationship(
        "Task",
        back_populates="job",
        order_by="Task.position",
        cascade="all, delete-orphan",
    )
    mappings = db.relationship(
        "PIJobMapping",
        back_populates="job",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def task_ids(self) -> list[str]:
        return [t.id for t in self.tasks]

    @property
    def next_task(self):
        if self.next_task_id is None:
            return None
        for task in self.tasks:
            if task.id == self.next_task_id:
                return task
        return None

    def to_dict(self):
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "title": self.title,
            "notes": self.notes,
            "business_function_id": self.business_function_id,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "is_done": bool(self.is_done),
            "next_task_id": self.next_task_id,
            "tasks": self.task_ids,
            "version": self.version_id,
            **self._timestamps(),
        }

    def __repr__(self):
        return f"<Job {self.id}: {self.title[:40]}>"
