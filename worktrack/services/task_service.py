"""
Task lifecycle service.

Business context:
    A Task belongs to exactly one Job. One Task per Job may be that Job's
    "next task", the immediate priority. This manager is the only writer of
    the next-task pointer, so the rules below live here and nowhere else:

    - Assigning a next task swaps Job.next_task_id in a single UPDATE; there
      is no moment where two Tasks claim the flag.
    - Completing the current next task clears the pointer.
    - Deleting the current next task clears the pointer.
    - Only an open Task of the same Job can become next.

Concurrency:
    Job rows carry an optimistic version counter. Every write that changes
    what the pointer may name (creating, completing or deleting a Task, or
    moving the pointer) also writes the parent Job row, so it takes the
    version check. Of two such writers on one Job, the one holding a stale
    Job loses at flush time; EntityStore turns that into ConflictError and
    rolls back. Callers decide whether to retry (see helpers.retry).

Security:
    - Every lookup is owner-scoped through EntityStore.
    - A Task or Job owned by someone else raises NotFoundError, exactly like
      a missing one.
"""

import logging

from sqlalchemy import select

from worktrack.core.exceptions import ValidationError
from worktrack.models.job import Job
from worktrack.models.task import LEVELS, Task
from worktrack.utils.helpers import (
    normalize_tags,
    parse_bool,
    parse_date_input,
    parse_id,
    parse_number,
)

logger = logging.getLogger(__name__)


class TaskManager:
    """Owns Task lifecycle and the one-next-task-per-Job invariant."""

    def __init__(self, store):
        self.store = store

    # ── Reads ─────────────────────────────────────────────────────────────

    def get_task(self, owner_id: str, task_id: str) -> dict:
        return self.store.get(Task, task_id, owner_id).to_dict()

    def list_tasks(
        self,
        owner_id: str,
        job_id: str | None = None,
        completed: bool | None = None,
    ) -> list[dict]:
        """Return the owner's Tasks, optionally narrowed to one Job / state."""
        filters = {}
        if job_id is not None:
            filters["job_id"] = job_id
        if completed is not None:
            filters["completed"] = completed
        tasks = self.store.find(Task, owner_id, order_by=Task.position, **filters)
        return [t.to_dict() for t in tasks]

    def get_tasks_by_ids(self, owner_id: str, task_ids: list[str]) -> list[dict]:
        """Batch lookup in the caller's order. Unknown or foreign ids are skipped."""
        if not task_ids:
            return []
        if not isinstance(task_ids, (list, tuple)) or not all(isinstance(t, str) for t in task_ids):
            raise ValidationError("ids must be a list of id strings", details={"ids": "invalid"})
        stmt = select(Task).where(Task.owner_id == owner_id, Task.id.in_(task_ids))
        by_id = {t.id: t for t in self.store.execute(stmt).scalars().all()}
        return [by_id[tid].to_dict() for tid in task_ids if tid in by_id]

    # ── Mutations ─────────────────────────────────────────────────────────

    def create_task(self, owner_id: str, job_id: str, data: dict) -> dict:
        """Create a Task at the end of the Job's task list.

        Args:
            owner_id: Calling identity; the Job must belong to it.
            job_id: Parent Job.
            data: title (required), assignee, scheduled_date, required_hours,
                  focus_level, joy_level, notes, tags, completed, next_task.

        Raises:
            ValidationError: Missing title, bad field values, unknown Job, or
                             next_task requested on a completed Task.
        """
        raw_title = data.get("title")
        title = raw_title.strip() if isinstance(raw_title, str) else ""
        if not title:
            raise ValidationError("title is required", details={"title": "required"})

        cleaned = _clean_task_fields(data)
        cleaned["title"] = title
        wants_next = _clean_flag(data, "next_task")
        if wants_next and cleaned.get("completed"):
            raise ValidationError(
                "A completed task cannot be the next task",
                details={"next_task": "task is completed"},
            )

        job_id = _clean_id(job_id, "job_id")
        if job_id is None:
            raise ValidationError("job_id is required", details={"job_id": "required"})

        with self.store.transaction():
            job = self.store.get_or_none(Job, job_id, owner_id)
            if job is None:
                raise ValidationError(
                    f"Job {job_id} does not exist", details={"job_id": "unknown job"},
                )
            position = max((t.position for t in job.tasks), default=-1) + 1
            job.touch()
            task = Task(owner_id=owner_id, job_id=job.id, position=position, **cleaned)
            job.tasks.append(task)
            self.store.insert(task)
            if wants_next:
                self.assign_next_task(job, task.id)

        logger.info(
            "Task created",
            extra={"owner_id": owner_id, "job_id": job_id, "task_id": task.id},
        )
        return task.to_dict()

    def update_task(self, owner_id: str, task_id: str, data: dict) -> dict:
        """Merge ``data`` into the Task.

        Completing the Job's current next task clears the Job's pointer in the
        same unit of work. Completing an already-completed task is a no-op.
        ``next_task`` True/False assigns or releases the pointer.

        Raises:
            NotFoundError: Task absent or foreign.
            ValidationError: Bad field values, or an attempt to move the Task
                             to another Job.
        """
        if "title" in data:
            title = data["title"].strip() if isinstance(data["title"], str) else ""
            if not title:
                raise ValidationError("title must not be empty", details={"title": "required"})
        cleaned = _clean_task_fields(data)
        if "title" in data:
            cleaned["title"] = data["title"].strip()
        next_flag = _clean_flag(data, "next_task")

        with self.store.transaction():
            task = self.store.get(Task, task_id, owner_id)
            if "job_id" in data and data["job_id"] != task.job_id:
                raise ValidationError(
                    "Tasks cannot be moved between jobs", details={"job_id": "immutable"},
                )
            job = task.job
            was_completed = bool(task.completed)
            for field, value in cleaned.items():
                setattr(task, field, value)
            if bool(task.completed) != was_completed:
                job.touch()

            if task.completed and job.next_task_id == task.id:
                self._release_next_task(job, reason="completed")
            if next_flag is True:
                self.assign_next_task(job, task.id)
            elif next_flag is False and job.next_task_id == task.id:
                self._release_next_task(job, reason="unset")

        logger.info(
            "Task updated",
            extra={"owner_id": owner_id, "job_id": task.job_id, "task_id": task_id},
        )
        return task.to_dict()

    def delete_task(self, owner_id: str, task_id: str) -> bool:
        """Hard-delete a Task. Returns False (not an error) if it did not exist."""
        with self.store.transaction():
            task = self.store.get_or_none(Task, task_id, owner_id)
            if task is None:
                return False
            job = task.job
            job_id = job.id
            if job.next_task_id == task.id:
                self._release_next_task(job, reason="deleted")
            job.touch()
            self.store.delete_one(Task, task_id, owner_id)

        logger.info(
            "Task deleted",
            extra={"owner_id": owner_id, "job_id": job_id, "task_id": task_id},
        )
        return True

    def set_next_task(self, owner_id: str, job_id: str, task_id: str | None) -> dict:
        """Make ``task_id`` the Job's next task, or clear it with None.

        The previous holder loses the flag in the same single-column write,
        so a read right after this call sees zero or one next task.

        Returns:
            Serialized Job after the change.

        Raises:
            NotFoundError: Job or Task absent / foreign.
            ValidationError: Task belongs to another Job or is completed.
            ConflictError: A concurrent writer changed the Job first.
        """
        task_id = _clean_id(task_id, "task_id")
        with self.store.transaction():
            job = self.store.get(Job, job_id, owner_id)
            previous = job.next_task_id
            self.assign_next_task(job, task_id)

        logger.info(
            "Next task set",
            extra={
                "owner_id": owner_id,
                "job_id": job_id,
                "task_id": task_id,
                "previous_task_id": previous,
            },
        )
        return job.to_dict()

    # ── In-transaction primitives (no commit) ─────────────────────────────

    def assign_next_task(self, job: Job, task_id: str | None):
        """Point ``job`` at ``task_id`` (or nothing). Caller owns the transaction."""
        task_id = _clean_id(task_id, "next_task_id")
        if task_id is None:
            if job.next_task_id is not None:
                self._release_next_task(job, reason="cleared")
            return None

        task = self.store.get(Task, task_id, job.owner_id)
        if task.job_id != job.id:
            raise ValidationError(
                f"Task {task_id} does not belong to job {job.id}",
                details={"next_task_id": "task belongs to another job"},
            )
        if task.completed:
            raise ValidationError(
                "A completed task cannot be the next task",
                details={"next_task_id": "task is completed"},
            )
        if job.next_task_id != task.id:
            job.next_task_id = task.id
        return task

    def _release_next_task(self, job: Job, reason: str) -> None:
        logger.debug(
            "Clearing next task of job %s (%s)", job.id, reason,
            extra={"job_id": job.id, "task_id": job.next_task_id},
        )
        job.next_task_id = None


# ── Private helpers ───────────────────────────────────────────────────────────


def _clean_id(value, key: str):
    try:
        return parse_id(value)
    except ValueError as exc:
        raise ValidationError(f"Invalid {key}", details={key: str(exc)}) from exc


def _clean_flag(data: dict, key: str):
    if key not in data or data[key] is None:
        return None
    try:
        return parse_bool(data[key])
    except ValueError as exc:
        raise ValidationError(f"Invalid {key}", details={key: str(exc)}) from exc


def _clean_task_fields(data: dict) -> dict:
    """Validate and coerce the optional Task fields present in ``data``.

    Title is handled by the callers since create and update treat it
    differently. Collects every field error before raising.
    """
    cleaned: dict = {}
    errors: dict[str, str] = {}

    for key in ("assignee", "notes"):
        if key in data:
            value = data[key]
            if value is not None and not isinstance(value, str):
                errors[key] = "Must be a string."
            else:
                cleaned[key] = value.strip() if value else None

    if "scheduled_date" in data:
        try:
            cleaned["scheduled_date"] = parse_date_input(data["scheduled_date"])
        except ValueError as exc:
            errors["scheduled_date"] = str(exc)

    if "required_hours" in data:
        try:
            cleaned["required_hours"] = parse_number(data["required_hours"], allow_negative=False)
        except ValueError as exc:
            errors["required_hours"] = str(exc)

    for key in ("focus_level", "joy_level"):
        if key in data:
            value = data[key]
            if value in (None, ""):
                cleaned[key] = None
            elif value not in LEVELS:
                errors[key] = f"Must be one of: {', '.join(LEVELS)}."
            else:
                cleaned[key] = value

    if "tags" in data:
        try:
            cleaned["tags"] = normalize_tags(data["tags"])
        except ValueError as exc:
            errors["tags"] = str(exc)

    if "completed" in data and data["completed"] is not None:
        try:
            cleaned["completed"] = parse_bool(data["completed"])
        except ValueError as exc:
            errors["completed"] = str(exc)

    if errors:
        raise ValidationError("Invalid task fields", details=errors)
    return cleaned
