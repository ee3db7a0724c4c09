"""
Job lifecycle service.

Business context:
    A Job is a unit of work that exclusively owns an ordered list of Tasks and
    points at one of them as its next task. The pointer itself is maintained
    by TaskManager; this manager delegates to it whenever an update touches
    ``next_task_id`` so the Job's pointer and the Tasks' derived ``next_task``
    flag are always two views of one fact.

    Job updates and the delegated pointer write share one store transaction:
    either both land or neither does.

Task disposition on delete:
    Deleting a Job cascades to its Tasks and PI mappings. Tasks never outlive
    their Job; an orphaned Task would have no pointer to be "next" under.

Security:
    - All lookups are owner-scoped; a foreign Job raises NotFoundError.
    - business_function_id must resolve for the same owner.
"""

import logging

from sqlalchemy import select

from worktrack.core.exceptions import NotFoundError, ValidationError
from worktrack.models.job import BusinessFunction, Job
from worktrack.utils.helpers import parse_bool, parse_date_input

logger = logging.getLogger(__name__)


class JobManager:
    """Owns Job lifecycle and task membership; delegates next-task to TaskManager."""

    def __init__(self, store, task_manager):
        self.store = store
        self.task_manager = task_manager

    # ── Reads ─────────────────────────────────────────────────────────────

    def get_all_jobs(self, owner_id: str, is_done: bool | None = None) -> list[dict]:
        filters = {} if is_done is None else {"is_done": is_done}
        jobs = self.store.find(Job, owner_id, order_by=Job.created_at, **filters)
        return [j.to_dict() for j in jobs]

    def get_job(self, owner_id: str, job_id: str) -> dict:
        """Return one Job. Absent and foreign Jobs both raise NotFoundError."""
        return self.store.get(Job, job_id, owner_id).to_dict()

    # ── Mutations ─────────────────────────────────────────────────────────

    def create_job(self, owner_id: str, data: dict) -> dict:
        """Create a Job with an empty task list and no next task.

        Args:
            owner_id: Owning identity.
            data: title (required), notes, business_function_id, due_date, is_done.

        Raises:
            ValidationError: Missing title, bad values, unknown business
                             function, or an attempt to seed tasks / next task.
        """
        raw_title = data.get("title")
        title = raw_title.strip() if isinstance(raw_title, str) else ""
        if not title:
            raise ValidationError("title is required", details={"title": "required"})
        if data.get("next_task_id"):
            raise ValidationError(
                "A new job has no tasks to point at",
                details={"next_task_id": "not allowed on create"},
            )
        if data.get("tasks"):
            raise ValidationError(
                "Tasks are added through the task endpoints",
                details={"tasks": "not allowed on create"},
            )

        cleaned = _clean_job_fields(data)
        cleaned["title"] = title

        with self.store.transaction():
            self._check_business_function(owner_id, cleaned.get("business_function_id"))
            job = Job(owner_id=owner_id, **cleaned)
            self.store.insert(job)

        logger.info("Job created", extra={"owner_id": owner_id, "job_id": job.id})
        return job.to_dict()

    def update_job(self, owner_id: str, job_id: str, data: dict) -> dict:
        """Partially update a Job.

        ``next_task_id`` is routed through TaskManager (None clears it).
        ``tasks`` reorders the membership list and must be a permutation of
        the Job's current task ids. A reorder writes the Job row, so it loses
        to a task created or deleted concurrently.

        Raises:
            NotFoundError: Job absent / foreign, or next_task_id unknown.
            ValidationError: Bad values or an invalid task ordering.
            ConflictError: A concurrent writer changed the Job first.
        """
        if "title" in data:
            title = data["title"].strip() if isinstance(data["title"], str) else ""
            if not title:
                raise ValidationError("title must not be empty", details={"title": "required"})
        cleaned = _clean_job_fields(data)
        if "title" in data:
            cleaned["title"] = data["title"].strip()

        with self.store.transaction():
            job = self.store.get(Job, job_id, owner_id)
            if "business_function_id" in cleaned:
                self._check_business_function(owner_id, cleaned["business_function_id"])
            for field, value in cleaned.items():
                setattr(job, field, value)
            if "tasks" in data:
                self._reorder_tasks(job, data["tasks"])
            if "next_task_id" in data:
                self.task_manager.assign_next_task(job, data["next_task_id"])

        logger.info("Job updated", extra={"owner_id": owner_id, "job_id": job_id})
        return job.to_dict()

    def delete_job(self, owner_id: str, job_id: str) -> bool:
        """Hard-delete a Job together with its Tasks and mappings."""
        with self.store.transaction():
            job = self.store.get_or_none(Job, job_id, owner_id)
            if job is None:
                return False
            task_count = len(job.tasks)
            self.store.delete_one(Job, job_id, owner_id)

        logger.info(
            "Job deleted (cascaded %d task(s))", task_count,
            extra={"owner_id": owner_id, "job_id": job_id},
        )
        return True

    def toggle_done(self, owner_id: str, job_ids: list[str], is_done) -> int:
        """Bulk-set ``is_done`` on the given Jobs. All-or-nothing.

        Returns:
            Number of Jobs updated.

        Raises:
            ValidationError: job_ids not a list of ids, or is_done not boolean.
            NotFoundError: Any id absent / foreign; nothing is modified.
        """
        if not isinstance(job_ids, (list, tuple)) or not all(isinstance(j, str) for j in job_ids):
            raise ValidationError("job_ids must be a list of ids", details={"job_ids": "invalid"})
        try:
            flag = parse_bool(is_done)
        except ValueError as exc:
            raise ValidationError("Invalid is_done", details={"is_done": str(exc)}) from exc

        unique_ids = list(dict.fromkeys(job_ids))
        if not unique_ids:
            return 0

        with self.store.transaction():
            stmt = select(Job).where(Job.owner_id == owner_id, Job.id.in_(unique_ids))
            jobs = self.store.execute(stmt).scalars().all()
            missing = set(unique_ids) - {j.id for j in jobs}
            if missing:
                raise NotFoundError(resource="Job", resource_id=sorted(missing)[0], owner_id=owner_id)
            for job in jobs:
                job.is_done = flag

        logger.info(
            "Jobs marked %s", "done" if flag else "active",
            extra={"owner_id": owner_id, "job_count": len(jobs)},
        )
        return len(jobs)

    # ── Private helpers ───────────────────────────────────────────────────

    def _check_business_function(self, owner_id: str, bf_id: str | None) -> None:
        if bf_id is None:
            return
        if self.store.get_or_none(BusinessFunction, bf_id, owner_id) is None:
            raise ValidationError(
                f"Business function {bf_id} does not exist",
                details={"business_function_id": "unknown business function"},
            )

    def _reorder_tasks(self, job: Job, ordered_ids) -> None:
        if not isinstance(ordered_ids, (list, tuple)) or not all(isinstance(t, str) for t in ordered_ids):
            raise ValidationError("tasks must be a list of task ids", details={"tasks": "invalid"})
        current = {t.id: t for t in job.tasks}
        if len(ordered_ids) != len(current) or set(ordered_ids) != set(current):
            raise ValidationError(
                "tasks must list exactly the job's current task ids",
                details={"tasks": "not a permutation of the job's tasks"},
            )
        for position, task_id in enumerate(ordered_ids):
            current[task_id].position = position
        job.touch()


def _clean_job_fields(data: dict) -> dict:
    cleaned: dict = {}
    errors: dict[str, str] = {}

    if "notes" in data:
        value = data["notes"]
        if value is not None and not isinstance(value, str):
            errors["notes"] = "Must be a string."
        else:
            cleaned["notes"] = value or None

    if "business_function_id" in data:
        value = data["business_function_id"]
        if value is not None and not isinstance(value, str):
            errors["business_function_id"] = "Must be an id string."
        else:
            cleaned["business_function_id"] = value or None

    if "due_date" in data:
        try:
            cleaned["due_date"] = parse_date_input(data["due_date"])
        except ValueError as exc:
            errors["due_date"] = str(exc)

    if "is_done" in data and data["is_done"] is not None:
        try:
            cleaned["is_done"] = parse_bool(data["is_done"])
        except ValueError as exc:
            errors["is_done"] = str(exc)

    if errors:
        raise ValidationError("Invalid job fields", details=errors)
    return cleaned
