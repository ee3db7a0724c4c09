"""
Jobs Blueprint.

Endpoints:
    GET    /api/v1/jobs                    — list (?is_done=true|false)
    POST   /api/v1/jobs                    — create
    GET    /api/v1/jobs/<job_id>           — detail
    PUT    /api/v1/jobs/<job_id>           — partial update (next_task_id, tasks order, …)
    DELETE /api/v1/jobs/<job_id>           — delete (cascades tasks + mappings)
    PUT    /api/v1/jobs/<job_id>/next-task — set / clear next task
    POST   /api/v1/jobs/toggle-done        — bulk is_done
    POST   /api/v1/jobs/calculate-impact   — recompute mapping impact values

Next-task writes are replayed on ConflictError up to NEXT_TASK_RETRY_ATTEMPTS.
"""

import logging

from flask import Blueprint, current_app

from worktrack.blueprints import bool_arg, current_owner, get_services, json_body, ok
from worktrack.services.helpers.retry import retry_on_conflict
from worktrack.utils.errors import E, api_error, register_error_handlers

logger = logging.getLogger(__name__)

jobs_bp = Blueprint("jobs", __name__, url_prefix="/api/v1")
register_error_handlers(jobs_bp)


def _attempts() -> int:
    return current_app.config.get("NEXT_TASK_RETRY_ATTEMPTS", 3)


@jobs_bp.route("/jobs", methods=["GET"])
def list_jobs():
    jobs = get_services().jobs.get_all_jobs(current_owner(), is_done=bool_arg("is_done"))
    return ok(jobs, count=len(jobs))


@jobs_bp.route("/jobs", methods=["POST"])
def create_job():
    job = get_services().jobs.create_job(current_owner(), json_body())
    return ok(job, 201)


@jobs_bp.route("/jobs/<job_id>", methods=["GET"])
def get_job(job_id: str):
    return ok(get_services().jobs.get_job(current_owner(), job_id))


@jobs_bp.route("/jobs/<job_id>", methods=["PUT"])
def update_job(job_id: str):
    data = json_body()
    services = get_services()
    if "next_task_id" in data:
        job = retry_on_conflict(
            lambda: services.jobs.update_job(current_owner(), job_id, data), _attempts(),
        )
    else:
        job = services.jobs.update_job(current_owner(), job_id, data)
    return ok(job)


@jobs_bp.route("/jobs/<job_id>", methods=["DELETE"])
def delete_job(job_id: str):
    if not get_services().jobs.delete_job(current_owner(), job_id):
        return api_error(E.NOT_FOUND, "Job not found")
    return ok(None, message="Job deleted successfully")


@jobs_bp.route("/jobs/<job_id>/next-task", methods=["PUT"])
def set_next_task(job_id: str):
    """Body: {"task_id": "<id>" | null}"""
    data = json_body()
    if "task_id" not in data:
        return api_error(E.VALIDATION_REQUIRED, "task_id is required (null clears)")
    services = get_services()
    job = retry_on_conflict(
        lambda: services.tasks.set_next_task(current_owner(), job_id, data["task_id"] or None),
        _attempts(),
    )
    return ok(job)


@jobs_bp.route("/jobs/toggle-done", methods=["POST"])
def toggle_done():
    """Body: {"job_ids": [...], "is_done": true|false}"""
    data = json_body()
    if "job_ids" not in data or "is_done" not in data:
        return api_error(E.VALIDATION_REQUIRED, "job_ids and is_done are required")
    updated = get_services().jobs.toggle_done(current_owner(), data["job_ids"], data["is_done"])
    return ok({"updated": updated})


@jobs_bp.route("/jobs/calculate-impact", methods=["POST"])
def calculate_impact():
    summary = get_services().impact.recalculate_impact(current_owner())
    return ok(summary.to_dict())
