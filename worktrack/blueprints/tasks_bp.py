"""
Tasks Blueprint.

Endpoints:
    GET    /api/v1/tasks                 — list (?job_id=…&completed=true|false)
    POST   /api/v1/tasks                 — create (body carries job_id)
    GET    /api/v1/tasks/batch?ids=a,b   — batch lookup, caller's order
    GET    /api/v1/tasks/<task_id>       — detail
    PUT    /api/v1/tasks/<task_id>       — partial update (completed, next_task, …)
    DELETE /api/v1/tasks/<task_id>       — delete
"""

import logging

from flask import Blueprint, current_app, request

from worktrack.blueprints import bool_arg, current_owner, get_services, json_body, ok
from worktrack.services.helpers.retry import retry_on_conflict
from worktrack.utils.errors import E, api_error, register_error_handlers

logger = logging.getLogger(__name__)

tasks_bp = Blueprint("tasks", __name__, url_prefix="/api/v1")
register_error_handlers(tasks_bp)


@tasks_bp.route("/tasks", methods=["GET"])
def list_tasks():
    tasks = get_services().tasks.list_tasks(
        current_owner(),
        job_id=request.args.get("job_id") or None,
        completed=bool_arg("completed"),
    )
    return ok(tasks, count=len(tasks))


@tasks_bp.route("/tasks", methods=["POST"])
def create_task():
    data = json_body()
    job_id = data.get("job_id")
    if not job_id:
        return api_error(E.VALIDATION_REQUIRED, "job_id is required")
    services = get_services()
    task = retry_on_conflict(
        lambda: services.tasks.create_task(current_owner(), job_id, data),
        current_app.config.get("NEXT_TASK_RETRY_ATTEMPTS", 3),
    )
    return ok(task, 201)


@tasks_bp.route("/tasks/batch", methods=["GET"])
def batch_tasks():
    ids = [i.strip() for i in (request.args.get("ids") or "").split(",") if i.strip()]
    tasks = get_services().tasks.get_tasks_by_ids(current_owner(), ids)
    return ok(tasks, count=len(tasks))


@tasks_bp.route("/tasks/<task_id>", methods=["GET"])
def get_task(task_id: str):
    return ok(get_services().tasks.get_task(current_owner(), task_id))


@tasks_bp.route("/tasks/<task_id>", methods=["PUT"])
def update_task(task_id: str):
    data = json_body()
    services = get_services()
    task = retry_on_conflict(
        lambda: services.tasks.update_task(current_owner(), task_id, data),
        current_app.config.get("NEXT_TASK_RETRY_ATTEMPTS", 3),
    )
    return ok(task)


@tasks_bp.route("/tasks/<task_id>", methods=["DELETE"])
def delete_task(task_id: str):
    services = get_services()
    deleted = retry_on_conflict(
        lambda: services.tasks.delete_task(current_owner(), task_id),
        current_app.config.get("NEXT_TASK_RETRY_ATTEMPTS", 3),
    )
    if not deleted:
        return api_error(E.NOT_FOUND, "Task not found")
    return ok(None, message="Task deleted successfully")
