"""
PI Impact Blueprint.

Endpoints:
    GET    /api/v1/pi-job-mappings               — list (?job_id=… | ?pi_id=…)
    POST   /api/v1/pi-job-mappings               — create (job_id, pi_id required)
    GET    /api/v1/pi-job-mappings/<mapping_id>  — detail
    PUT    /api/v1/pi-job-mappings/<mapping_id>  — update impact / target / notes
    DELETE /api/v1/pi-job-mappings/<mapping_id>  — delete
    GET    /api/v1/impact/totals                 — roll-up per PI and per business function
"""

from flask import Blueprint, request

from worktrack.blueprints import current_owner, get_services, json_body, ok
from worktrack.utils.errors import E, api_error, register_error_handlers

impact_bp = Blueprint("impact", __name__, url_prefix="/api/v1")
register_error_handlers(impact_bp)


@impact_bp.route("/pi-job-mappings", methods=["GET"])
def list_mappings():
    impact = get_services().impact
    job_id = request.args.get("job_id")
    pi_id = request.args.get("pi_id")
    if job_id:
        mappings = impact.mappings_for_job(current_owner(), job_id)
    elif pi_id:
        mappings = impact.mappings_for_pi(current_owner(), pi_id)
    else:
        mappings = impact.list_mappings(current_owner())
    return ok(mappings, count=len(mappings))


@impact_bp.route("/pi-job-mappings", methods=["POST"])
def create_mapping():
    return ok(get_services().impact.create_mapping(current_owner(), json_body()), 201)


@impact_bp.route("/pi-job-mappings/<mapping_id>", methods=["GET"])
def get_mapping(mapping_id: str):
    return ok(get_services().impact.get_mapping(current_owner(), mapping_id))


@impact_bp.route("/pi-job-mappings/<mapping_id>", methods=["PUT"])
def update_mapping(mapping_id: str):
    return ok(get_services().impact.update_mapping(current_owner(), mapping_id, json_body()))


@impact_bp.route("/pi-job-mappings/<mapping_id>", methods=["DELETE"])
def delete_mapping(mapping_id: str):
    if not get_services().impact.delete_mapping(current_owner(), mapping_id):
        return api_error(E.NOT_FOUND, "Mapping not found")
    return ok(None, message="Mapping deleted successfully")


@impact_bp.route("/impact/totals", methods=["GET"])
def impact_totals():
    return ok(get_services().impact.impact_totals(current_owner()))
