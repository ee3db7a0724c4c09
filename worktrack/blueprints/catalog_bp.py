"""
Catalog Blueprint — Business Functions and Performance Indicators.

Endpoints:
    GET    /api/v1/business-functions            — list with derived job_count
    POST   /api/v1/business-functions            — create
    GET    /api/v1/business-functions/<bf_id>    — detail with job_count
    PUT    /api/v1/business-functions/<bf_id>    — rename
    DELETE /api/v1/business-functions/<bf_id>    — delete (detaches jobs)
    GET    /api/v1/pis                           — list
    POST   /api/v1/pis                           — create
    GET    /api/v1/pis/<pi_id>                   — detail
    PUT    /api/v1/pis/<pi_id>                   — update name / target_value
    DELETE /api/v1/pis/<pi_id>                   — delete (removes mappings)
"""

from flask import Blueprint

from worktrack.blueprints import current_owner, get_services, json_body, ok
from worktrack.utils.errors import E, api_error, register_error_handlers

catalog_bp = Blueprint("catalog", __name__, url_prefix="/api/v1")
register_error_handlers(catalog_bp)


@catalog_bp.route("/business-functions", methods=["GET"])
def list_business_functions():
    functions = get_services().catalog.list_business_functions(current_owner())
    return ok(functions, count=len(functions))


@catalog_bp.route("/business-functions", methods=["POST"])
def create_business_function():
    return ok(get_services().catalog.create_business_function(current_owner(), json_body()), 201)


@catalog_bp.route("/business-functions/<bf_id>", methods=["GET"])
def get_business_function(bf_id: str):
    return ok(get_services().catalog.get_business_function(current_owner(), bf_id))


@catalog_bp.route("/business-functions/<bf_id>", methods=["PUT"])
def rename_business_function(bf_id: str):
    return ok(get_services().catalog.rename_business_function(current_owner(), bf_id, json_body()))


@catalog_bp.route("/business-functions/<bf_id>", methods=["DELETE"])
def delete_business_function(bf_id: str):
    if not get_services().catalog.delete_business_function(current_owner(), bf_id):
        return api_error(E.NOT_FOUND, "Business function not found")
    return ok(None, message="Business function deleted successfully")


@catalog_bp.route("/pis", methods=["GET"])
def list_pis():
    pis = get_services().catalog.list_pis(current_owner())
    return ok(pis, count=len(pis))


@catalog_bp.route("/pis", methods=["POST"])
def create_pi():
    return ok(get_services().catalog.create_pi(current_owner(), json_body()), 201)


@catalog_bp.route("/pis/<pi_id>", methods=["GET"])
def get_pi(pi_id: str):
    return ok(get_services().catalog.get_pi(current_owner(), pi_id))


@catalog_bp.route("/pis/<pi_id>", methods=["PUT"])
def update_pi(pi_id: str):
    return ok(get_services().catalog.update_pi(current_owner(), pi_id, json_body()))


@catalog_bp.route("/pis/<pi_id>", methods=["DELETE"])
def delete_pi(pi_id: str):
    if not get_services().catalog.delete_pi(current_owner(), pi_id):
        return api_error(E.NOT_FOUND, "PI not found")
    return ok(None, message="PI deleted successfully")
