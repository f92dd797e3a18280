"""HTTP handlers for the resolution API.

Endpoints:
  GET  /health                 — Liveness and active catalog version
  POST /api/resolve            — Resolve a workload profile into a plan
  POST /api/resolve/explain    — Per-rule evaluation trace for a profile
  GET  /api/catalog            — Summary of the active catalog snapshot
"""

import logging
from http import HTTPStatus

from flask import Blueprint, request, jsonify

from internal.catalog.store import get_catalog_store
from internal.db.database import record_resolution
from internal.models.errors import (
    AmbiguousMatchError, CatalogLoadError, NoMatchError, ResolutionError, ValidationError,
)
from internal.models.types import WorkloadProfile
from internal.resolver.engine import resolve
from internal.resolver.matcher import explain

logger = logging.getLogger(__name__)

resolver_bp = Blueprint("resolver", __name__)

_ERROR_STATUS = {
    ValidationError: HTTPStatus.BAD_REQUEST,
    NoMatchError: HTTPStatus.NOT_FOUND,
    AmbiguousMatchError: HTTPStatus.UNPROCESSABLE_ENTITY,
    CatalogLoadError: HTTPStatus.UNPROCESSABLE_ENTITY,
}


def error_response(exc: ResolutionError, **extra):
    status = _ERROR_STATUS.get(type(exc), HTTPStatus.INTERNAL_SERVER_ERROR)
    return jsonify({**exc.to_dict(), **extra}), status


@resolver_bp.route("/health", methods=["GET"])
def health():
    return jsonify({
        "status": "ok",
        "service": "idp-deploy-resolver",
        "catalog": get_catalog_store().status(),
    }), 200


@resolver_bp.route("/api/resolve", methods=["POST"])
def resolve_profile():
    """Resolve a workload profile.

    Returns 200 with the plan, 400 on ValidationError, 404 on NoMatchError.
    Every answered request (plan or NoMatchError) lands in resolution history.
    """
    body = request.get_json(silent=True)
    if body is None:
        return jsonify({"error": "ValidationError", "message": "Request body must be valid JSON",
                        "details": {}}), 400

    try:
        profile = WorkloadProfile.from_dict(body)
    except ValidationError as exc:
        logger.warning("Rejected profile: %s", exc.message)
        return error_response(exc)

    snapshot = get_catalog_store().current()
    try:
        plan = resolve(profile, snapshot).to_dict()
    except NoMatchError as exc:
        logger.warning("No match for (%s) in catalog %s: %s",
                       profile.describe(), snapshot.version, exc.message)
        record_resolution(profile.to_dict(), status="no_match", error=exc.to_dict(),
                          catalog_version=snapshot.version)
        return error_response(exc)

    resolution_id = record_resolution(profile.to_dict(), status="resolved", plan=plan)
    return jsonify({"resolutionId": resolution_id, "plan": plan}), 200


@resolver_bp.route("/api/resolve/explain", methods=["POST"])
def explain_profile():
    body = request.get_json(silent=True)
    if body is None:
        return jsonify({"error": "ValidationError", "message": "Request body must be valid JSON",
                        "details": {}}), 400
    try:
        profile = WorkloadProfile.from_dict(body)
    except ValidationError as exc:
        return error_response(exc)
    return jsonify(explain(profile, get_catalog_store().current())), 200


@resolver_bp.route("/api/catalog", methods=["GET"])
def catalog_summary():
    return jsonify(get_catalog_store().current().summary()), 200
