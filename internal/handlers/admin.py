"""Admin HTTP handlers.

Endpoints:
  POST /api/admin/catalog/reload        — Validate and publish a catalog file
  GET  /api/admin/resolutions           — List resolution history
  GET  /api/admin/resolutions/<id>      — Get one resolution
  GET  /api/admin/resolutions/stats     — Counts per matched rule and status
  GET  /api/admin/audit-log             — List audit log entries
"""

import logging

from flask import Blueprint, request, jsonify

from internal.catalog.store import get_catalog_store
from internal.db.database import (
    append_audit_log, get_resolution, list_audit_log, list_resolutions, resolution_stats,
)
from internal.handlers.api import error_response
from internal.models.errors import ResolutionError

logger = logging.getLogger(__name__)

admin_bp = Blueprint("admin", __name__)


# ── Catalog ──────────────────────────────────────────────────────────────────

@admin_bp.route("/api/admin/catalog/reload", methods=["POST"])
def reload_catalog():
    """Hot-swap the catalog. On failure the active catalog is left untouched."""
    body = request.get_json(silent=True)
    if body is None:
        body = {}
    if not isinstance(body, dict):
        return jsonify({"error": "ValidationError", "message": "Request body must be a JSON object",
                        "details": {}}), 400
    path = body.get("path")
    if path is not None and not isinstance(path, str):
        return jsonify({"error": "ValidationError", "message": "path must be a string",
                        "details": {"field": "path"}}), 400
    store = get_catalog_store()
    previous = store.status()["version"]

    try:
        snapshot = store.reload(path)
    except ResolutionError as exc:
        append_audit_log(
            "catalog_reload", status="failed", catalog_version=previous,
            path=path or store.path, error=exc.code, details=exc.to_dict(),
        )
        return error_response(exc, activeVersion=previous)

    append_audit_log(
        "catalog_reload", status="ok", catalog_version=snapshot.version,
        path=snapshot.source, details={"previousVersion": previous, "rules": len(snapshot.rules)},
    )
    return jsonify({
        "status": "reloaded",
        "previousVersion": previous,
        "version": snapshot.version,
        "rules": len(snapshot.rules),
    }), 200


# ── Resolution History ───────────────────────────────────────────────────────

@admin_bp.route("/api/admin/resolutions", methods=["GET"])
def list_resolution_history():
    limit = request.args.get("limit", 50, type=int)
    rule_id = request.args.get("rule")
    status = request.args.get("status")
    return jsonify({"resolutions": list_resolutions(limit=limit, rule_id=rule_id, status=status)}), 200


@admin_bp.route("/api/admin/resolutions/stats", methods=["GET"])
def resolution_history_stats():
    return jsonify(resolution_stats()), 200


@admin_bp.route("/api/admin/resolutions/<int:resolution_id>", methods=["GET"])
def get_resolution_detail(resolution_id: int):
    resolution = get_resolution(resolution_id)
    if resolution is None:
        return jsonify({"error": f"Resolution {resolution_id} not found"}), 404
    return jsonify(resolution), 200


# ── Audit Log ────────────────────────────────────────────────────────────────

@admin_bp.route("/api/admin/audit-log", methods=["GET"])
def audit_log():
    limit = request.args.get("limit", 100, type=int)
    action = request.args.get("action")
    return jsonify({"entries": list_audit_log(limit=limit, action=action)}), 200
