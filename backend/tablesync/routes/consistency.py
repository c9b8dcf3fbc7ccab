# Overview: Flask API routes for table/order consistency; detection, reconciliation and the conflict log.

# backend/tablesync/routes/consistency.py
"""Consistency API routes"""

from flask import Blueprint, request, jsonify, current_app

from ..services import consistency_service
from ..services.consistency_detect import detect_table_order_inconsistencies
from ..validation import ValidationError, parse_bool, parse_int, require_list


consistency_bp = Blueprint("consistency", __name__, url_prefix="/api")


@consistency_bp.post("/consistency/detect")
def detect_route():
    """
    Stateless detection over a caller-supplied snapshot.

    Body: {"tables": [...], "open_orders": [...]}
    Returns the findings and the fixes the caller should apply, in order.
    """
    try:
        data = request.get_json(silent=True) or {}
        tables = require_list(data.get("tables"), field="tables")
        open_orders = require_list(data.get("open_orders"), field="open_orders")
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    result = detect_table_order_inconsistencies(tables, open_orders)
    return jsonify(result.to_dict()), 200


@consistency_bp.post("/businesses/<business_id>/consistency/reconcile")
def reconcile_route(business_id: str):
    """
    Detect and repair table/order divergence for one business.

    Body (all optional): {"dry_run": bool, "max_fixes": int, "source": str}
    """
    try:
        data = request.get_json(silent=True) or {}
        dry_run = parse_bool(data.get("dry_run"), field="dry_run")
        max_fixes = parse_int(data.get("max_fixes"), field="max_fixes", min_value=0)
        source = str(data.get("source") or "api")

        result = consistency_service.reconcile_table_order_consistency(
            business_id,
            dry_run=dry_run,
            max_fixes=max_fixes,
            source=source,
        )
        return jsonify(result.to_dict()), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to reconcile tables and orders")
        return jsonify({"error": "Internal server error"}), 500


@consistency_bp.get("/businesses/<business_id>/consistency/conflicts")
def list_conflicts_route(business_id: str):
    try:
        limit = parse_int(request.args.get("limit"), field="limit", default=50, min_value=1, max_value=500)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    conflicts = consistency_service.list_conflicts(business_id, limit=limit)
    return jsonify({"conflicts": [c.to_dict() for c in conflicts]}), 200
