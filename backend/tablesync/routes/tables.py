# Overview: Flask API routes for tables; parses input and returns JSON responses.

# backend/tablesync/routes/tables.py
"""Table API routes: list, create, open and close tables"""

from flask import Blueprint, request, jsonify, current_app

from ..extensions import db
from ..models import Business
from ..services import table_service
from ..services.table_service import TableError
from ..validation import ValidationError, parse_bool


tables_bp = Blueprint("tables", __name__, url_prefix="/api/businesses/<business_id>/tables")


def _table_error_response(e: TableError):
    status = 404 if e.not_found else 400
    return jsonify({"error": str(e), "details": e.details}), status


@tables_bp.get("/")
def list_tables_route(business_id: str):
    """
    List tables of a business, normalized for rendering.

    Tables whose pointer cannot be trusted come back available with no order.
    """
    if not db.session.get(Business, business_id):
        return jsonify({"error": "Business not found"}), 404
    return jsonify({"tables": table_service.list_tables(business_id)}), 200


@tables_bp.post("/")
def create_table_route(business_id: str):
    try:
        if not db.session.get(Business, business_id):
            return jsonify({"error": "Business not found"}), 404

        data = request.get_json(silent=True) or {}
        table = table_service.create_table(business_id, data.get("name"))
        return jsonify({"table": table.to_dict()}), 201

    except TableError as e:
        return _table_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create table")
        return jsonify({"error": "Internal server error"}), 500


@tables_bp.get("/<table_id>")
def get_table_route(business_id: str, table_id: str):
    try:
        return jsonify({"table": table_service.get_table(business_id, table_id)}), 200
    except TableError as e:
        return _table_error_response(e)


@tables_bp.post("/<table_id>/open")
def open_table_route(business_id: str, table_id: str):
    """
    Seat a table (creates an open order unless one is already attached).
    """
    try:
        order = table_service.open_table(business_id, table_id)
        return jsonify({
            "order": order.to_dict(),
            "table": table_service.get_table(business_id, table_id),
        }), 200

    except TableError as e:
        return _table_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to open table")
        return jsonify({"error": "Internal server error"}), 500


@tables_bp.post("/<table_id>/close")
def close_table_route(business_id: str, table_id: str):
    """
    Free a table; body {"cancel": true} cancels the order instead of closing it.
    """
    try:
        data = request.get_json(silent=True) or {}
        cancel = parse_bool(data.get("cancel"), field="cancel")

        table_service.close_table(business_id, table_id, cancel=cancel)
        return jsonify({"table": table_service.get_table(business_id, table_id)}), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except TableError as e:
        return _table_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to close table")
        return jsonify({"error": "Internal server error"}), 500
