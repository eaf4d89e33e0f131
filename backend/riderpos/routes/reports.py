from flask import Blueprint, current_app, jsonify, request

from riderpos.services import reporting_service
from riderpos.validation import ValidationError, coerce_int


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/sales")
def sales_report():
    start = request.args.get("start")
    end = request.args.get("end")
    rider_id = request.args.get("rider_id")

    try:
        if rider_id is not None:
            rider_id = coerce_int("rider_id", rider_id, minimum=1)
        report = reporting_service.sales_report(start=start, end=end, rider_id=rider_id)
        return jsonify(report), 200
    except (ValidationError, reporting_service.ReportError) as exc:
        return jsonify({"error": str(exc)}), 400
    except Exception:
        current_app.logger.exception("Failed to build sales report")
        return jsonify({"error": "Internal server error"}), 500


@reports_bp.get("/riders")
def riders_list():
    riders = reporting_service.list_riders()
    return jsonify({"riders": [r.to_dict() for r in riders]}), 200
