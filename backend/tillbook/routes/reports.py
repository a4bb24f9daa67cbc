# Overview: Flask API routes for sales analytics.

from flask import Blueprint, request, jsonify, current_app

from ..services import reporting_service
from ..services.reporting_service import ReportError
from ..decorators import require_auth


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


def _run(report, arg_name: str, default: int):
    try:
        periods = request.args.get(arg_name, default=default, type=int)
        return jsonify({"items": report(periods)}), 200
    except ReportError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to build sales report")
        return jsonify({"error": "Internal server error"}), 500


@reports_bp.get("/daily")
@require_auth
def daily_route(ctx):
    return _run(reporting_service.daily_sales, "days", 7)


@reports_bp.get("/weekly")
@require_auth
def weekly_route(ctx):
    return _run(reporting_service.weekly_sales, "weeks", 8)


@reports_bp.get("/monthly")
@require_auth
def monthly_route(ctx):
    return _run(reporting_service.monthly_sales, "months", 12)


@reports_bp.get("/summary")
@require_auth
def summary_route(ctx):
    return jsonify(reporting_service.sales_summary()), 200


@reports_bp.get("/top-products")
@require_auth
def top_products_route(ctx):
    return _run(reporting_service.top_products, "limit", 10)


@reports_bp.get("/top-customers")
@require_auth
def top_customers_route(ctx):
    return _run(reporting_service.top_customers, "limit", 10)
