# layofftracker/dashboard/__init__.py
from __future__ import annotations

from flask import Blueprint, jsonify, request

from layofftracker.services import layoff_stats

dashboard_bp = Blueprint("dashboard_bp", __name__, url_prefix="/api")


@dashboard_bp.get("/dashboard/stats")
def stats():
    return jsonify(layoff_stats.dashboard_stats())


@dashboard_bp.get("/layoffs/recent")
def recent():
    return jsonify(layoff_stats.recent_layoffs())


@dashboard_bp.get("/analytics/historical")
def historical():
    return jsonify(layoff_stats.historical_data())


@dashboard_bp.get("/analytics/trends")
def trends():
    timeframe = (request.args.get("timeframe") or "month").strip().lower()
    try:
        rows = layoff_stats.layoff_trends(timeframe)
    except ValueError as e:
        return jsonify({"message": str(e)}), 400
    return jsonify(rows)
