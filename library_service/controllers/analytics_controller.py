from flask import Blueprint, request, jsonify

from library_service.services.analytics_service import AnalyticsService, parse_period
from library_service.utils import policy
from library_service.utils.decorators import current_principal, permission_required

analytics_bp = Blueprint("analytics", __name__)


@analytics_bp.get("/dashboard")
@permission_required(policy.ANALYTICS_VIEW)
def dashboard():
    return jsonify(AnalyticsService.dashboard(current_principal()))


@analytics_bp.get("/user-stats")
@permission_required(policy.ANALYTICS_VIEW)
def user_stats():
    period = parse_period(request.args.get("period"))
    return jsonify(AnalyticsService.user_stats(current_principal(), period))


@analytics_bp.get("/book-stats")
@permission_required(policy.ANALYTICS_VIEW)
def book_stats():
    period = parse_period(request.args.get("period"))
    return jsonify(AnalyticsService.book_stats(current_principal(), period))


@analytics_bp.get("/trends")
@permission_required(policy.ANALYTICS_VIEW)
def trends():
    period = parse_period(request.args.get("period"))
    group_by = request.args.get("group_by", "day")
    return jsonify(AnalyticsService.trends(current_principal(), period, group_by))


@analytics_bp.get("/fines")
@permission_required(policy.ANALYTICS_VIEW)
def fines():
    return jsonify(AnalyticsService.fines(current_principal()))
