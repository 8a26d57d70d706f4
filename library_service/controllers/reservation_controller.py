from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required

from library_service.services.reservation_service import ReservationService
from library_service.utils import policy
from library_service.utils.decorators import current_principal, permission_required
from library_service.utils.pagination import page_args
from library_service.utils.validators import require_int

reservation_bp = Blueprint("reservations", __name__)


@reservation_bp.get("")
@jwt_required()
def list_reservations():
    page, limit = page_args(request.args)
    rows, pagination = ReservationService.list_reservations(current_principal(), request.args, page, limit)
    return jsonify({"reservations": [r.to_dict() for r in rows], "pagination": pagination})


@reservation_bp.post("")
@jwt_required()
def reserve_book():
    data = request.get_json(silent=True) or {}
    book_id = require_int(data, "book_id", minimum=1, message="Book ID is required")
    reservation = ReservationService.reserve_book(current_principal(), book_id)
    return jsonify(reservation.to_dict()), 201


@reservation_bp.delete("/<int:reservation_id>")
@jwt_required()
def cancel_reservation(reservation_id: int):
    ReservationService.cancel_reservation(current_principal(), reservation_id)
    return jsonify({"message": "Reservation cancelled successfully"})


@reservation_bp.get("/expired")
@permission_required(policy.RESERVATION_SWEEP)
def expired_reservations():
    rows = ReservationService.list_expired(current_principal())
    return jsonify([r.to_dict() for r in rows])


@reservation_bp.put("/cleanup-expired")
@permission_required(policy.RESERVATION_SWEEP)
def cleanup_expired():
    count = ReservationService.cleanup_expired(current_principal())
    return jsonify({"message": "Expired reservations cleaned up successfully", "count": count})
