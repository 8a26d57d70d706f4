from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required

from library_service.services.borrow_service import BorrowService
from library_service.utils import policy
from library_service.utils.decorators import current_principal, permission_required
from library_service.utils.pagination import page_args
from library_service.utils.validators import require_int

borrow_bp = Blueprint("borrows", __name__)


@borrow_bp.get("")
@jwt_required()
def list_borrows():
    page, limit = page_args(request.args)
    borrows, pagination = BorrowService.list_borrows(current_principal(), request.args, page, limit)
    return jsonify({"borrows": [b.to_dict() for b in borrows], "pagination": pagination})


@borrow_bp.post("")
@jwt_required()
def borrow_book():
    data = request.get_json(silent=True) or {}
    book_id = require_int(data, "book_id", minimum=1, message="Book ID is required")
    borrow = BorrowService.borrow_book(current_principal(), book_id)
    return jsonify(borrow.to_dict()), 201


@borrow_bp.get("/overdue")
@permission_required(policy.OVERDUE_VIEW)
def overdue_borrows():
    return jsonify(BorrowService.list_overdue(current_principal()))


@borrow_bp.get("/<int:borrow_id>")
@jwt_required()
def get_borrow(borrow_id: int):
    return jsonify(BorrowService.get_borrow(current_principal(), borrow_id).to_dict())


@borrow_bp.put("/<int:borrow_id>/renew")
@jwt_required()
def renew_borrow(borrow_id: int):
    borrow = BorrowService.renew_borrow(current_principal(), borrow_id)
    return jsonify(borrow.to_dict())


@borrow_bp.put("/<int:borrow_id>/return")
@permission_required(policy.BORROW_RETURN)
def return_book(borrow_id: int):
    borrow = BorrowService.return_book(current_principal(), borrow_id)
    return jsonify(borrow.to_dict())
