from flask import Blueprint, request, jsonify

from library_service.services.book_service import BookService
from library_service.utils import policy
from library_service.utils.decorators import current_principal, permission_required
from library_service.utils.pagination import page_args

book_bp = Blueprint("books", __name__)


@book_bp.get("")
def list_books():
    page, limit = page_args(request.args)
    books, pagination = BookService.list_books(request.args, page, limit)
    return jsonify({"books": [b.to_dict() for b in books], "pagination": pagination})


@book_bp.get("/categories")
def list_categories():
    return jsonify(BookService.categories())


@book_bp.get("/<int:book_id>")
def get_book(book_id: int):
    return jsonify(BookService.get_book_details(book_id))


@book_bp.post("")
@permission_required(policy.BOOK_MANAGE)
def create_book():
    data = request.get_json(silent=True) or {}
    book = BookService.create_book(current_principal(), data)
    return jsonify(book.to_dict()), 201


@book_bp.put("/<int:book_id>")
@permission_required(policy.BOOK_MANAGE)
def update_book(book_id: int):
    data = request.get_json(silent=True) or {}
    book = BookService.update_book(current_principal(), book_id, data)
    return jsonify(book.to_dict())


@book_bp.delete("/<int:book_id>")
@permission_required(policy.BOOK_MANAGE)
def delete_book(book_id: int):
    BookService.delete_book(current_principal(), book_id)
    return jsonify({"message": "Book deleted successfully"})
