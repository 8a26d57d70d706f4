from flask import current_app
from sqlalchemy.exc import IntegrityError

from library_service.extensions import db
from library_service.models.book import Book, BOOK_STATUSES
from library_service.repositories.book_repo import BookRepo
from library_service.repositories.borrow_repo import BorrowRepo
from library_service.repositories.reservation_repo import ReservationRepo
from library_service.utils import policy
from library_service.utils.errors import ConflictError, NotFoundError, RuleViolationError, ValidationError
from library_service.utils.pagination import order_clause, paginate
from library_service.utils.policy import Principal
from library_service.utils.validators import (
    optional_text,
    require_int,
    require_isbn,
    require_published_year,
    require_text,
)

SORT_COLUMNS = {
    "created_at": Book.created_at,
    "title": Book.title,
    "author": Book.author,
    "published_year": Book.published_year,
    "available_copies": Book.available_copies,
}

_REQUIRED_TEXT = {
    "title": "Title is required",
    "author": "Author is required",
    "publisher": "Publisher is required",
    "category": "Category is required",
}


def _status(data: dict) -> str:
    status = (data.get("status") or "AVAILABLE").upper()
    if status not in BOOK_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(BOOK_STATUSES)}")
    return status


class BookService:
    @staticmethod
    def list_books(args, page: int, limit: int):
        q = BookRepo.query(
            search=(args.get("search") or "").strip(),
            category=(args.get("category") or "").strip(),
            status=(args.get("status") or "").strip().upper(),
        )
        q = q.order_by(order_clause(args, SORT_COLUMNS, "created_at"))
        return paginate(q, page, limit)

    @staticmethod
    def get_book(book_id: int) -> Book:
        book = BookRepo.get(book_id)
        if not book:
            raise NotFoundError("Book not found")
        return book

    @staticmethod
    def get_book_details(book_id: int) -> dict:
        book = BookService.get_book(book_id)
        data = book.to_dict()
        data["active_borrows"] = [
            {"id": b.id, "due_date": b.due_date.isoformat(), "user": b.user.summary() if b.user else None}
            for b in BorrowRepo.list_active_for_book(book.id)
        ]
        data["active_reservations"] = [
            {"id": r.id, "expiry_date": r.expiry_date.isoformat(), "user": r.user.summary() if r.user else None}
            for r in ReservationRepo.list_active_for_book(book.id)
        ]
        return data

    @staticmethod
    def categories():
        return BookRepo.categories()

    @staticmethod
    def create_book(principal: Principal, data: dict) -> Book:
        policy.ensure_allowed(principal, policy.BOOK_MANAGE)

        isbn = require_isbn(data)
        fields = {k: require_text(data, k, message=msg) for k, msg in _REQUIRED_TEXT.items()}
        published_year = require_published_year(data)
        total = require_int(data, "total_copies", minimum=1, message="Total copies must be at least 1")

        if BookRepo.get_by_isbn(isbn):
            raise ConflictError("Book with this ISBN already exists")

        book = BookRepo.add(Book(
            isbn=isbn,
            published_year=published_year,
            description=optional_text(data, "description"),
            location=optional_text(data, "location"),
            image_url=optional_text(data, "image_url"),
            status=_status(data),
            total_copies=total,
            available_copies=total,
            **fields,
        ))
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise ConflictError("Book with this ISBN already exists")

        current_app.logger.info(f"[book] created book={book.id} isbn={book.isbn} copies={total}")
        return book

    @staticmethod
    def update_book(principal: Principal, book_id: int, data: dict) -> Book:
        policy.ensure_allowed(principal, policy.BOOK_MANAGE)
        book = BookService.get_book(book_id)
        # queried before any attribute is touched; queries autoflush
        borrowed = BorrowRepo.count_active_for_book(book.id)

        if "isbn" in data:
            isbn = require_isbn(data)
            other = BookRepo.get_by_isbn(isbn)
            if other and other.id != book.id:
                raise ConflictError("Book with this ISBN already exists")
            book.isbn = isbn

        for key, msg in _REQUIRED_TEXT.items():
            if key in data:
                setattr(book, key, require_text(data, key, message=msg))

        if "published_year" in data:
            book.published_year = require_published_year(data)

        for key in ("description", "location", "image_url"):
            if key in data:
                setattr(book, key, optional_text(data, key))

        if "status" in data:
            book.status = _status(data)

        if "total_copies" in data:
            total = require_int(data, "total_copies", minimum=1, message="Total copies must be at least 1")
            if total < borrowed:
                raise RuleViolationError(f"Total copies cannot be lower than the {borrowed} copies currently borrowed")
            book.total_copies = total
            book.available_copies = total - borrowed

        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise ConflictError("Book with this ISBN already exists")

        current_app.logger.info(f"[book] updated book={book.id}")
        return book

    @staticmethod
    def delete_book(principal: Principal, book_id: int):
        policy.ensure_allowed(principal, policy.BOOK_MANAGE)
        book = BookService.get_book(book_id)

        if BorrowRepo.count_active_for_book(book.id) or ReservationRepo.count_active_for_book(book.id):
            raise RuleViolationError("Cannot delete book with active borrows or reservations")

        BookRepo.delete(book)
        db.session.commit()
        current_app.logger.info(f"[book] deleted book={book_id}")
