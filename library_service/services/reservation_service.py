from datetime import datetime

from flask import current_app
from sqlalchemy.exc import IntegrityError

from library_service.extensions import db
from library_service.models.reservation import Reservation
from library_service.repositories.book_repo import BookRepo
from library_service.repositories.borrow_repo import BorrowRepo
from library_service.repositories.reservation_repo import ReservationRepo
from library_service.services import lifecycle_rules as rules
from library_service.utils import policy
from library_service.utils.errors import NotFoundError, RuleViolationError
from library_service.utils.pagination import order_clause, paginate
from library_service.utils.policy import Principal
from library_service.utils.timeutils import utcnow
from library_service.utils.validators import parse_bool_arg, parse_int_arg

SORT_COLUMNS = {
    "reservation_date": Reservation.reservation_date,
    "expiry_date": Reservation.expiry_date,
}


class ReservationService:
    @staticmethod
    def list_reservations(principal: Principal, args, page: int, limit: int):
        is_active = parse_bool_arg(args.get("is_active"))
        user_id = parse_int_arg(args, "user_id")
        if not policy.is_allowed(principal, policy.RESERVATION_LIST_ALL):
            user_id = principal.id

        q = ReservationRepo.query(is_active=is_active, user_id=user_id)
        q = q.order_by(order_clause(args, SORT_COLUMNS, "reservation_date"))
        return paginate(q, page, limit)

    @staticmethod
    def reserve_book(principal: Principal, book_id: int, now: datetime | None = None) -> Reservation:
        policy.ensure_allowed(principal, policy.RESERVATION_CREATE)
        now = now or utcnow()

        book = BookRepo.get(book_id)
        if not book:
            raise NotFoundError("Book not found")

        if book.available_copies > 0:
            raise RuleViolationError("Book is available, you can borrow it directly")

        if ReservationRepo.find_active(principal.id, book_id):
            raise RuleViolationError("You already have an active reservation for this book")

        if BorrowRepo.find_active(principal.id, book_id):
            raise RuleViolationError("You already have this book borrowed")

        reservation = ReservationRepo.add(Reservation(
            user_id=principal.id,
            book_id=book_id,
            reservation_date=now,
            expiry_date=rules.reservation_expiry(now),
            is_active=True,
        ))
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise RuleViolationError("You already have an active reservation for this book")

        current_app.logger.info(
            f"[reservation] user={principal.id} book={book_id} reservation={reservation.id} "
            f"expires={reservation.expiry_date.isoformat()}"
        )
        return reservation

    @staticmethod
    def cancel_reservation(principal: Principal, reservation_id: int) -> Reservation:
        reservation = ReservationRepo.get(reservation_id)
        if not reservation:
            raise NotFoundError("Reservation not found")

        policy.ensure_allowed(principal, policy.RESERVATION_CANCEL, reservation)

        if not reservation.is_active:
            current_app.logger.info(f"[reservation] reservation={reservation.id} already inactive")
            return reservation

        reservation.is_active = False
        db.session.commit()

        current_app.logger.info(f"[reservation] cancelled reservation={reservation.id} by user={principal.id}")
        return reservation

    @staticmethod
    def list_expired(principal: Principal, now: datetime | None = None):
        policy.ensure_allowed(principal, policy.RESERVATION_SWEEP)
        return ReservationRepo.list_expired(now or utcnow())

    @staticmethod
    def expire_stale(now: datetime | None = None) -> int:
        """Deactivates every active reservation whose expiry date has passed."""
        now = now or utcnow()
        try:
            count = ReservationRepo.deactivate_expired(now)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        current_app.logger.info(f"[expiry_sweep] deactivated={count} at={now.isoformat()}")
        return count

    @staticmethod
    def cleanup_expired(principal: Principal, now: datetime | None = None) -> int:
        policy.ensure_allowed(principal, policy.RESERVATION_SWEEP)
        return ReservationService.expire_stale(now)
