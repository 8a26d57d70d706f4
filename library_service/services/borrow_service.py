from datetime import datetime

from flask import current_app
from sqlalchemy.exc import IntegrityError

from library_service.extensions import db
from library_service.models.borrow import Borrow, STATUS_ACTIVE, BORROW_STATUSES
from library_service.repositories.book_repo import BookRepo
from library_service.repositories.borrow_repo import BorrowRepo
from library_service.repositories.reservation_repo import ReservationRepo
from library_service.services import lifecycle_rules as rules
from library_service.utils import policy
from library_service.utils.errors import NotFoundError, RuleViolationError, ValidationError
from library_service.utils.pagination import order_clause, paginate
from library_service.utils.policy import Principal
from library_service.utils.timeutils import utcnow
from library_service.utils.validators import parse_int_arg

SORT_COLUMNS = {
    "borrow_date": Borrow.borrow_date,
    "due_date": Borrow.due_date,
    "return_date": Borrow.return_date,
    "status": Borrow.status,
}


class BorrowService:
    @staticmethod
    def list_borrows(principal: Principal, args, page: int, limit: int, now: datetime | None = None):
        status = (args.get("status") or "").upper()
        if status and status not in BORROW_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(BORROW_STATUSES)}")

        user_id = parse_int_arg(args, "user_id")
        # students only ever see their own records
        if not policy.is_allowed(principal, policy.BORROW_LIST_ALL):
            user_id = principal.id

        q = BorrowRepo.query(status=status, user_id=user_id, now=now or utcnow())
        q = q.order_by(order_clause(args, SORT_COLUMNS, "borrow_date"))
        return paginate(q, page, limit)

    @staticmethod
    def get_borrow(principal: Principal, borrow_id: int) -> Borrow:
        borrow = BorrowRepo.get(borrow_id)
        if not borrow:
            raise NotFoundError("Borrow record not found")
        policy.ensure_allowed(principal, policy.BORROW_VIEW, borrow)
        return borrow

    @staticmethod
    def borrow_book(principal: Principal, book_id: int, now: datetime | None = None) -> Borrow:
        policy.ensure_allowed(principal, policy.BORROW_CREATE)
        now = now or utcnow()

        book = BookRepo.get(book_id)
        if not book:
            raise NotFoundError("Book not found")

        if book.available_copies is None or book.available_copies <= 0:
            raise RuleViolationError("Book is not available for borrowing")

        if BorrowRepo.find_active(principal.id, book_id):
            raise RuleViolationError("You already have this book borrowed")

        # counter, borrow row and reservation consumption commit together
        try:
            if not BookRepo.take_copy(book_id):
                raise RuleViolationError("Book is not available for borrowing")

            borrow = BorrowRepo.add(Borrow(
                user_id=principal.id,
                book_id=book_id,
                borrow_date=now,
                due_date=rules.due_date_for(now),
                status=STATUS_ACTIVE,
                renewal_count=0,
            ))

            reservation = ReservationRepo.find_active(principal.id, book_id)
            if reservation:
                reservation.is_active = False

            db.session.commit()
        except RuleViolationError:
            db.session.rollback()
            raise
        except IntegrityError:
            db.session.rollback()
            raise RuleViolationError("You already have this book borrowed")

        current_app.logger.info(
            f"[borrow] user={principal.id} book={book_id} borrow={borrow.id} due={borrow.due_date.isoformat()}"
            f"{' reservation_consumed=' + str(reservation.id) if reservation else ''}"
        )
        return borrow

    @staticmethod
    def renew_borrow(principal: Principal, borrow_id: int) -> Borrow:
        borrow = BorrowRepo.get(borrow_id)
        if not borrow:
            raise NotFoundError("Borrow record not found")

        policy.ensure_allowed(principal, policy.BORROW_RENEW, borrow)

        if borrow.status != STATUS_ACTIVE:
            raise RuleViolationError("Cannot renew returned book")

        if not rules.can_renew(borrow.renewal_count):
            raise RuleViolationError("Maximum renewal limit reached")

        if ReservationRepo.held_by_other_user(borrow.book_id, borrow.user_id):
            raise RuleViolationError("Book has active reservations, cannot renew")

        new_due = rules.renewed_due_date(borrow.due_date)
        if not BorrowRepo.renew(borrow, new_due):
            db.session.rollback()
            raise RuleViolationError("Borrow record changed, please retry")
        db.session.commit()

        current_app.logger.info(
            f"[borrow] renewed borrow={borrow.id} due={borrow.due_date.isoformat()} renewals={borrow.renewal_count}"
        )
        return borrow

    @staticmethod
    def return_book(principal: Principal, borrow_id: int, now: datetime | None = None) -> Borrow:
        policy.ensure_allowed(principal, policy.BORROW_RETURN)

        borrow = BorrowRepo.get(borrow_id)
        if not borrow:
            raise NotFoundError("Borrow record not found")

        if borrow.status != STATUS_ACTIVE:
            raise RuleViolationError("Book is already returned")

        returned_at = now or utcnow()
        fine = rules.fine_for(borrow.due_date, returned_at)

        if not BorrowRepo.mark_returned(borrow.id, returned_at, fine):
            db.session.rollback()
            raise RuleViolationError("Book is already returned")

        if not BookRepo.put_back_copy(borrow.book_id):
            current_app.logger.warning(
                f"[borrow] book={borrow.book_id} already at total copies on return of borrow={borrow.id}"
            )

        db.session.commit()

        current_app.logger.info(
            f"[borrow] returned borrow={borrow.id} book={borrow.book_id} fine={fine if fine is not None else 0}"
        )
        return borrow

    @staticmethod
    def list_overdue(principal: Principal, now: datetime | None = None):
        """Active borrows past due with the fine they would carry if returned at ``now``."""
        policy.ensure_allowed(principal, policy.OVERDUE_VIEW)
        now = now or utcnow()

        rows = []
        for b in BorrowRepo.find_overdue(now):
            data = b.to_dict(now)
            data["days_overdue"] = rules.days_overdue(b.due_date, now)
            fine = rules.fine_for(b.due_date, now)
            data["calculated_fine"] = float(fine) if fine is not None else 0.0
            rows.append(data)
        return rows
