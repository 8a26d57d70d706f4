from datetime import datetime

from sqlalchemy import update

from library_service.models.borrow import Borrow, STATUS_ACTIVE, STATUS_RETURNED, STATUS_OVERDUE
from library_service.extensions import db


class BorrowRepo:
    @staticmethod
    def get(borrow_id: int):
        return db.session.get(Borrow, borrow_id)

    @staticmethod
    def query(status: str = "", user_id=None, now: datetime | None = None):
        q = Borrow.query
        if status == STATUS_OVERDUE:
            # derived: still out and past due
            q = q.filter(Borrow.status == STATUS_ACTIVE, Borrow.due_date < now)
        elif status:
            q = q.filter(Borrow.status == status)
        if user_id is not None:
            q = q.filter(Borrow.user_id == user_id)
        return q

    @staticmethod
    def find_active(user_id: int, book_id: int):
        return Borrow.query.filter_by(user_id=user_id, book_id=book_id, status=STATUS_ACTIVE).first()

    @staticmethod
    def list_active_for_book(book_id: int):
        return Borrow.query.filter_by(book_id=book_id, status=STATUS_ACTIVE).all()

    @staticmethod
    def count_active_for_book(book_id: int) -> int:
        return Borrow.query.filter_by(book_id=book_id, status=STATUS_ACTIVE).count()

    @staticmethod
    def count_active_for_user(user_id: int) -> int:
        return Borrow.query.filter_by(user_id=user_id, status=STATUS_ACTIVE).count()

    @staticmethod
    def latest_for_user(user_id: int, limit: int = 10):
        return (
            Borrow.query.filter_by(user_id=user_id)
            .order_by(Borrow.borrow_date.desc(), Borrow.id.desc())
            .limit(limit)
            .all()
        )

    @staticmethod
    def add(borrow: Borrow):
        db.session.add(borrow)
        return borrow

    @staticmethod
    def renew(borrow: Borrow, new_due_date: datetime) -> bool:
        """Applies a renewal only if nobody changed the row since it was read."""
        result = db.session.execute(
            update(Borrow)
            .where(
                Borrow.id == borrow.id,
                Borrow.status == STATUS_ACTIVE,
                Borrow.renewal_count == borrow.renewal_count,
            )
            .values(due_date=new_due_date, renewal_count=borrow.renewal_count + 1)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    @staticmethod
    def mark_returned(borrow_id: int, returned_at: datetime, fine_amount) -> bool:
        result = db.session.execute(
            update(Borrow)
            .where(Borrow.id == borrow_id, Borrow.status == STATUS_ACTIVE)
            .values(status=STATUS_RETURNED, return_date=returned_at, fine_amount=fine_amount)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    @staticmethod
    def find_overdue(now: datetime):
        return (
            Borrow.query.filter(Borrow.status == STATUS_ACTIVE, Borrow.due_date < now)
            .order_by(Borrow.due_date.asc())
            .all()
        )
