from datetime import datetime

from sqlalchemy import update

from library_service.models.reservation import Reservation
from library_service.extensions import db


class ReservationRepo:
    @staticmethod
    def get(reservation_id: int):
        return db.session.get(Reservation, reservation_id)

    @staticmethod
    def query(is_active=None, user_id=None):
        q = Reservation.query
        if is_active is not None:
            q = q.filter(Reservation.is_active.is_(is_active))
        if user_id is not None:
            q = q.filter(Reservation.user_id == user_id)
        return q

    @staticmethod
    def find_active(user_id: int, book_id: int):
        return Reservation.query.filter_by(user_id=user_id, book_id=book_id, is_active=True).first()

    @staticmethod
    def list_active_for_book(book_id: int):
        return (
            Reservation.query.filter_by(book_id=book_id, is_active=True)
            .order_by(Reservation.reservation_date.asc())
            .all()
        )

    @staticmethod
    def list_active_for_user(user_id: int):
        return (
            Reservation.query.filter_by(user_id=user_id, is_active=True)
            .order_by(Reservation.reservation_date.desc())
            .all()
        )

    @staticmethod
    def count_active_for_book(book_id: int) -> int:
        return Reservation.query.filter_by(book_id=book_id, is_active=True).count()

    @staticmethod
    def count_active_for_user(user_id: int) -> int:
        return Reservation.query.filter_by(user_id=user_id, is_active=True).count()

    @staticmethod
    def held_by_other_user(book_id: int, user_id: int) -> bool:
        return (
            Reservation.query.filter(
                Reservation.book_id == book_id,
                Reservation.is_active.is_(True),
                Reservation.user_id != user_id,
            ).first()
            is not None
        )

    @staticmethod
    def list_expired(now: datetime):
        return (
            Reservation.query.filter(Reservation.is_active.is_(True), Reservation.expiry_date < now)
            .order_by(Reservation.expiry_date.asc())
            .all()
        )

    @staticmethod
    def deactivate_expired(now: datetime) -> int:
        result = db.session.execute(
            update(Reservation)
            .where(Reservation.is_active.is_(True), Reservation.expiry_date < now)
            .values(is_active=False)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    @staticmethod
    def add(reservation: Reservation):
        db.session.add(reservation)
        return reservation
