from collections import Counter
from datetime import datetime, timedelta

from sqlalchemy import and_, exists, func, or_

from library_service.extensions import db
from library_service.models.book import Book
from library_service.models.borrow import Borrow, STATUS_ACTIVE, STATUS_RETURNED
from library_service.models.reservation import Reservation
from library_service.models.user import User, ROLE_STAFF, ROLE_STUDENT
from library_service.utils import policy
from library_service.utils.errors import ValidationError
from library_service.utils.policy import Principal
from library_service.utils.timeutils import utcnow

GROUP_BY_CHOICES = ("day", "week", "month")


def _bucket(value: datetime, group_by: str) -> str:
    if group_by == "month":
        return value.strftime("%Y-%m")
    if group_by == "week":
        monday = value.date() - timedelta(days=value.weekday())
        return monday.isoformat()
    return value.date().isoformat()


def _series(values, group_by: str):
    counts = Counter(_bucket(v, group_by) for v in values if v is not None)
    return [{"date": k, "count": counts[k]} for k in sorted(counts)]


def parse_period(raw, default: int = 30) -> int:
    if raw is None or raw == "":
        return default
    try:
        period = int(raw)
    except (TypeError, ValueError):
        raise ValidationError("Period must be between 1 and 365 days")
    if not 1 <= period <= 365:
        raise ValidationError("Period must be between 1 and 365 days")
    return period


def _borrow_counts_since(since: datetime, key):
    return (
        db.session.query(key.label("key"), func.count(Borrow.id).label("n"))
        .filter(Borrow.borrow_date >= since)
        .group_by(key)
        .subquery()
    )


def _reservation_counts_since(since: datetime, key):
    return (
        db.session.query(key.label("key"), func.count(Reservation.id).label("n"))
        .filter(Reservation.reservation_date >= since, Reservation.is_active.is_(True))
        .group_by(key)
        .subquery()
    )


class AnalyticsService:
    @staticmethod
    def dashboard(principal: Principal, now: datetime | None = None) -> dict:
        policy.ensure_allowed(principal, policy.ANALYTICS_VIEW)
        now = now or utcnow()
        thirty_days_ago = now - timedelta(days=30)
        seven_days_ago = now - timedelta(days=7)

        total_books = Book.query.count()
        total_users = User.query.filter(User.is_active.is_(True)).count()
        active_borrows = Borrow.query.filter(Borrow.status == STATUS_ACTIVE).count()
        total_reservations = Reservation.query.filter(Reservation.is_active.is_(True)).count()
        overdue_books = Borrow.query.filter(Borrow.status == STATUS_ACTIVE, Borrow.due_date < now).count()
        available_books = db.session.query(func.coalesce(func.sum(Book.available_copies), 0)).scalar()
        recent_borrows = Borrow.query.filter(Borrow.borrow_date >= seven_days_ago).count()
        recent_returns = Borrow.query.filter(
            Borrow.status == STATUS_RETURNED, Borrow.return_date >= seven_days_ago
        ).count()

        active_members = User.query.filter(
            User.is_active.is_(True),
            or_(
                exists().where(and_(Borrow.user_id == User.id, Borrow.borrow_date >= thirty_days_ago)),
                exists().where(and_(Reservation.user_id == User.id,
                                    Reservation.reservation_date >= thirty_days_ago)),
            ),
        ).count()

        borrow_count = func.count(Borrow.id).label("borrow_count")
        popular = (
            db.session.query(Book, borrow_count)
            .join(Borrow, Borrow.book_id == Book.id)
            .filter(Borrow.borrow_date >= thirty_days_ago)
            .group_by(Book.id)
            .order_by(borrow_count.desc(), Book.id.asc())
            .limit(10)
            .all()
        )

        categories = (
            db.session.query(
                Book.category,
                func.count(Book.id),
                func.coalesce(func.sum(Book.total_copies), 0),
                func.coalesce(func.sum(Book.available_copies), 0),
            )
            .group_by(Book.category)
            .order_by(Book.category.asc())
            .all()
        )

        recent_dates = [
            r[0] for r in db.session.query(Borrow.borrow_date).filter(Borrow.borrow_date >= thirty_days_ago)
        ]
        daily = _series(recent_dates, "day")
        daily.reverse()

        return {
            "total_books": total_books,
            "total_users": total_users,
            "available_books": int(available_books or 0),
            "borrowed_books": active_borrows,
            "reserved_books": total_reservations,
            "active_members": active_members,
            "summary": {
                "total_books": total_books,
                "total_users": total_users,
                "active_borrows": active_borrows,
                "total_reservations": total_reservations,
                "overdue_books": overdue_books,
                "available_books": int(available_books or 0),
                "recent_borrows": recent_borrows,
                "recent_returns": recent_returns,
            },
            "popular_books": [dict(book.summary(), borrow_count=n) for book, n in popular],
            "category_stats": [
                {
                    "category": category,
                    "total_books": count,
                    "total_copies": int(total),
                    "available_copies": int(available),
                    "borrowed_copies": int(total) - int(available),
                }
                for category, count, total, available in categories
            ],
            "daily_borrow_stats": [{"date": d["date"], "borrow_count": d["count"]} for d in daily],
        }

    @staticmethod
    def user_stats(principal: Principal, period: int = 30, now: datetime | None = None) -> dict:
        policy.ensure_allowed(principal, policy.ANALYTICS_VIEW)
        since = (now or utcnow()) - timedelta(days=period)

        borrows = _borrow_counts_since(since, Borrow.user_id)
        reservations = _reservation_counts_since(since, Reservation.user_id)
        borrow_n = func.coalesce(borrows.c.n, 0)
        reservation_n = func.coalesce(reservations.c.n, 0)

        rows = (
            db.session.query(User, borrow_n, reservation_n)
            .outerjoin(borrows, borrows.c.key == User.id)
            .outerjoin(reservations, reservations.c.key == User.id)
            .filter(User.role.in_((ROLE_STUDENT, ROLE_STAFF)), User.is_active.is_(True))
            .order_by(borrow_n.desc(), User.id.asc())
            .all()
        )

        active_users = User.query.filter(
            User.is_active.is_(True),
            exists().where(and_(Borrow.user_id == User.id, Borrow.borrow_date >= since)),
        ).count()

        return {
            "active_users_count": active_users,
            "user_stats": [
                dict(user.to_dict(), borrow_count=int(b), reservation_count=int(r))
                for user, b, r in rows
            ],
        }

    @staticmethod
    def book_stats(principal: Principal, period: int = 30, now: datetime | None = None) -> dict:
        policy.ensure_allowed(principal, policy.ANALYTICS_VIEW)
        since = (now or utcnow()) - timedelta(days=period)

        borrows = _borrow_counts_since(since, Borrow.book_id)
        reservations = _reservation_counts_since(since, Reservation.book_id)
        borrow_n = func.coalesce(borrows.c.n, 0)
        reservation_n = func.coalesce(reservations.c.n, 0)

        rows = (
            db.session.query(Book, borrow_n, reservation_n)
            .outerjoin(borrows, borrows.c.key == Book.id)
            .outerjoin(reservations, reservations.c.key == Book.id)
            .order_by(borrow_n.desc(), Book.id.asc())
            .all()
        )

        never_borrowed = Book.query.filter(~exists().where(Borrow.book_id == Book.id)).count()

        stats = []
        for book, b, r in rows:
            utilization = 0.0
            if book.total_copies:
                utilization = round((book.total_copies - book.available_copies) / book.total_copies * 100, 2)
            stats.append({
                "id": book.id,
                "title": book.title,
                "author": book.author,
                "category": book.category,
                "total_copies": book.total_copies,
                "available_copies": book.available_copies,
                "borrow_count": int(b),
                "reservation_count": int(r),
                "utilization_rate": utilization,
            })

        return {"never_borrowed_count": never_borrowed, "book_stats": stats}

    @staticmethod
    def trends(principal: Principal, period: int = 30, group_by: str = "day", now: datetime | None = None) -> dict:
        policy.ensure_allowed(principal, policy.ANALYTICS_VIEW)
        if group_by not in GROUP_BY_CHOICES:
            raise ValidationError("Group by must be day, week, or month")
        since = (now or utcnow()) - timedelta(days=period)

        borrow_dates = [r[0] for r in db.session.query(Borrow.borrow_date).filter(Borrow.borrow_date >= since)]
        return_dates = [
            r[0] for r in db.session.query(Borrow.return_date).filter(
                Borrow.return_date.isnot(None), Borrow.return_date >= since
            )
        ]
        reservation_dates = [
            r[0] for r in db.session.query(Reservation.reservation_date).filter(
                Reservation.reservation_date >= since
            )
        ]

        return {
            "group_by": group_by,
            "borrow_trends": _series(borrow_dates, group_by),
            "return_trends": _series(return_dates, group_by),
            "reservation_trends": _series(reservation_dates, group_by),
        }

    @staticmethod
    def fines(principal: Principal) -> dict:
        policy.ensure_allowed(principal, policy.ANALYTICS_VIEW)

        total, records = (
            db.session.query(func.coalesce(func.sum(Borrow.fine_amount), 0), func.count(Borrow.fine_amount))
            .filter(Borrow.fine_amount > 0)
            .one()
        )

        user_total = func.sum(Borrow.fine_amount).label("total_fines")
        top = (
            db.session.query(User, user_total, func.count(Borrow.fine_amount))
            .join(Borrow, Borrow.user_id == User.id)
            .filter(Borrow.fine_amount > 0)
            .group_by(User.id)
            .order_by(user_total.desc(), User.id.asc())
            .limit(10)
            .all()
        )

        return {
            "total_fines": float(total or 0),
            "total_fine_records": records,
            "top_fine_users": [
                {"user": user.summary(), "total_fines": float(amount or 0), "fine_count": count}
                for user, amount, count in top
            ],
        }
