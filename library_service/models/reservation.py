from library_service.extensions import db
from library_service.utils.timeutils import utcnow


class Reservation(db.Model):
    __tablename__ = "reservations"

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    book_id = db.Column(db.Integer, db.ForeignKey("books.id", ondelete="CASCADE"), nullable=False, index=True)

    reservation_date = db.Column(db.DateTime, nullable=False, default=utcnow)
    expiry_date = db.Column(db.DateTime, nullable=False, index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    user = db.relationship("User", backref=db.backref("reservations", cascade="all, delete"))
    book = db.relationship("Book", backref=db.backref("reservations", cascade="all, delete"))

    # one active reservation per (user, book); inactive history rows may repeat
    __table_args__ = (
        db.Index(
            "uq_reservations_active_user_book",
            "user_id",
            "book_id",
            unique=True,
            sqlite_where=db.text("is_active = 1"),
            postgresql_where=db.text("is_active"),
        ),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "book_id": self.book_id,
            "reservation_date": self.reservation_date.isoformat() if self.reservation_date else None,
            "expiry_date": self.expiry_date.isoformat() if self.expiry_date else None,
            "is_active": bool(self.is_active),
            "book": dict(self.book.summary(), available_copies=self.book.available_copies) if self.book else None,
            "user": self.user.summary() if self.user else None,
        }
