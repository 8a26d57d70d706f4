from library_service.extensions import db
from library_service.utils.timeutils import utcnow

STATUS_ACTIVE = "ACTIVE"
STATUS_RETURNED = "RETURNED"
STATUS_OVERDUE = "OVERDUE"
BORROW_STATUSES = (STATUS_ACTIVE, STATUS_RETURNED, STATUS_OVERDUE)


class Borrow(db.Model):
    __tablename__ = "borrows"

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    book_id = db.Column(db.Integer, db.ForeignKey("books.id", ondelete="CASCADE"), nullable=False, index=True)

    borrow_date = db.Column(db.DateTime, nullable=False, default=utcnow)
    due_date = db.Column(db.DateTime, nullable=False)
    return_date = db.Column(db.DateTime, nullable=True)

    # OVERDUE is derived from due_date at read time; lifecycle paths only write ACTIVE/RETURNED
    status = db.Column(db.String(20), nullable=False, default=STATUS_ACTIVE)
    renewal_count = db.Column(db.Integer, nullable=False, default=0)
    fine_amount = db.Column(db.Numeric(10, 2), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    user = db.relationship("User", backref=db.backref("borrows", cascade="all, delete"))
    book = db.relationship("Book", backref=db.backref("borrows", cascade="all, delete"))

    __table_args__ = (
        db.Index(
            "uq_borrows_active_user_book",
            "user_id",
            "book_id",
            unique=True,
            sqlite_where=db.text("status = 'ACTIVE'"),
            postgresql_where=db.text("status = 'ACTIVE'"),
        ),
    )

    def is_overdue(self, now=None) -> bool:
        now = now or utcnow()
        return self.status == STATUS_ACTIVE and self.due_date < now

    def to_dict(self, now=None):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "book_id": self.book_id,
            "borrow_date": self.borrow_date.isoformat() if self.borrow_date else None,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "return_date": self.return_date.isoformat() if self.return_date else None,
            "status": self.status,
            "is_overdue": self.is_overdue(now),
            "renewal_count": self.renewal_count,
            "fine_amount": float(self.fine_amount) if self.fine_amount is not None else None,
            "book": self.book.summary() if self.book else None,
            "user": self.user.summary() if self.user else None,
        }
