from library_service.extensions import db
from library_service.utils.timeutils import utcnow

ROLE_STUDENT = "STUDENT"
ROLE_STAFF = "STAFF"
ROLE_ADMIN = "ADMIN"
ROLES = (ROLE_STUDENT, ROLE_STAFF, ROLE_ADMIN)
ELEVATED_ROLES = (ROLE_STAFF, ROLE_ADMIN)


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)

    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    student_id = db.Column(db.String(16), unique=True, nullable=True)

    role = db.Column(db.String(20), nullable=False, default=ROLE_STUDENT)  # STUDENT/STAFF/ADMIN
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    registration_date = db.Column(db.DateTime, nullable=False, default=utcnow)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def summary(self):
        return {
            "id": self.id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "student_id": self.student_id,
            "email": self.email,
        }

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "student_id": self.student_id,
            "role": self.role,
            "is_active": bool(self.is_active),
            "registration_date": self.registration_date.isoformat() if self.registration_date else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
