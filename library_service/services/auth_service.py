import random
from datetime import date

from flask import current_app
from flask_jwt_extended import create_access_token
from sqlalchemy.exc import IntegrityError
from werkzeug.security import generate_password_hash, check_password_hash

from library_service.extensions import db
from library_service.models.user import User, ROLE_STAFF, ROLE_STUDENT
from library_service.repositories.user_repo import UserRepo
from library_service.utils.errors import AuthError, ConflictError, ValidationError
from library_service.utils.validators import require_email, require_text

SELF_REGISTER_ROLES = (ROLE_STUDENT, ROLE_STAFF)
MIN_PASSWORD_LENGTH = 8


def require_password(data: dict, key: str = "password", label: str = "Password") -> str:
    password = data.get(key)
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"{label} must be at least {MIN_PASSWORD_LENGTH} characters long")
    return password


def generate_student_id() -> str:
    """``C<yy>-<nnnn>``, e.g. C25-0421."""
    return f"C{date.today().strftime('%y')}-{random.randint(0, 9999):04d}"


class AuthService:
    @staticmethod
    def issue_token(user: User) -> str:
        return create_access_token(identity=str(user.id), additional_claims={"role": user.role})

    @staticmethod
    def register(data: dict):
        role = (data.get("role") or ROLE_STUDENT).upper()
        if role not in SELF_REGISTER_ROLES:
            raise ValidationError("Role must be either STUDENT or STAFF")

        user = AuthService.create_account(data, role)
        current_app.logger.info(f"[auth] registered user={user.id} role={user.role}")
        return user, AuthService.issue_token(user)

    @staticmethod
    def create_account(data: dict, role: str) -> User:
        """Validates and stores a new account with ``role``; no role restriction applies here."""
        email = require_email(data)
        password = require_password(data)
        first_name = require_text(data, "first_name", min_length=2, message="First name must be at least 2 characters")
        last_name = require_text(data, "last_name", min_length=2, message="Last name must be at least 2 characters")

        if UserRepo.get_by_email(email):
            raise ConflictError("Email already registered")

        student_id = None
        if role == ROLE_STUDENT:
            student_id = generate_student_id()
            while UserRepo.student_id_taken(student_id):
                student_id = generate_student_id()

        user = UserRepo.add(User(
            email=email,
            password_hash=generate_password_hash(password),
            first_name=first_name,
            last_name=last_name,
            role=role,
            student_id=student_id,
        ))
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise ConflictError("Email already registered")
        return user

    @staticmethod
    def login(data: dict):
        email = require_email(data)
        password = data.get("password")
        if not password:
            raise ValidationError("Password is required")

        user = UserRepo.get_by_email(email)
        if not user or not user.is_active or not check_password_hash(user.password_hash, password):
            raise AuthError("Invalid credentials")

        return user, AuthService.issue_token(user)
