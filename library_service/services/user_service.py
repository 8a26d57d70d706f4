from flask import current_app
from sqlalchemy.exc import IntegrityError
from werkzeug.security import check_password_hash, generate_password_hash

from library_service.extensions import db
from library_service.models.user import User, ROLES, ROLE_ADMIN
from library_service.repositories.borrow_repo import BorrowRepo
from library_service.repositories.reservation_repo import ReservationRepo
from library_service.repositories.user_repo import UserRepo
from library_service.services.auth_service import require_password
from library_service.utils import policy
from library_service.utils.errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    RuleViolationError,
    ValidationError,
)
from library_service.utils.pagination import order_clause, paginate
from library_service.utils.policy import Principal
from library_service.utils.validators import parse_bool_arg, require_bool, require_email, require_text

SORT_COLUMNS = {
    "created_at": User.created_at,
    "registration_date": User.registration_date,
    "last_name": User.last_name,
    "email": User.email,
}


def _get_user(user_id: int) -> User:
    user = UserRepo.get_by_id(user_id)
    if not user:
        raise NotFoundError("User not found")
    return user


class UserService:
    @staticmethod
    def list_users(principal: Principal, args, page: int, limit: int):
        policy.ensure_allowed(principal, policy.USER_LIST)

        role = (args.get("role") or "").upper()
        if role and role not in ROLES:
            raise ValidationError(f"role must be one of: {', '.join(ROLES)}")

        q = UserRepo.query(
            search=(args.get("search") or "").strip(),
            role=role,
            is_active=parse_bool_arg(args.get("is_active")),
        )
        q = q.order_by(order_clause(args, SORT_COLUMNS, "created_at"))
        users, pagination = paginate(q, page, limit)

        rows = []
        for u in users:
            data = u.to_dict()
            data["active_borrows"] = BorrowRepo.count_active_for_user(u.id)
            data["active_reservations"] = ReservationRepo.count_active_for_user(u.id)
            rows.append(data)
        return rows, pagination

    @staticmethod
    def get_user_details(principal: Principal, user_id: int) -> dict:
        policy.ensure_allowed(principal, policy.USER_VIEW, user_id)
        user = _get_user(user_id)

        data = user.to_dict()
        data["borrows"] = [b.to_dict() for b in BorrowRepo.latest_for_user(user.id, limit=10)]
        data["reservations"] = [r.to_dict() for r in ReservationRepo.list_active_for_user(user.id)]
        return data

    @staticmethod
    def update_profile(principal: Principal, user_id: int, data: dict) -> User:
        policy.ensure_allowed(principal, policy.USER_UPDATE, user_id)
        user = _get_user(user_id)

        if "email" in data:
            email = require_email(data)
            if email != user.email and UserRepo.get_by_email(email):
                raise ConflictError("Email already in use")
            user.email = email
        if "first_name" in data:
            user.first_name = require_text(data, "first_name", min_length=2,
                                           message="First name must be at least 2 characters")
        if "last_name" in data:
            user.last_name = require_text(data, "last_name", min_length=2,
                                          message="Last name must be at least 2 characters")

        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise ConflictError("Email already in use")
        return user

    @staticmethod
    def change_password(principal: Principal, user_id: int, data: dict):
        if not policy.is_allowed(principal, policy.USER_CHANGE_PASSWORD, user_id):
            raise ForbiddenError("Can only change your own password")

        current = data.get("current_password")
        if not current:
            raise ValidationError("Current password is required")
        new_password = require_password(data, "new_password", label="New password")

        user = _get_user(user_id)
        if not check_password_hash(user.password_hash, current):
            raise ValidationError("Current password is incorrect")

        user.password_hash = generate_password_hash(new_password)
        db.session.commit()
        current_app.logger.info(f"[user] password changed user={user.id}")

    @staticmethod
    def set_status(principal: Principal, user_id: int, data: dict) -> User:
        policy.ensure_allowed(principal, policy.USER_SET_STATUS)
        is_active = require_bool(data, "is_active")

        user = _get_user(user_id)
        if user.role == ROLE_ADMIN:
            raise RuleViolationError("Cannot modify admin user status")

        user.is_active = is_active
        db.session.commit()
        current_app.logger.info(f"[user] user={user.id} is_active={is_active} by admin={principal.id}")
        return user

    @staticmethod
    def delete_user(principal: Principal, user_id: int):
        policy.ensure_allowed(principal, policy.USER_DELETE)
        user = _get_user(user_id)

        if user.role == ROLE_ADMIN:
            raise RuleViolationError("Cannot delete admin user")
        if BorrowRepo.count_active_for_user(user.id):
            raise RuleViolationError("Cannot delete user with active borrows")

        UserRepo.delete(user)
        db.session.commit()
        current_app.logger.info(f"[user] deleted user={user_id} by admin={principal.id}")
