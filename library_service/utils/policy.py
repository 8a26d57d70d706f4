"""Capability checks.

Every role decision goes through ``is_allowed(principal, action, resource)``
so handlers and services never compare role strings themselves.
"""
from __future__ import annotations

from library_service.models.user import ELEVATED_ROLES, ROLE_ADMIN, User
from library_service.utils.errors import ForbiddenError

# actions any authenticated user may perform on their own records
BORROW_CREATE = "borrow:create"
BORROW_RENEW = "borrow:renew"
BORROW_VIEW = "borrow:view"
RESERVATION_CREATE = "reservation:create"
RESERVATION_CANCEL = "reservation:cancel"
RESERVATION_VIEW = "reservation:view"
USER_VIEW = "user:view"
USER_UPDATE = "user:update"
USER_CHANGE_PASSWORD = "user:change_password"

# staff/admin only
BORROW_RETURN = "borrow:return"
BORROW_LIST_ALL = "borrow:list_all"
OVERDUE_VIEW = "overdue:view"
RESERVATION_LIST_ALL = "reservation:list_all"
RESERVATION_SWEEP = "reservation:sweep"
BOOK_MANAGE = "book:manage"
USER_LIST = "user:list"
ANALYTICS_VIEW = "analytics:view"

# admin only
USER_SET_STATUS = "user:set_status"
USER_DELETE = "user:delete"

_OWNER_ACTIONS = {
    BORROW_RENEW,
    BORROW_VIEW,
    RESERVATION_CANCEL,
    RESERVATION_VIEW,
    USER_VIEW,
    USER_UPDATE,
}
_SELF_ONLY_ACTIONS = {USER_CHANGE_PASSWORD}
_ANY_USER_ACTIONS = {BORROW_CREATE, RESERVATION_CREATE}
_ELEVATED_ACTIONS = {
    BORROW_RETURN,
    BORROW_LIST_ALL,
    OVERDUE_VIEW,
    RESERVATION_LIST_ALL,
    RESERVATION_SWEEP,
    BOOK_MANAGE,
    USER_LIST,
    ANALYTICS_VIEW,
}
_ADMIN_ACTIONS = {USER_SET_STATUS, USER_DELETE}


class Principal:
    """The authenticated caller: user id and role."""

    __slots__ = ("id", "role")

    def __init__(self, user_id: int, role: str):
        self.id = user_id
        self.role = role

    @property
    def is_elevated(self) -> bool:
        return self.role in ELEVATED_ROLES

    def __repr__(self):
        return f"Principal(id={self.id!r}, role={self.role!r})"


def _owner_id(resource):
    if resource is None:
        return None
    if isinstance(resource, int):
        return resource
    # User rows own themselves; Borrow/Reservation rows carry user_id
    if isinstance(resource, User):
        return resource.id
    return getattr(resource, "user_id", None)


def is_allowed(principal: Principal | None, action: str, resource=None) -> bool:
    if principal is None:
        return False
    if action in _ADMIN_ACTIONS:
        return principal.role == ROLE_ADMIN
    if action in _ELEVATED_ACTIONS:
        return principal.is_elevated
    if action in _ANY_USER_ACTIONS:
        return True
    if action in _SELF_ONLY_ACTIONS:
        return _owner_id(resource) == principal.id
    if action in _OWNER_ACTIONS:
        return principal.is_elevated or _owner_id(resource) == principal.id
    raise KeyError(f"unknown action: {action}")


def ensure_allowed(principal: Principal | None, action: str, resource=None, message: str = "Insufficient permissions"):
    if not is_allowed(principal, action, resource):
        raise ForbiddenError(message)
