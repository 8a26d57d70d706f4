import itertools

import pytest
from werkzeug.security import generate_password_hash

from library_service import create_app
from library_service.config import TestConfig
from library_service.extensions import db
from library_service.models.book import Book
from library_service.models.user import User, ROLE_ADMIN, ROLE_STAFF, ROLE_STUDENT
from library_service.services.auth_service import AuthService
from library_service.utils.policy import Principal

PASSWORD = "password123"


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    seq = itertools.count(1)

    def _make(role=ROLE_STUDENT, email=None, is_active=True):
        n = next(seq)
        user = User(
            email=email or f"user{n}@example.com",
            password_hash=generate_password_hash(PASSWORD),
            first_name=f"First{n}",
            last_name=f"Last{n}",
            role=role,
            student_id=f"C24-{n:04d}" if role == ROLE_STUDENT else None,
            is_active=is_active,
        )
        db.session.add(user)
        db.session.commit()
        return user

    return _make


@pytest.fixture
def student(make_user):
    return make_user(ROLE_STUDENT, email="student@example.com")


@pytest.fixture
def other_student(make_user):
    return make_user(ROLE_STUDENT, email="other@example.com")


@pytest.fixture
def staff(make_user):
    return make_user(ROLE_STAFF, email="staff@example.com")


@pytest.fixture
def admin(make_user):
    return make_user(ROLE_ADMIN, email="admin@example.com")


@pytest.fixture
def make_book(app):
    seq = itertools.count(1)

    def _make(total=1, available=None, category="Fiction", title=None):
        n = next(seq)
        book = Book(
            isbn=f"97800000{n:05d}",
            title=title or f"Book {n}",
            author=f"Author {n}",
            publisher="Test Press",
            published_year=2001,
            category=category,
            total_copies=total,
            available_copies=total if available is None else available,
        )
        db.session.add(book)
        db.session.commit()
        return book

    return _make


@pytest.fixture
def auth_header(app):
    def _header(user):
        return {"Authorization": f"Bearer {AuthService.issue_token(user)}"}

    return _header


def as_principal(user) -> Principal:
    return Principal(user.id, user.role)
