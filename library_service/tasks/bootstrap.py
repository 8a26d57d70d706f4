# library_service/tasks/bootstrap.py
import click
from flask import current_app
from flask.cli import with_appcontext

from library_service.extensions import db
from library_service.models.book import Book
from library_service.models.user import ROLE_ADMIN, ROLE_STAFF, ROLE_STUDENT
from library_service.repositories.book_repo import BookRepo
from library_service.repositories.user_repo import UserRepo
from library_service.services.auth_service import AuthService
from library_service.utils.errors import ServiceError

SEED_USERS = [
    (ROLE_ADMIN, {"email": "admin@library.com", "password": "admin123",
                  "first_name": "System", "last_name": "Administrator"}),
    (ROLE_STAFF, {"email": "librarian@library.com", "password": "staff123",
                  "first_name": "Jane", "last_name": "Librarian"}),
    (ROLE_STUDENT, {"email": "student@example.com", "password": "student123",
                    "first_name": "John", "last_name": "Student"}),
]

SEED_BOOKS = [
    {"isbn": "9780134685991", "title": "Effective Java", "author": "Joshua Bloch",
     "publisher": "Addison-Wesley", "published_year": 2018, "category": "Programming",
     "description": "Best practices for the Java platform", "total_copies": 3},
    {"isbn": "9781491950296", "title": "Building Microservices", "author": "Sam Newman",
     "publisher": "O'Reilly Media", "published_year": 2015, "category": "Software Architecture",
     "description": "Designing Fine-Grained Systems", "total_copies": 2},
    {"isbn": "9780596517748", "title": "JavaScript: The Good Parts", "author": "Douglas Crockford",
     "publisher": "O'Reilly Media", "published_year": 2008, "category": "Programming",
     "description": "The definitive guide to JavaScript", "total_copies": 4},
    {"isbn": "9780321127426", "title": "Patterns of Enterprise Application Architecture",
     "author": "Martin Fowler", "publisher": "Addison-Wesley", "published_year": 2002,
     "category": "Software Architecture",
     "description": "A catalog of proven solutions to common design problems", "total_copies": 2},
    {"isbn": "9780134494166", "title": "Clean Code", "author": "Robert C. Martin",
     "publisher": "Prentice Hall", "published_year": 2008, "category": "Programming",
     "description": "A Handbook of Agile Software Craftsmanship", "total_copies": 5},
    {"isbn": "9781449331818", "title": "Learning React", "author": "Alex Banks",
     "publisher": "O'Reilly Media", "published_year": 2017, "category": "Web Development",
     "description": "Modern Patterns for Developing React Apps", "total_copies": 3},
    {"isbn": "9780134052502", "title": "The Clean Coder", "author": "Robert C. Martin",
     "publisher": "Prentice Hall", "published_year": 2011, "category": "Professional Development",
     "description": "A Code of Conduct for Professional Programmers", "total_copies": 2},
    {"isbn": "9781491904244", "title": "You Don't Know JS: Scope & Closures", "author": "Kyle Simpson",
     "publisher": "O'Reilly Media", "published_year": 2014, "category": "Programming",
     "description": "Deep dive into JavaScript core mechanisms", "total_copies": 3},
    {"isbn": "9780596007126", "title": "Head First Design Patterns", "author": "Eric Freeman",
     "publisher": "O'Reilly Media", "published_year": 2004, "category": "Software Design",
     "description": "A Brain-Friendly Guide to Design Patterns", "total_copies": 4},
    {"isbn": "9781449365035", "title": "Speaking JavaScript", "author": "Axel Rauschmayer",
     "publisher": "O'Reilly Media", "published_year": 2014, "category": "Programming",
     "description": "An In-Depth Guide for Programmers", "total_copies": 2},
]


def seed_database():
    """
    Inserts the demo accounts and catalogue.
    - Rows that already exist (same email / ISBN) are left alone, so it can be re-run
    - Returns (users created, books created)
    """
    users = 0
    for role, data in SEED_USERS:
        if UserRepo.get_by_email(data["email"]):
            continue
        AuthService.create_account(data, role)
        users += 1

    books = 0
    for data in SEED_BOOKS:
        if BookRepo.get_by_isbn(data["isbn"]):
            continue
        BookRepo.add(Book(available_copies=data["total_copies"], **data))
        books += 1
    db.session.commit()

    current_app.logger.info(f"[seed] users={users} books={books}")
    return users, books


@click.command("init-db")
@with_appcontext
def init_db_command():
    """Create all tables, indexes and constraints for the current models."""
    db.create_all()
    click.echo("Database tables created.")


@click.command("create-admin")
@click.option("--email", required=True)
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
@click.option("--first-name", default="System", show_default=True)
@click.option("--last-name", default="Administrator", show_default=True)
@with_appcontext
def create_admin_command(email, password, first_name, last_name):
    """Create an ADMIN account (self-registration only offers STUDENT and STAFF)."""
    try:
        user = AuthService.create_account(
            {"email": email, "password": password, "first_name": first_name, "last_name": last_name},
            ROLE_ADMIN,
        )
    except ServiceError as e:
        raise click.ClickException(e.message)
    current_app.logger.info(f"[auth] created admin user={user.id}")
    click.echo(f"Created admin {user.email} (id={user.id}).")


@click.command("seed")
@with_appcontext
def seed_command():
    """Load demo users (admin, librarian, student) and sample books."""
    users, books = seed_database()
    click.echo(f"Seeded {users} user(s) and {books} book(s).")
