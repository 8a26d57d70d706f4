from sqlalchemy import or_, update

from library_service.models.book import Book
from library_service.extensions import db


class BookRepo:
    @staticmethod
    def query(search: str = "", category: str = "", status: str = ""):
        q = Book.query
        if search:
            like = f"%{search}%"
            q = q.filter(or_(Book.title.ilike(like), Book.author.ilike(like), Book.isbn.contains(search)))
        if category:
            q = q.filter(Book.category.ilike(f"%{category}%"))
        if status:
            q = q.filter(Book.status == status)
        return q

    @staticmethod
    def get(book_id: int):
        return db.session.get(Book, book_id)

    @staticmethod
    def get_by_isbn(isbn: str):
        return Book.query.filter_by(isbn=isbn).first()

    @staticmethod
    def categories():
        rows = db.session.query(Book.category).distinct().all()
        return sorted(r[0] for r in rows if r[0])

    @staticmethod
    def add(book: Book):
        db.session.add(book)
        return book

    @staticmethod
    def delete(book: Book):
        db.session.delete(book)

    @staticmethod
    def take_copy(book_id: int) -> bool:
        """Decrements available_copies only while a copy is left. False when none was."""
        result = db.session.execute(
            update(Book)
            .where(Book.id == book_id, Book.available_copies > 0)
            .values(available_copies=Book.available_copies - 1)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    @staticmethod
    def put_back_copy(book_id: int) -> bool:
        """Increments available_copies without passing total_copies."""
        result = db.session.execute(
            update(Book)
            .where(Book.id == book_id, Book.available_copies < Book.total_copies)
            .values(available_copies=Book.available_copies + 1)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
