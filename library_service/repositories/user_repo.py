from sqlalchemy import or_

from library_service.models.user import User
from library_service.extensions import db


class UserRepo:
    @staticmethod
    def get_by_email(email: str):
        return User.query.filter_by(email=email).first()

    @staticmethod
    def get_by_id(user_id: int):
        return db.session.get(User, user_id)

    @staticmethod
    def student_id_taken(student_id: str) -> bool:
        return User.query.filter_by(student_id=student_id).first() is not None

    @staticmethod
    def query(search: str = "", role: str = "", is_active=None):
        q = User.query
        if search:
            like = f"%{search}%"
            q = q.filter(or_(
                User.first_name.ilike(like),
                User.last_name.ilike(like),
                User.email.ilike(like),
                User.student_id.contains(search),
            ))
        if role:
            q = q.filter(User.role == role)
        if is_active is not None:
            q = q.filter(User.is_active.is_(is_active))
        return q

    @staticmethod
    def add(user: User):
        db.session.add(user)
        return user

    @staticmethod
    def delete(user: User):
        db.session.delete(user)
