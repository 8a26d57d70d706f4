from datetime import datetime, timedelta

from library_service.extensions import db
from library_service.models.book import Book
from library_service.models.borrow import Borrow
from library_service.models.reservation import Reservation
from library_service.utils.timeutils import utcnow

from conftest import PASSWORD

VALID_ISBN = "9780306406157"


def _book_payload(**overrides):
    payload = {
        "isbn": VALID_ISBN,
        "title": "The Pragmatic Programmer",
        "author": "Andrew Hunt",
        "publisher": "Addison-Wesley",
        "published_year": 1999,
        "category": "Software",
        "total_copies": 2,
    }
    payload.update(overrides)
    return payload


# -----------------------------
# Auth
# -----------------------------
def test_health(client):
    res = client.get("/api/health")
    assert res.status_code == 200
    assert res.get_json()["status"] == "ok"


def test_register_student_gets_student_id_and_token(client):
    res = client.post("/api/auth/register", json={
        "email": "New.Student@Example.com",
        "password": "longenough",
        "first_name": "Ada",
        "last_name": "Lovelace",
        "role": "STUDENT",
    })
    assert res.status_code == 201
    body = res.get_json()
    assert body["token"]
    assert body["user"]["email"] == "new.student@example.com"
    assert body["user"]["role"] == "STUDENT"
    assert body["user"]["student_id"].startswith("C")


def test_register_rejects_admin_role_and_short_password(client):
    res = client.post("/api/auth/register", json={
        "email": "x@example.com", "password": "longenough",
        "first_name": "Xa", "last_name": "Yb", "role": "ADMIN",
    })
    assert res.status_code == 400

    res = client.post("/api/auth/register", json={
        "email": "x@example.com", "password": "short",
        "first_name": "Xa", "last_name": "Yb", "role": "STUDENT",
    })
    assert res.status_code == 400
    assert "8 characters" in res.get_json()["error"]


def test_register_duplicate_email_conflicts(client, student):
    res = client.post("/api/auth/register", json={
        "email": student.email, "password": "longenough",
        "first_name": "Dup", "last_name": "User", "role": "STUDENT",
    })
    assert res.status_code == 409
    assert res.get_json() == {"error": "Email already registered"}


def test_login_and_me(client, student):
    res = client.post("/api/auth/login", json={"email": student.email, "password": PASSWORD})
    assert res.status_code == 200
    token = res.get_json()["token"]

    res = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert res.status_code == 200
    assert res.get_json()["user"]["id"] == student.id


def test_login_rejects_bad_password_and_inactive_user(client, make_user):
    user = make_user()
    res = client.post("/api/auth/login", json={"email": user.email, "password": "wrong-password"})
    assert res.status_code == 401

    inactive = make_user(is_active=False)
    res = client.post("/api/auth/login", json={"email": inactive.email, "password": PASSWORD})
    assert res.status_code == 401
    assert res.get_json() == {"error": "Invalid credentials"}


def test_missing_token_is_401(client):
    res = client.get("/api/borrows")
    assert res.status_code == 401
    assert "error" in res.get_json()


def test_permission_gated_routes_verify_token(client):
    for method, path in [
        ("post", "/api/books"),
        ("get", "/api/borrows/overdue"),
        ("put", "/api/reservations/cleanup-expired"),
        ("get", "/api/users"),
        ("get", "/api/analytics/dashboard"),
    ]:
        res = getattr(client, method)(path)
        assert res.status_code == 401, path
        assert "error" in res.get_json()


def test_deactivated_user_token_is_rejected(client, student, auth_header):
    headers = auth_header(student)
    student.is_active = False
    db.session.commit()

    res = client.get("/api/auth/me", headers=headers)
    assert res.status_code == 401


def test_unknown_route_is_json_404(client):
    res = client.get("/api/nope")
    assert res.status_code == 404
    assert res.get_json() == {"error": "Route not found"}


# -----------------------------
# Books
# -----------------------------
def test_staff_creates_book_with_all_copies_available(client, staff, auth_header):
    res = client.post("/api/books", json=_book_payload(), headers=auth_header(staff))
    assert res.status_code == 201
    body = res.get_json()
    assert body["total_copies"] == 2
    assert body["available_copies"] == 2


def test_student_cannot_create_book(client, student, auth_header):
    res = client.post("/api/books", json=_book_payload(), headers=auth_header(student))
    assert res.status_code == 403
    assert res.get_json() == {"error": "Insufficient permissions"}


def test_create_book_validates_isbn_and_duplicates(client, staff, auth_header):
    headers = auth_header(staff)
    res = client.post("/api/books", json=_book_payload(isbn="123"), headers=headers)
    assert res.status_code == 400

    assert client.post("/api/books", json=_book_payload(), headers=headers).status_code == 201
    res = client.post("/api/books", json=_book_payload(), headers=headers)
    assert res.status_code == 409


def test_list_books_paginates_and_searches(client, make_book):
    for i in range(3):
        make_book(title=f"Dune {i}")
    make_book(title="Foundation")

    res = client.get("/api/books?limit=2&page=1&search=dune")
    assert res.status_code == 200
    body = res.get_json()
    assert len(body["books"]) == 2
    assert body["pagination"] == {"page": 1, "limit": 2, "total": 3, "pages": 2}


def test_get_book_includes_active_borrows(client, student, auth_header, make_book):
    book = make_book(total=2)
    client.post("/api/borrows", json={"book_id": book.id}, headers=auth_header(student))

    res = client.get(f"/api/books/{book.id}")
    assert res.status_code == 200
    body = res.get_json()
    assert len(body["active_borrows"]) == 1
    assert body["active_reservations"] == []


def test_categories(client, make_book):
    make_book(category="Science")
    make_book(category="Art")
    make_book(category="Science")
    assert client.get("/api/books/categories").get_json() == ["Art", "Science"]


def test_update_total_copies_keeps_borrowed_copies_out(client, staff, student, auth_header, make_book):
    book = make_book(total=2)
    client.post("/api/borrows", json={"book_id": book.id}, headers=auth_header(student))

    res = client.put(f"/api/books/{book.id}", json={"total_copies": 5}, headers=auth_header(staff))
    assert res.status_code == 200
    assert res.get_json()["available_copies"] == 4

    res = client.put(f"/api/books/{book.id}", json={"total_copies": 0}, headers=auth_header(staff))
    assert res.status_code == 400


def test_delete_book_with_active_borrow_is_refused(client, staff, student, auth_header, make_book):
    book = make_book(total=1)
    client.post("/api/borrows", json={"book_id": book.id}, headers=auth_header(student))

    res = client.delete(f"/api/books/{book.id}", headers=auth_header(staff))
    assert res.status_code == 400

    free = make_book(total=1)
    res = client.delete(f"/api/books/{free.id}", headers=auth_header(staff))
    assert res.status_code == 200
    assert db.session.get(Book, free.id) is None


# -----------------------------
# Borrows
# -----------------------------
def test_borrow_return_flow(client, student, other_student, staff, auth_header, make_book):
    book = make_book(total=1)

    res = client.post("/api/borrows", json={"book_id": book.id}, headers=auth_header(student))
    assert res.status_code == 201
    borrow_id = res.get_json()["id"]

    res = client.post("/api/borrows", json={"book_id": book.id}, headers=auth_header(other_student))
    assert res.status_code == 400
    assert res.get_json() == {"error": "Book is not available for borrowing"}

    res = client.put(f"/api/borrows/{borrow_id}/return", headers=auth_header(student))
    assert res.status_code == 403

    res = client.put(f"/api/borrows/{borrow_id}/return", headers=auth_header(staff))
    assert res.status_code == 200
    body = res.get_json()
    assert body["status"] == "RETURNED"
    assert body["fine_amount"] is None

    db.session.expire_all()
    assert db.session.get(Book, book.id).available_copies == 1


def test_borrow_requires_book_id(client, student, auth_header):
    res = client.post("/api/borrows", json={}, headers=auth_header(student))
    assert res.status_code == 400
    assert res.get_json() == {"error": "Book ID is required"}


def test_borrow_unknown_book_is_404(client, student, auth_header):
    res = client.post("/api/borrows", json={"book_id": 999}, headers=auth_header(student))
    assert res.status_code == 404


def test_renew_via_api(client, student, auth_header, make_book):
    book = make_book(total=1)
    borrow_id = client.post("/api/borrows", json={"book_id": book.id}, headers=auth_header(student)).get_json()["id"]
    borrow = db.session.get(Borrow, borrow_id)
    borrow.due_date = datetime(2024, 1, 1)
    db.session.commit()

    res = client.put(f"/api/borrows/{borrow_id}/renew", headers=auth_header(student))
    assert res.status_code == 200
    assert res.get_json()["due_date"] == "2024-01-15T00:00:00"
    assert res.get_json()["renewal_count"] == 1


def test_students_only_see_their_own_borrows(client, student, other_student, staff, auth_header, make_book):
    book = make_book(total=3)
    client.post("/api/borrows", json={"book_id": book.id}, headers=auth_header(student))
    client.post("/api/borrows", json={"book_id": book.id}, headers=auth_header(other_student))

    res = client.get(f"/api/borrows?user_id={other_student.id}", headers=auth_header(student))
    borrows = res.get_json()["borrows"]
    assert [b["user_id"] for b in borrows] == [student.id]

    res = client.get("/api/borrows", headers=auth_header(staff))
    assert res.get_json()["pagination"]["total"] == 2


def test_overdue_filter_and_endpoint(client, student, staff, auth_header, make_book):
    book = make_book(total=2)
    borrow_id = client.post("/api/borrows", json={"book_id": book.id}, headers=auth_header(student)).get_json()["id"]
    borrow = db.session.get(Borrow, borrow_id)
    borrow.due_date = utcnow() - timedelta(days=2, hours=3)
    db.session.commit()

    res = client.get("/api/borrows?status=OVERDUE", headers=auth_header(staff))
    assert [b["id"] for b in res.get_json()["borrows"]] == [borrow_id]

    res = client.get("/api/borrows/overdue", headers=auth_header(staff))
    rows = res.get_json()
    assert rows[0]["days_overdue"] == 3
    assert rows[0]["calculated_fine"] == 3.0

    assert client.get("/api/borrows/overdue", headers=auth_header(student)).status_code == 403


def test_invalid_sort_column_is_400(client, student, auth_header):
    res = client.get("/api/borrows?sort_by=password", headers=auth_header(student))
    assert res.status_code == 400


def test_malformed_user_id_filter_is_400(client, staff, auth_header):
    for path in ("/api/borrows?user_id=abc", "/api/reservations?user_id=abc", "/api/borrows?user_id=0"):
        res = client.get(path, headers=auth_header(staff))
        assert res.status_code == 400, path
        assert "user_id" in res.get_json()["error"]


# -----------------------------
# Reservations
# -----------------------------
def test_reservation_flow(client, student, other_student, staff, auth_header, make_book):
    book = make_book(total=1)
    client.post("/api/borrows", json={"book_id": book.id}, headers=auth_header(student))

    res = client.post("/api/reservations", json={"book_id": book.id}, headers=auth_header(other_student))
    assert res.status_code == 201
    reservation_id = res.get_json()["id"]

    res = client.get("/api/reservations", headers=auth_header(other_student))
    assert res.get_json()["pagination"]["total"] == 1

    res = client.delete(f"/api/reservations/{reservation_id}", headers=auth_header(student))
    assert res.status_code == 403

    res = client.delete(f"/api/reservations/{reservation_id}", headers=auth_header(other_student))
    assert res.status_code == 200
    assert client.delete(f"/api/reservations/{reservation_id}",
                         headers=auth_header(other_student)).status_code == 200


def test_reserving_available_book_is_rejected(client, student, auth_header, make_book):
    book = make_book(total=1)
    res = client.post("/api/reservations", json={"book_id": book.id}, headers=auth_header(student))
    assert res.status_code == 400
    assert res.get_json() == {"error": "Book is available, you can borrow it directly"}


def test_cleanup_expired_endpoint(client, student, staff, auth_header, make_book):
    book = make_book(total=1, available=0)
    db.session.add(Reservation(user_id=student.id, book_id=book.id,
                               expiry_date=utcnow() - timedelta(days=1)))
    db.session.commit()

    res = client.get("/api/reservations/expired", headers=auth_header(staff))
    assert len(res.get_json()) == 1

    assert client.put("/api/reservations/cleanup-expired", headers=auth_header(student)).status_code == 403

    res = client.put("/api/reservations/cleanup-expired", headers=auth_header(staff))
    assert res.status_code == 200
    assert res.get_json()["count"] == 1
    assert client.get("/api/reservations/expired", headers=auth_header(staff)).get_json() == []


# -----------------------------
# Users
# -----------------------------
def test_user_listing_is_staff_only(client, student, staff, auth_header):
    assert client.get("/api/users", headers=auth_header(student)).status_code == 403

    res = client.get("/api/users?role=STUDENT", headers=auth_header(staff))
    assert res.status_code == 200
    users = res.get_json()["users"]
    assert [u["id"] for u in users] == [student.id]
    assert users[0]["active_borrows"] == 0


def test_user_profile_access(client, student, other_student, auth_header):
    assert client.get(f"/api/users/{student.id}", headers=auth_header(student)).status_code == 200
    assert client.get(f"/api/users/{student.id}", headers=auth_header(other_student)).status_code == 403


def test_update_profile_email_conflict(client, student, other_student, auth_header):
    res = client.put(f"/api/users/{student.id}", json={"email": other_student.email},
                     headers=auth_header(student))
    assert res.status_code == 409

    res = client.put(f"/api/users/{student.id}", json={"first_name": "Grace"}, headers=auth_header(student))
    assert res.status_code == 200
    assert res.get_json()["first_name"] == "Grace"


def test_change_password(client, student, admin, auth_header):
    res = client.put(f"/api/users/{student.id}/password",
                     json={"current_password": PASSWORD, "new_password": "brand-new-pass"},
                     headers=auth_header(admin))
    assert res.status_code == 403

    res = client.put(f"/api/users/{student.id}/password",
                     json={"current_password": "nope-nope", "new_password": "brand-new-pass"},
                     headers=auth_header(student))
    assert res.status_code == 400

    res = client.put(f"/api/users/{student.id}/password",
                     json={"current_password": PASSWORD, "new_password": "brand-new-pass"},
                     headers=auth_header(student))
    assert res.status_code == 200

    res = client.post("/api/auth/login", json={"email": student.email, "password": "brand-new-pass"})
    assert res.status_code == 200


def test_admin_status_and_delete_rules(client, student, staff, admin, auth_header, make_book):
    res = client.put(f"/api/users/{student.id}/status", json={"is_active": False}, headers=auth_header(staff))
    assert res.status_code == 403

    res = client.put(f"/api/users/{admin.id}/status", json={"is_active": False}, headers=auth_header(admin))
    assert res.status_code == 400

    res = client.put(f"/api/users/{student.id}/status", json={"is_active": "no"}, headers=auth_header(admin))
    assert res.status_code == 400

    book = make_book(total=1)
    client.post("/api/borrows", json={"book_id": book.id}, headers=auth_header(student))
    res = client.delete(f"/api/users/{student.id}", headers=auth_header(admin))
    assert res.status_code == 400
    assert res.get_json() == {"error": "Cannot delete user with active borrows"}

    res = client.delete(f"/api/users/{staff.id}", headers=auth_header(admin))
    assert res.status_code == 200


# -----------------------------
# Analytics
# -----------------------------
def test_analytics_endpoints(client, student, staff, auth_header, make_book):
    popular = make_book(total=2, category="Science")
    make_book(total=1, category="Art")
    client.post("/api/borrows", json={"book_id": popular.id}, headers=auth_header(student))

    assert client.get("/api/analytics/dashboard", headers=auth_header(student)).status_code == 403

    res = client.get("/api/analytics/dashboard", headers=auth_header(staff))
    assert res.status_code == 200
    dash = res.get_json()
    assert dash["total_books"] == 2
    assert dash["borrowed_books"] == 1
    assert dash["available_books"] == 2
    assert dash["active_members"] == 1
    assert dash["popular_books"][0]["id"] == popular.id
    science = next(c for c in dash["category_stats"] if c["category"] == "Science")
    assert science["borrowed_copies"] == 1

    res = client.get("/api/analytics/book-stats", headers=auth_header(staff))
    stats = res.get_json()
    assert stats["never_borrowed_count"] == 1
    assert stats["book_stats"][0]["utilization_rate"] == 50.0

    res = client.get("/api/analytics/user-stats?period=7", headers=auth_header(staff))
    assert res.get_json()["active_users_count"] == 1

    res = client.get("/api/analytics/trends?group_by=month", headers=auth_header(staff))
    assert sum(t["count"] for t in res.get_json()["borrow_trends"]) == 1

    assert client.get("/api/analytics/trends?period=400", headers=auth_header(staff)).status_code == 400
    assert client.get("/api/analytics/trends?group_by=year", headers=auth_header(staff)).status_code == 400


def test_fine_analytics(client, student, staff, auth_header, make_book):
    book = make_book(total=1)
    borrow_id = client.post("/api/borrows", json={"book_id": book.id}, headers=auth_header(student)).get_json()["id"]
    borrow = db.session.get(Borrow, borrow_id)
    borrow.due_date = utcnow() - timedelta(days=1, hours=2)
    db.session.commit()

    returned = client.put(f"/api/borrows/{borrow_id}/return", headers=auth_header(staff)).get_json()
    assert returned["fine_amount"] == 2.0

    res = client.get("/api/analytics/fines", headers=auth_header(staff))
    body = res.get_json()
    assert body["total_fines"] == 2.0
    assert body["total_fine_records"] == 1
    assert body["top_fine_users"][0]["user"]["id"] == student.id
