from fastapi.testclient import TestClient

from src.portal.auth_utils import verify_password
from src.portal.db import DatabaseError


SIGNUP = {"firstName": "A", "lastName": "B", "email": "a@x.com", "password": "secret"}


def test_signup_then_login_returns_display_name(client: TestClient) -> None:
    created = client.post("/signup", json=SIGNUP)
    assert created.status_code == 201
    assert created.json() == {"message": "User created successfully"}

    login = client.post("/login", json={"email": "a@x.com", "password": "secret"})
    assert login.status_code == 200
    assert login.json() == {
        "message": "Login successful",
        "userName": "A B",
        "redirectUrl": "/homepage",
    }


def test_signup_stores_hash_not_plaintext(client: TestClient, fake_db) -> None:
    assert client.post("/signup", json=SIGNUP).status_code == 201

    stored = fake_db.tables["users"][0]
    assert stored["password"] != "secret"
    assert verify_password("secret", stored["password"])
    assert stored["first_name"] == "A"
    assert stored["last_name"] == "B"


def test_signup_normalizes_email(client: TestClient, fake_db) -> None:
    payload = dict(SIGNUP, email="Mixed.Case@X.com")
    assert client.post("/signup", json=payload).status_code == 201
    assert fake_db.tables["users"][0]["email"] == "mixed.case@x.com"

    login = client.post("/login", json={"email": "MIXED.case@x.com", "password": "secret"})
    assert login.status_code == 200


def test_duplicate_signup_is_a_conflict(client: TestClient, fake_db) -> None:
    assert client.post("/signup", json=SIGNUP).status_code == 201

    again = client.post("/signup", json=dict(SIGNUP, firstName="Other"))
    assert again.status_code == 409
    assert again.json() == {"error": "Email already registered"}
    assert len(fake_db.tables["users"]) == 1


def test_duplicate_detected_by_constraint_is_a_conflict(client: TestClient, fake_db, monkeypatch) -> None:
    assert client.post("/signup", json=SIGNUP).status_code == 201
    # Simulate a concurrent insert slipping past the pre-insert lookup.
    monkeypatch.setattr(fake_db, "fetch_one", lambda query, params=None: None)

    again = client.post("/signup", json=SIGNUP)
    assert again.status_code == 409
    assert again.json() == {"error": "Email already registered"}


def test_signup_database_failure_is_generic(client: TestClient, fake_db) -> None:
    fake_db.fail_with = DatabaseError("connection reset by peer")

    response = client.post("/signup", json=SIGNUP)
    assert response.status_code == 500
    assert response.json() == {"error": "Error creating user"}


def test_signup_requires_all_fields(client: TestClient) -> None:
    response = client.post("/signup", json={"email": "a@x.com", "password": "secret"})
    assert response.status_code == 422


def test_login_unknown_email(client: TestClient) -> None:
    response = client.post("/login", json={"email": "a@x.com", "password": "secret"})
    assert response.status_code == 401
    assert response.json() == {"error": "Invalid email or password"}


def test_login_wrong_password_indistinguishable_from_unknown_email(client: TestClient) -> None:
    assert client.post("/signup", json=SIGNUP).status_code == 201

    wrong_password = client.post("/login", json={"email": "a@x.com", "password": "not-it"})
    unknown_email = client.post("/login", json={"email": "nobody@x.com", "password": "secret"})

    assert wrong_password.status_code == unknown_email.status_code == 401
    assert wrong_password.json() == unknown_email.json()


def test_login_with_malformed_stored_hash_is_rejected(client: TestClient, fake_db) -> None:
    fake_db.tables["users"].append(
        {"id": 1, "first_name": "A", "last_name": "B", "email": "a@x.com", "password": "plaintext"}
    )

    response = client.post("/login", json={"email": "a@x.com", "password": "plaintext"})
    assert response.status_code == 401
    assert response.json() == {"error": "Invalid email or password"}


def test_login_database_failure(client: TestClient, fake_db) -> None:
    fake_db.fail_with = DatabaseError("timeout")

    response = client.post("/login", json={"email": "a@x.com", "password": "secret"})
    assert response.status_code == 500
    assert response.json() == {"error": "Error during login"}


def test_signup_accepts_intranet_addresses(client: TestClient) -> None:
    for email in ("grad@school.local", "admin@localhost"):
        created = client.post("/signup", json=dict(SIGNUP, email=email))
        assert created.status_code == 201

        login = client.post("/login", json={"email": email, "password": "secret"})
        assert login.status_code == 200
        assert login.json()["userName"] == "A B"
