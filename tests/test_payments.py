from fastapi.testclient import TestClient

from src.portal.db import DatabaseError
from src.portal.schemas import PaymentCreate


PAYMENT = {
    "fullName": "Priya Sharma",
    "email": "priya@alumni.org",
    "standard": "10",
    "fees": "2500",
    "cardName": "PRIYA SHARMA",
    "cardNumber": "4111 1111 1111 1234",
    "expMonth": "08",
    "expYear": "2029",
    "cvv": "123",
}


def test_save_payment_masks_card_and_drops_cvv(client: TestClient, fake_db) -> None:
    response = client.post("/save-payment", json=PAYMENT)

    assert response.status_code == 201
    assert response.json() == {"message": "Payment saved successfully", "id": 1}

    row = fake_db.tables["payments"][0]
    assert row["card_number"] == "************1234"
    assert "cvv" not in row
    assert "123" not in row.values()
    assert row["full_name"] == "Priya Sharma"
    assert row["exp_year"] == "2029"


def test_numeric_fields_are_accepted(client: TestClient, fake_db) -> None:
    payload = dict(PAYMENT, fees=2500, expMonth=8, expYear=2029)

    response = client.post("/save-payment", json=payload)

    assert response.status_code == 201
    row = fake_db.tables["payments"][0]
    assert row["fees"] == "2500"
    assert row["exp_month"] == "8"


def test_save_payment_failure_is_redacted(client: TestClient, fake_db) -> None:
    fake_db.fail_with = DatabaseError("value too long for type character varying(16)")

    response = client.post("/save-payment", json=PAYMENT)

    assert response.status_code == 500
    body = response.json()
    assert body["error"] == "Error saving payment"
    assert "character varying" not in body["details"]


def test_short_card_numbers_are_fully_masked() -> None:
    assert PaymentCreate(cardNumber="123").masked_card_number() == "***"
    assert PaymentCreate().masked_card_number() is None
