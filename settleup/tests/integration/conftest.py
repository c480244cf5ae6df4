"""
tests/integration/conftest.py — Fixtures and helpers for all integration tests.

Design:
  - The app is created once per session using create_app("testing"). The
    testing config points at TEST_DATABASE_URL, which defaults to in-memory
    SQLite; set it to a PostgreSQL URL to run the suite against Postgres.
  - All tables are created once via db.create_all() at session start.
  - Between tests every row is deleted so tests are isolated.

Helper functions (not fixtures) are provided for common operations:
  - make_obligation(client, group_id, debtor, creditor, amount) → obligation dict
  - get_plan(client, group_id)                                  → response JSON
  - confirm_payment(client, group_id, payer, payee, amount)     → HTTP response

These are plain functions (not pytest fixtures) so they can be called with
arbitrary arguments in any test without fixture parameterization overhead.
"""

from __future__ import annotations

import pytest
from sqlalchemy import text

from settleup.app import create_app
from settleup.app.extensions import db as _db


# ═══════════════════════════════════════════════════════════════════════════
# Session-scoped app fixture
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(scope="session")
def app():
    """Creates the Flask application in 'testing' mode once for the session."""
    flask_app = create_app("testing")

    with flask_app.app_context():
        _db.create_all()

    yield flask_app

    with flask_app.app_context():
        _db.drop_all()


# ═══════════════════════════════════════════════════════════════════════════
# Function-scoped test isolation
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(autouse=True)
def clean_tables(app):
    """Deletes every request row after each test."""
    yield

    with app.app_context():
        _db.session.rollback()  # discard any uncommitted state from a failed test
        _db.session.execute(text("DELETE FROM requests"))
        _db.session.commit()


@pytest.fixture
def client(app):
    """Flask test client. Each test gets a fresh client (function-scoped)."""
    return app.test_client()


# ═══════════════════════════════════════════════════════════════════════════
# Shared helper functions (not fixtures)
# ═══════════════════════════════════════════════════════════════════════════

def make_obligation(
        client,
        group_id: str,
        debtor: str,
        creditor: str,
        amount: str,
        description: str = "Dinner",
) -> dict:
    """`creditor` requests `amount` from `debtor`. Asserts 201."""
    resp = client.post(
        f"/api/v1/groups/{group_id}/obligations",
        json={
            "description": description,
            "amount": amount,
            "created_by_id": creditor,
            "created_by_label": f"{creditor}@example.com",
            "request_to_id": debtor,
            "request_to_label": f"{debtor}@example.com",
        },
    )
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()["data"]


def get_plan(client, group_id: str) -> dict:
    resp = client.get(f"/api/v1/groups/{group_id}/settlements")
    assert resp.status_code == 200, resp.get_json()
    return resp.get_json()


def confirm_payment(client, group_id: str, payer: str, payee: str, amount: str):
    return client.post(
        f"/api/v1/groups/{group_id}/settlements",
        json={
            "from_id": payer,
            "to_id": payee,
            "amount": amount,
            "settled_by": payee,
        },
    )
