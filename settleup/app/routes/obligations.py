"""
routes/obligations.py — Money request route handlers.

Registered at url_prefix=/api/v1 because this blueprint owns BOTH the
group-scoped paths (/groups/:id/obligations) and the obligation-ID paths
(/obligations/:id).

Layer rules:
  - Parse, validate, call ONE service, commit, return envelope.
  - No business logic. No DB queries. No bare SQL.

Endpoints:
  POST   /groups/:id/obligations        → 201  record a money request
  GET    /groups/:id/obligations        → 200  list requests (?status=pending|settled)
  DELETE /groups/:id/obligations        → 200  soft-delete every request in the group
  GET    /obligations/:id               → 200  get one request
  DELETE /obligations/:id               → 200  soft-delete
  POST   /obligations/:id/settle        → 200  mark one request settled
"""

from __future__ import annotations

from flask import Blueprint, jsonify, request

from settleup.app.engine.records import ObligationStatus
from settleup.app.errors import AppError, ErrorCode
from settleup.app.extensions import db
from settleup.app.models.money_request import MoneyRequest
from settleup.app.schemas.obligation_schema import (
    CreateObligationSchema,
    SettleObligationSchema,
)
from settleup.app.services import obligation_service

obligations_bp = Blueprint("obligations", __name__)


# ── Serialization helper ───────────────────────────────────────────────────

def _iso(value):
    return value.isoformat() if value else None


def _serialize_obligation(r: MoneyRequest) -> dict:
    """Converts a MoneyRequest ORM object to a plain dict for JSON output."""
    return {
        "id": r.id,
        "group_id": r.group_id,
        "description": r.description,
        "amount": str(r.amount),  # Decimal → string, never a JS number
        "created_by": {"id": r.created_by_id, "label": r.created_by_label},
        "request_to": {"id": r.request_to_id, "label": r.request_to_label},
        "status": r.status.value,
        "created_at": _iso(r.created_at),
        "settled_at": _iso(r.settled_at),
        "settled_by": r.settled_by,
        "deleted_at": _iso(r.deleted_at),
    }


def _parse_status(raw: str | None) -> ObligationStatus | None:
    if raw is None:
        return None
    try:
        return ObligationStatus(raw)
    except ValueError:
        raise AppError(
            ErrorCode.INVALID_STATUS,
            f"'{raw}' is not a valid status. "
            f"Valid values: {', '.join(s.value for s in ObligationStatus)}.",
            400,
            field="status",
        )


# ── Group-scoped routes ────────────────────────────────────────────────────

@obligations_bp.route("/groups/<string:group_id>/obligations", methods=["POST"])
def create_obligation(group_id: str):
    """POST /groups/:id/obligations — Record a new money request."""
    data = CreateObligationSchema().load(request.get_json(force=True) or {})
    money_request = obligation_service.create_obligation(
        group_id=group_id,
        data=data,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": _serialize_obligation(money_request), "warnings": []}), 201


@obligations_bp.route("/groups/<string:group_id>/obligations", methods=["GET"])
def list_obligations(group_id: str):
    """GET /groups/:id/obligations — Newest first; soft-deleted rows excluded."""
    status = _parse_status(request.args.get("status"))
    rows = obligation_service.list_obligations(
        group_id=group_id,
        session=db.session,
        status=status,
    )
    return jsonify({
        "data": [_serialize_obligation(r) for r in rows],
        "warnings": [],
    }), 200


@obligations_bp.route("/groups/<string:group_id>/obligations", methods=["DELETE"])
def delete_group_obligations(group_id: str):
    """DELETE /groups/:id/obligations — Used when a group is removed."""
    deleted = obligation_service.delete_group_obligations(
        group_id=group_id,
        session=db.session,
    )
    db.session.commit()
    return jsonify({
        "data": {"group_id": group_id, "deleted": deleted},
        "warnings": [],
    }), 200


# ── Obligation-ID routes ───────────────────────────────────────────────────

@obligations_bp.route("/obligations/<int:obligation_id>", methods=["GET"])
def get_obligation(obligation_id: int):
    money_request = obligation_service.get_obligation(obligation_id, db.session)
    return jsonify({"data": _serialize_obligation(money_request), "warnings": []}), 200


@obligations_bp.route("/obligations/<int:obligation_id>", methods=["DELETE"])
def delete_obligation(obligation_id: int):
    """DELETE /obligations/:id — Soft delete. Idempotent."""
    money_request = obligation_service.delete_obligation(obligation_id, db.session)
    db.session.commit()
    return jsonify({"data": _serialize_obligation(money_request), "warnings": []}), 200


@obligations_bp.route("/obligations/<int:obligation_id>/settle", methods=["POST"])
def settle_obligation(obligation_id: int):
    """POST /obligations/:id/settle — Mark one request settled. Idempotent."""
    data = SettleObligationSchema().load(request.get_json(force=True) or {})
    money_request = obligation_service.mark_obligation_settled(
        obligation_id=obligation_id,
        settled_by=data["settled_by"],
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": _serialize_obligation(money_request), "warnings": []}), 200
