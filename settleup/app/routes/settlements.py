"""
routes/settlements.py — Settlement plan and write-back route handlers.

Layer rules:
  - Parse, validate, call ONE service, commit, return envelope.
  - No business logic. No DB queries. No bare SQL.

Services return (payload, warnings). Warnings (skipped obligations, partial
plans, payment remainders) ride along in the envelope without changing the
HTTP status: {"data": {...}, "warnings": [{"code": ..., "message": ...}]}.

The inconsistency policy comes from app config and is handed to the service.

Endpoints (base url_prefix=/api/v1/groups):
  GET   /groups/:id/settlements             → 200  balances + payment plan
  POST  /groups/:id/settlements             → 201  confirm one payment
  POST  /groups/:id/settlements/settle-all  → 200  close out a netted group
"""

from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from settleup.app.extensions import db
from settleup.app.schemas.settlement_schema import ConfirmSettlementSchema, SettleAllSchema
from settleup.app.services import settlement_service

settlements_bp = Blueprint("settlements", __name__)


def _policy() -> str:
    return current_app.config["SETTLEMENT_INCONSISTENCY_POLICY"]


@settlements_bp.route("/<string:group_id>/settlements", methods=["GET"])
def get_settlement_plan(group_id: str):
    """
    GET /groups/:id/settlements

    Read-only. Recomputed from the group's pending obligations on every call.
    """
    payload, warnings = settlement_service.get_settlement_plan(
        group_id=group_id,
        session=db.session,
        policy=_policy(),
    )
    return jsonify({"data": payload, "warnings": warnings}), 200


@settlements_bp.route("/<string:group_id>/settlements", methods=["POST"])
def confirm_settlement(group_id: str):
    """POST /groups/:id/settlements — A user confirms "X pays Y amount Z"."""
    data = ConfirmSettlementSchema().load(request.get_json(force=True) or {})
    payload, warnings = settlement_service.mark_obligations_settled(
        group_id=group_id,
        data=data,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": payload, "warnings": warnings}), 201


@settlements_bp.route("/<string:group_id>/settlements/settle-all", methods=["POST"])
def settle_all(group_id: str):
    """POST /groups/:id/settlements/settle-all — Mark everything settled once nothing is owed."""
    data = SettleAllSchema().load(request.get_json(force=True) or {})
    payload, warnings = settlement_service.settle_group(
        group_id=group_id,
        settled_by=data["settled_by"],
        session=db.session,
        policy=_policy(),
    )
    db.session.commit()
    return jsonify({"data": payload, "warnings": warnings}), 200
