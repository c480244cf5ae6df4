"""
schemas/settlement_schema.py — Marshmallow schemas for settlement endpoints.

Validation responsibility:
  - This file: field types, lengths, decimal precision, positive amount.
  - services/settlement_service.py:
      - SELF_SETTLEMENT (422)            — from_id == to_id
      - AGGREGATION_INCONSISTENCY (409)  — requires the group's pending set
      - OUTSTANDING_SETTLEMENTS (409)    — requires a computed plan

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
           See extensions.py for the full explanation.
"""

from __future__ import annotations

from decimal import Decimal

from marshmallow import Schema, ValidationError, fields, validate

from settleup.app.engine.money import MAX_AMOUNT
from settleup.app.errors import ErrorCode


# ── Shared validators ──────────────────────────────────────────────────────
#
# Identical logic to the validators in obligation_schema.py. Kept here so
# each schema file stays self-contained.
# ──────────────────────────────────────────────────────────────────────────

def _validate_monetary_amount(value: Decimal) -> None:
    """
    Validates a monetary Decimal value:
      - Must be strictly greater than zero.
      - Must not exceed MAX_AMOUNT (the NUMERIC(12, 2) column limit).
      - Must have at most 2 decimal places.

    Input with more than 2 decimal places is REJECTED (INVALID_AMOUNT_PRECISION)
    — never rounded. This matches the DB column type NUMERIC(12, 2).
    """
    if value <= Decimal("0"):
        raise ValidationError("Amount must be greater than zero.")

    if value > MAX_AMOUNT:
        raise ValidationError(f"Amount must not exceed {MAX_AMOUNT}.")

    # Decimal("10.123").as_tuple().exponent == -3 → 3 dp → REJECT
    if value.as_tuple().exponent < -2:
        raise ValidationError(ErrorCode.INVALID_AMOUNT_PRECISION)


def _validate_non_empty_after_trim(value: str) -> None:
    if not value.strip():
        raise ValidationError("This field must not be blank or contain only whitespace.")


_participant_id = dict(
    required=True,
    validate=[validate.Length(min=1, max=64), _validate_non_empty_after_trim],
)


# ── Schemas ────────────────────────────────────────────────────────────────

class ConfirmSettlementSchema(Schema):
    """
    POST /groups/:id/settlements

    Confirms that one planned payment happened: `from_id` paid `to_id`
    `amount`. The service marks the matching pending obligations settled.

    Field rules:
      from_id    : required, participant id of the payer
      to_id      : required, participant id of the payee
      amount     : required, positive Decimal, max 2 decimal places
      settled_by : required, participant id of whoever confirmed the payment
      from_label / to_label : optional display labels, used if a
                              compensating obligation has to be recorded
    """

    from_id = fields.Str(**_participant_id)
    to_id = fields.Str(**_participant_id)
    from_label = fields.Str(load_default="", validate=validate.Length(max=255))
    to_label = fields.Str(load_default="", validate=validate.Length(max=255))

    amount = fields.Decimal(
        required=True,
        validate=_validate_monetary_amount,
    )

    settled_by = fields.Str(**_participant_id)


class SettleAllSchema(Schema):
    """POST /groups/:id/settlements/settle-all"""

    settled_by = fields.Str(**_participant_id)
