"""
schemas/obligation_schema.py — Marshmallow schemas for money request endpoints.

Validation responsibility:
  - This file: field types, lengths, decimal precision, non-blank strings.
  - services/obligation_service.py:
      - SELF_OBLIGATION (422)      — created_by_id == request_to_id
      - OBLIGATION_NOT_FOUND (404) — requires DB lookup
      - OBLIGATION_DELETED (422)   — requires DB lookup

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
"""

from __future__ import annotations

from decimal import Decimal

from marshmallow import Schema, ValidationError, fields, validate

from settleup.app.engine.money import MAX_AMOUNT
from settleup.app.errors import ErrorCode


def _validate_monetary_amount(value: Decimal) -> None:
    """Strictly positive, at most MAX_AMOUNT, at most 2 decimal places. Never rounded."""
    if value <= Decimal("0"):
        raise ValidationError("Amount must be greater than zero.")

    if value > MAX_AMOUNT:
        raise ValidationError(f"Amount must not exceed {MAX_AMOUNT}.")

    if value.as_tuple().exponent < -2:
        raise ValidationError(ErrorCode.INVALID_AMOUNT_PRECISION)


def _validate_non_empty_after_trim(value: str) -> None:
    """
    Raises ValidationError if the string is blank or whitespace only.
    validate.Length(min=1) alone lets "   " through.
    """
    if not value.strip():
        raise ValidationError("This field must not be blank or contain only whitespace.")


class CreateObligationSchema(Schema):
    """
    POST /groups/:id/obligations

    The creator asks the recipient for `amount`: the creator becomes the
    creditor and the recipient the debtor.

    Field rules:
      description      : required, non-empty after trim, max 255 chars
      amount           : required, positive Decimal, max 2 dp
      created_by_id    : required, participant id, max 64 chars
      created_by_label : optional display label (e-mail or name)
      request_to_id    : required, participant id, max 64 chars
      request_to_label : optional display label

    created_by_id == request_to_id is rejected by the service (SELF_OBLIGATION).
    """

    description = fields.Str(
        required=True,
        validate=[validate.Length(min=1, max=255), _validate_non_empty_after_trim],
    )

    amount = fields.Decimal(
        required=True,
        validate=_validate_monetary_amount,
    )

    created_by_id = fields.Str(
        required=True,
        validate=[validate.Length(min=1, max=64), _validate_non_empty_after_trim],
    )
    created_by_label = fields.Str(load_default="", validate=validate.Length(max=255))

    request_to_id = fields.Str(
        required=True,
        validate=[validate.Length(min=1, max=64), _validate_non_empty_after_trim],
    )
    request_to_label = fields.Str(load_default="", validate=validate.Length(max=255))


class SettleObligationSchema(Schema):
    """POST /obligations/:id/settle"""

    settled_by = fields.Str(
        required=True,
        validate=[validate.Length(min=1, max=64), _validate_non_empty_after_trim],
    )
