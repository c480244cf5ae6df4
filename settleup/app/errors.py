"""
errors.py — AppError base class and error/warning code registries.

Every error returned by the SettleUp API must use a code defined here.
Do not raise strings or generic exceptions from service or route code.

The settlement engine (app/engine/) never raises AppError. It reports
anomalies as plain dicts built with `issue()` using the same code strings,
and the service layer decides which of them become HTTP errors.

Rules:
  - Error codes are a versioned contract. They do not change once published.
  - Error messages are human-readable prose. They may be improved at any time.
"""

from __future__ import annotations


class AppError(Exception):

    def __init__(
            self,
            code: str,
            message: str,
            http_status: int,
            field: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code        = code
        self.message     = message
        self.http_status = http_status
        self.field       = field  # which request field caused the error

    def to_dict(self) -> dict:
        payload = {
            "code":    self.code,
            "message": self.message,
        }
        if self.field is not None:
            payload["field"] = self.field
        return {"error": payload}

    def __repr__(self) -> str:
        return (
            f"AppError(code={self.code!r}, "
            f"http_status={self.http_status}, "
            f"message={self.message!r})"
        )


# ── Error Code Registry ────────────────────────────────────────────────────
#
# Organised by category. HTTP status is indicated in the comment.
#
# IMPORTANT: these are the string values sent in the API response.
# Do not rename them without a major version bump.
# ──────────────────────────────────────────────────────────────────────────

class ErrorCode:

    # ── Schema / Input Errors (400) ────────────────────────────────────────
    MISSING_FIELD              = "MISSING_FIELD"
    INVALID_FIELD              = "INVALID_FIELD"
    INVALID_AMOUNT_PRECISION   = "INVALID_AMOUNT_PRECISION"
    INVALID_STATUS             = "INVALID_STATUS"

    # ── Not Found Errors (404) ─────────────────────────────────────────────
    OBLIGATION_NOT_FOUND       = "OBLIGATION_NOT_FOUND"

    # ── Conflict Errors (409) ──────────────────────────────────────────────
    AGGREGATION_INCONSISTENCY  = "AGGREGATION_INCONSISTENCY"  # conservation failed
    OUTSTANDING_SETTLEMENTS    = "OUTSTANDING_SETTLEMENTS"    # settle-all with a non-empty plan

    # ── Business Rule Violations (422) ────────────────────────────────────
    SELF_OBLIGATION            = "SELF_OBLIGATION"    # debtor == creditor
    SELF_SETTLEMENT            = "SELF_SETTLEMENT"    # payer == payee
    OBLIGATION_DELETED         = "OBLIGATION_DELETED"

    # ── System Errors (500) ────────────────────────────────────────────────
    INTERNAL_ERROR             = "INTERNAL_ERROR"


# ── Warning Code Registry ──────────────────────────────────────────────────
#
# Warnings are returned alongside a 2xx response in the `warnings` array.
# They do not block the request.
# ──────────────────────────────────────────────────────────────────────────

class WarningCode:

    # Obligation skipped by the aggregator: self-obligation, non-positive,
    # unparseable or sub-cent amount. The rest of the group still aggregates.
    INVALID_OBLIGATION   = "INVALID_OBLIGATION"

    # Same obligation id seen twice in one snapshot. Counted once.
    DUPLICATE_OBLIGATION = "DUPLICATE_OBLIGATION"

    # Planner stopped with unsettled magnitude left because only
    # self-pairs remained. The returned plan is partial.
    PLANNING_DEGENERATE  = "PLANNING_DEGENERATE"

    # Aggregation failed closed and the legacy policy treated it as
    # "no settlements needed".
    INCONSISTENCY_IGNORED = "INCONSISTENCY_IGNORED"

    # A confirmed payment exceeded the direct obligations between the two
    # participants; the remainder was booked as a compensating obligation.
    PAYMENT_REMAINDER    = "PAYMENT_REMAINDER"


def issue(code: str, message: str, **details) -> dict:
    """Builds a warning/error entry in the shape used by the `warnings` array."""
    payload = {"code": code, "message": message}
    payload.update(details)
    return payload
