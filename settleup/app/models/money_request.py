"""
models/money_request.py — Money request table definition.

A money request is one obligation: the creator (creditor) asks the
recipient (debtor) for `amount`. The settlement engine only ever sees
pending, non-deleted rows, converted to engine records by
obligation_service.fetch_pending_obligations().

No business logic. No imports from services or routes.

Key design points:
  - `amount` uses Numeric(12, 2) — never Float.
  - Participants are opaque identity-provider ids plus a display label;
    identity management lives outside this service.
  - `deleted_at` is NULL for active rows (soft delete). Deleted rows never
    reach the engine.
  - CHECK(created_by_id <> request_to_id) is the last line of defence
    against self-obligations; the service rejects them first.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, DateTime, Enum, Index, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column

from settleup.app.engine.records import ObligationStatus
from settleup.app.extensions import db


def _enum_values(enum_cls) -> list[str]:
    """Ensure SQLAlchemy stores enum values (e.g. 'pending'), not names ('PENDING')."""
    return [member.value for member in enum_cls]


class MoneyRequest(db.Model):
    __tablename__ = "requests"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_requests_amount_positive"),
        CheckConstraint(
            "LENGTH(TRIM(description)) > 0",
            name="ck_requests_description_nonempty",
        ),
        CheckConstraint(
            "created_by_id <> request_to_id",
            name="ck_requests_no_self_request",
        ),
        # Pending lookups per group drive every settlement plan.
        Index("idx_requests_group_status", "group_id", "status"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    group_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        index=True,
    )

    description: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    # NUMERIC(12, 2). Never Float. Input with >2 decimal places is rejected
    # by the schema (INVALID_AMOUNT_PRECISION), not rounded.
    amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
    )

    # Creditor: the member who created the request and is owed the amount.
    created_by_id: Mapped[str] = mapped_column(String(64), nullable=False)
    created_by_label: Mapped[str] = mapped_column(String(255), nullable=False, default="")

    # Debtor: the member the request was sent to.
    request_to_id: Mapped[str] = mapped_column(String(64), nullable=False)
    request_to_label: Mapped[str] = mapped_column(String(255), nullable=False, default="")

    status: Mapped[ObligationStatus] = mapped_column(
        Enum(
            ObligationStatus,
            # VARCHAR plus CHECK(status IN (...)), same name as in 001_initial_schema.
            name="ck_requests_status_valid",
            native_enum=False,
            create_constraint=True,
            length=16,
            values_callable=_enum_values,
        ),
        nullable=False,
        default=ObligationStatus.PENDING,
        server_default=ObligationStatus.PENDING.value,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    settled_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    settled_by: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
    )

    # NULL = active; NOT NULL = soft-deleted.
    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    @property
    def is_deleted(self) -> bool:
        """True if this request has been soft-deleted."""
        return self.deleted_at is not None

    @property
    def is_pending(self) -> bool:
        return self.status == ObligationStatus.PENDING

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<MoneyRequest id={self.id} "
            f"group_id={self.group_id!r} "
            f"from={self.request_to_id!r} "
            f"to={self.created_by_id!r} "
            f"amount={self.amount} "
            f"status={self.status.value}>"
        )
