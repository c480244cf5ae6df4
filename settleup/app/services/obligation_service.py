"""
services/obligation_service.py — Money request storage and the engine's input boundary.

This service owns the `requests` table. It is the collaborator the settlement
engine relies on for its only input:

    fetch_pending_obligations(group_id) → list[Obligation]

which must return non-deleted, pending rows only. Every balance-related read
goes through get_pending_requests(); querying MoneyRequest for balance
purposes without the deleted/pending filters is forbidden.

Layer rules:
  - No Flask imports. No current_app, request, g, or HTTP knowledge.
  - Receives a SQLAlchemy Session as an argument.
  - Commits are the route's responsibility — only flush here.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from settleup.app.engine.records import Obligation, ObligationStatus, Participant
from settleup.app.errors import AppError, ErrorCode
from settleup.app.models.money_request import MoneyRequest

logger = logging.getLogger(__name__)


# ── Private helpers ────────────────────────────────────────────────────────

def _get_request_or_404(obligation_id: int, session: Session) -> MoneyRequest:
    """Returns the MoneyRequest (active or deleted) or raises OBLIGATION_NOT_FOUND (404)."""
    money_request = session.get(MoneyRequest, obligation_id)
    if money_request is None:
        raise AppError(
            ErrorCode.OBLIGATION_NOT_FOUND,
            f"Obligation {obligation_id} does not exist.",
            404,
        )
    return money_request


def _now() -> datetime:
    return datetime.now(timezone.utc)


def to_obligation(money_request: MoneyRequest) -> Obligation:
    """Converts an ORM row into the engine's input record."""
    return Obligation(
        id=money_request.id,
        amount=money_request.amount,
        debtor=Participant(
            id=money_request.request_to_id,
            label=money_request.request_to_label or "",
        ),
        creditor=Participant(
            id=money_request.created_by_id,
            label=money_request.created_by_label or "",
        ),
        status=money_request.status,
    )


# ── Data access helpers ────────────────────────────────────────────────────

def get_pending_requests(
        group_id: str,
        session: Session,
        debtor_id: str | None = None,
        creditor_id: str | None = None,
) -> list[MoneyRequest]:
    """
    Returns pending, non-deleted requests for a group, oldest first.

    Args:
        debtor_id / creditor_id: Optional filters used by the settlement
                                 write-back to find direct obligations
                                 between two participants.
    """
    stmt = (
        select(MoneyRequest)
        .where(
            MoneyRequest.group_id == group_id,
            MoneyRequest.status == ObligationStatus.PENDING,
            MoneyRequest.deleted_at.is_(None),
        )
        .order_by(MoneyRequest.created_at.asc(), MoneyRequest.id.asc())
    )
    if debtor_id is not None:
        stmt = stmt.where(MoneyRequest.request_to_id == debtor_id)
    if creditor_id is not None:
        stmt = stmt.where(MoneyRequest.created_by_id == creditor_id)

    return list(session.execute(stmt).scalars().all())


def fetch_pending_obligations(group_id: str, session: Session) -> list[Obligation]:
    """The settlement engine's input: pending, non-deleted obligations for a group."""
    return [to_obligation(r) for r in get_pending_requests(group_id, session)]


# ── Public service functions ───────────────────────────────────────────────

def create_obligation(group_id: str, data: dict, session: Session) -> MoneyRequest:
    """
    Records a new money request.

    Args:
        data: Validated dict from CreateObligationSchema.

    Raises:
        AppError(SELF_OBLIGATION, 422) — creator and recipient are the same.
    """
    if data["created_by_id"] == data["request_to_id"]:
        raise AppError(
            ErrorCode.SELF_OBLIGATION,
            "A request cannot be sent to its own creator.",
            422,
            field="request_to_id",
        )

    money_request = MoneyRequest(
        group_id=group_id,
        description=data["description"].strip(),
        amount=data["amount"],
        created_by_id=data["created_by_id"],
        created_by_label=data.get("created_by_label", ""),
        request_to_id=data["request_to_id"],
        request_to_label=data.get("request_to_label", ""),
        status=ObligationStatus.PENDING,
    )
    session.add(money_request)
    session.flush()

    logger.info(
        "Recorded request %s in group %s: %s owes %s %s",
        money_request.id, group_id,
        money_request.request_to_id, money_request.created_by_id, money_request.amount,
    )
    return money_request


def list_obligations(
        group_id: str,
        session: Session,
        status: ObligationStatus | None = None,
) -> list[MoneyRequest]:
    """Returns a group's non-deleted requests, newest first, optionally by status."""
    stmt = (
        select(MoneyRequest)
        .where(
            MoneyRequest.group_id == group_id,
            MoneyRequest.deleted_at.is_(None),
        )
        .order_by(MoneyRequest.created_at.desc(), MoneyRequest.id.desc())
    )
    if status is not None:
        stmt = stmt.where(MoneyRequest.status == status)

    return list(session.execute(stmt).scalars().all())


def get_obligation(obligation_id: int, session: Session) -> MoneyRequest:
    """Returns a request, including soft-deleted ones (deleted_at is populated)."""
    return _get_request_or_404(obligation_id, session)


def delete_obligation(obligation_id: int, session: Session) -> MoneyRequest:
    """
    Soft-deletes a request by setting deleted_at = NOW().

    Idempotent: re-deleting an already deleted request is a no-op.
    """
    money_request = _get_request_or_404(obligation_id, session)

    if not money_request.is_deleted:
        money_request.deleted_at = _now()
        session.flush()
        logger.info("Deleted request %s", obligation_id)

    return money_request


def mark_obligation_settled(
        obligation_id: int,
        settled_by: str,
        session: Session,
) -> MoneyRequest:
    """
    Marks one request as settled.

    Idempotent: a request that is already settled keeps its original
    settled_at / settled_by.

    Raises:
        AppError(OBLIGATION_NOT_FOUND, 404)
        AppError(OBLIGATION_DELETED, 422) — deleted requests cannot be settled.
    """
    money_request = _get_request_or_404(obligation_id, session)

    if money_request.is_deleted:
        raise AppError(
            ErrorCode.OBLIGATION_DELETED,
            f"Obligation {obligation_id} has been deleted.",
            422,
        )

    if money_request.is_pending:
        settle_requests([money_request], settled_by, session)

    return money_request


def settle_requests(
        money_requests: list[MoneyRequest],
        settled_by: str,
        session: Session,
) -> list[int]:
    """Flips the given requests to settled and returns their ids."""
    settled_at = _now()
    for money_request in money_requests:
        money_request.status = ObligationStatus.SETTLED
        money_request.settled_at = settled_at
        money_request.settled_by = settled_by
    session.flush()

    ids = [r.id for r in money_requests]
    if ids:
        logger.info("Settled requests %s by %s", ids, settled_by)
    return ids


def delete_group_obligations(group_id: str, session: Session) -> int:
    """
    Soft-deletes every active request in a group (group removal).

    Returns the number of requests deleted.
    """
    stmt = select(MoneyRequest).where(
        MoneyRequest.group_id == group_id,
        MoneyRequest.deleted_at.is_(None),
    )
    rows = list(session.execute(stmt).scalars().all())

    deleted_at = _now()
    for money_request in rows:
        money_request.deleted_at = deleted_at
    session.flush()

    logger.info("Deleted %d requests in group %s", len(rows), group_id)
    return len(rows)
