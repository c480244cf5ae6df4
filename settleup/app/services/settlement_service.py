"""
services/settlement_service.py — Settlement plans and settlement write-backs.

Runs the engine over a group's pending obligations and applies its results:

    fetch pending → aggregate() → plan() → payload for the presentation layer
    user confirms "X pays Y Z" → mark_obligations_settled()
    plan is empty              → settle_group()

The engine itself never writes. Every write to obligation state happens here
(through obligation_service) and only on an explicit caller action.

Inconsistency policy:
  When aggregation fails closed, the outcome depends on the configured
  SETTLEMENT_INCONSISTENCY_POLICY, passed in by the route:
    mark_settled — legacy: treated as "no settlements needed"; an
                   INCONSISTENCY_IGNORED warning is attached and settle-all
                   goes ahead.
    reject       — AppError(AGGREGATION_INCONSISTENCY, 409); nothing changes.

Layer rules:
  - No Flask imports. Pure Python with a SQLAlchemy session parameter.
  - Commits are the route's responsibility — only flush here.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from decimal import Decimal

from sqlalchemy.orm import Session

from settleup.app.engine.aggregator import aggregate
from settleup.app.engine.money import EPSILON_CENTS, format_amount, from_cents, to_cents
from settleup.app.engine.planner import plan
from settleup.app.engine.records import AggregationResult, Obligation, SettlementPlan
from settleup.app.errors import AppError, ErrorCode, WarningCode, issue
from settleup.app.services import obligation_service
from settleup.config import POLICY_MARK_SETTLED, POLICY_REJECT

logger = logging.getLogger(__name__)


# ── Pure pipeline ──────────────────────────────────────────────────────────

def build_plan(obligations: Iterable[Obligation]) -> tuple[AggregationResult, SettlementPlan]:
    """
    aggregate() then plan(), with the aggregator's warnings carried into the plan.

    If aggregation fails closed the planner is not run; the returned plan is
    empty and carries the aggregation error.
    """
    aggregation = aggregate(obligations)
    if not aggregation.ok:
        return aggregation, SettlementPlan(
            warnings=list(aggregation.warnings),
            error=aggregation.error,
        )

    settlement_plan = plan(aggregation.balances)
    settlement_plan.warnings = aggregation.warnings + settlement_plan.warnings
    return aggregation, settlement_plan


def _apply_inconsistency_policy(group_id: str, error: dict, policy: str) -> dict:
    """Raises under the reject policy; otherwise returns the warning to attach."""
    if policy == POLICY_REJECT:
        raise AppError(
            ErrorCode.AGGREGATION_INCONSISTENCY,
            f"Group {group_id} has inconsistent obligations: {error['message']} "
            "Manual reconciliation is required.",
            409,
        )

    logger.warning(
        "Group %s failed the conservation check; treating as settled (%s policy)",
        group_id, POLICY_MARK_SETTLED,
    )
    return issue(
        WarningCode.INCONSISTENCY_IGNORED,
        f"{error['message']} No settlements were computed.",
    )


# ── Public service functions ───────────────────────────────────────────────

def get_settlement_plan(
        group_id: str,
        session: Session,
        policy: str = POLICY_MARK_SETTLED,
) -> tuple[dict, list[dict]]:
    """
    Builds the payload for GET /groups/:id/settlements.

    Returns:
        (payload, warnings). payload holds the non-zero balances, the ordered
        settlement instructions, `balance_sum` (always "0.00" on success) and
        `partial`.

    Raises:
        AppError(AGGREGATION_INCONSISTENCY, 409) — reject policy only.
    """
    obligations = obligation_service.fetch_pending_obligations(group_id, session)
    aggregation, settlement_plan = build_plan(obligations)

    warnings = list(settlement_plan.warnings)
    if settlement_plan.error is not None:
        warnings.append(_apply_inconsistency_policy(group_id, settlement_plan.error, policy))

    balance_sum = from_cents(sum(b.net_cents for b in aggregation.balances))

    payload = {
        "group_id": group_id,
        "balances": [b.to_dict() for b in aggregation.balances],
        "settlements": [s.to_dict() for s in settlement_plan.settlements],
        "balance_sum": str(balance_sum),
        "partial": settlement_plan.partial,
    }
    return payload, warnings


def mark_obligations_settled(
        group_id: str,
        data: dict,
        session: Session,
) -> tuple[dict, list[dict]]:
    """
    Records that `from_id` paid `to_id` `amount`.

    Pending obligations where from_id owes to_id are settled oldest first, as
    long as each one fits entirely in what is left of the payment. A single
    obligation is never partially settled. Whatever is left over (a netted
    payment across the group, or an overpayment) is booked as a compensating
    pending obligation where to_id owes from_id, so every balance stays
    conserved and the next plan accounts for the payment.

    Args:
        data: Validated dict from ConfirmSettlementSchema.

    Raises:
        AppError(SELF_SETTLEMENT, 422) — from_id == to_id.
    """
    payer_id: str = data["from_id"]
    payee_id: str = data["to_id"]
    amount: Decimal = data["amount"]

    if payer_id == payee_id:
        raise AppError(
            ErrorCode.SELF_SETTLEMENT,
            "A settlement cannot be paid to yourself.",
            422,
            field="to_id",
        )

    remaining = to_cents(amount)
    direct = obligation_service.get_pending_requests(
        group_id, session, debtor_id=payer_id, creditor_id=payee_id,
    )

    fitting = []
    for money_request in direct:
        cents = to_cents(money_request.amount)
        if cents <= remaining:
            fitting.append(money_request)
            remaining -= cents

    settled_ids = obligation_service.settle_requests(fitting, data["settled_by"], session)

    warnings: list[dict] = []
    compensating_id = None
    if remaining >= EPSILON_CENTS:
        leftover = from_cents(remaining)
        compensating = obligation_service.create_obligation(
            group_id,
            {
                "description": f"Settlement payment from {data.get('from_label') or payer_id}",
                "amount": leftover,
                "created_by_id": payer_id,
                "created_by_label": data.get("from_label", ""),
                "request_to_id": payee_id,
                "request_to_label": data.get("to_label", ""),
            },
            session,
        )
        compensating_id = compensating.id
        warnings.append(issue(
            WarningCode.PAYMENT_REMAINDER,
            f"{leftover} of the payment did not match a direct obligation and "
            "was recorded as a compensating obligation.",
            obligation_id=compensating_id,
            amount=str(leftover),
        ))

    logger.info(
        "Group %s: %s paid %s %s (settled %s, remainder %s)",
        group_id, payer_id, payee_id, amount, settled_ids, from_cents(remaining),
    )

    payload = {
        "group_id": group_id,
        "from_id": payer_id,
        "to_id": payee_id,
        "amount": format_amount(amount),
        "settled_obligation_ids": settled_ids,
        "compensating_obligation_id": compensating_id,
    }
    return payload, warnings


def settle_group(
        group_id: str,
        settled_by: str,
        session: Session,
        policy: str = POLICY_MARK_SETTLED,
) -> tuple[dict, list[dict]]:
    """
    Marks every pending obligation in the group settled once nothing is owed.

    Allowed when the plan is empty (everything nets to zero), or when
    aggregation failed and the legacy mark_settled policy is configured.

    Raises:
        AppError(OUTSTANDING_SETTLEMENTS, 409)   — payments are still needed.
        AppError(AGGREGATION_INCONSISTENCY, 409) — reject policy only.
    """
    pending = obligation_service.get_pending_requests(group_id, session)
    obligations = [obligation_service.to_obligation(r) for r in pending]
    _, settlement_plan = build_plan(obligations)

    warnings = list(settlement_plan.warnings)
    if settlement_plan.error is not None:
        warnings.append(_apply_inconsistency_policy(group_id, settlement_plan.error, policy))
    elif settlement_plan.settlements or settlement_plan.partial:
        raise AppError(
            ErrorCode.OUTSTANDING_SETTLEMENTS,
            f"Group {group_id} still needs {len(settlement_plan.settlements)} "
            "payment(s) before it can be settled.",
            409,
        )

    settled_ids = obligation_service.settle_requests(pending, settled_by, session)
    payload = {
        "group_id": group_id,
        "settled_obligation_ids": settled_ids,
    }
    return payload, warnings
