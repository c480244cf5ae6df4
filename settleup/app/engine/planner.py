"""
engine/planner.py — Net balances → payment instructions.

Greedy minimum cash flow: repeatedly match the largest debtor with the
largest creditor and transfer the smaller of the two magnitudes. Each round
zeroes at least one side, so N participants produce at most N-1 payments.

Ordering is fully deterministic: both sides are re-sorted every round by
magnitude descending, then participant id ascending. Identical input always
yields an identical plan.

The greedy match is a heuristic. It bounds the number of payments but does
not search for the strict minimum.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from settleup.app.engine.money import EPSILON_CENTS, InvalidAmount, from_cents
from settleup.app.engine.records import (
    Balance,
    Participant,
    Settlement,
    SettlementPlan,
    conservation_gap,
)
from settleup.app.errors import ErrorCode, WarningCode, issue

logger = logging.getLogger(__name__)


@dataclass
class _Side:
    participant: Participant
    cents: int


def _largest_first(side: _Side):
    return (-side.cents, side.participant.id)


def _first_valid_pair(
        debtors: list[_Side],
        creditors: list[_Side],
) -> tuple[_Side, _Side] | None:
    """First debtor × creditor pair, in sorted order, that is not a self-pair."""
    for debtor in debtors:
        for creditor in creditors:
            if debtor.participant.id != creditor.participant.id:
                return debtor, creditor
    return None


def plan(balances: Iterable[Balance]) -> SettlementPlan:
    """
    Produces the settlement plan for a conserved balance set.

    Returns:
        SettlementPlan. `error` is set (and `settlements` empty) when the input
        does not sum to zero or cannot be read as cents. `partial` is set,
        with a PLANNING_DEGENERATE warning, when only self-pairs remain
        before every balance is cleared.
    """
    balances = list(balances)

    try:
        gap = conservation_gap(balances)
    except InvalidAmount as exc:
        logger.error("Refusing to plan unreadable balances: %s", exc)
        return SettlementPlan(
            error=issue(
                ErrorCode.AGGREGATION_INCONSISTENCY,
                f"Net balances cannot be read as cents ({exc}).",
            ),
        )

    if abs(gap) > EPSILON_CENTS:
        logger.error("Refusing to plan unbalanced input (difference %s)", from_cents(gap))
        return SettlementPlan(
            error=issue(
                ErrorCode.AGGREGATION_INCONSISTENCY,
                f"Net balances do not sum to zero (difference {from_cents(gap)}).",
                difference=str(from_cents(gap)),
            ),
        )

    debtors = [
        _Side(b.participant, -b.net_cents)
        for b in balances
        if b.net_cents <= -EPSILON_CENTS
    ]
    creditors = [
        _Side(b.participant, b.net_cents)
        for b in balances
        if b.net_cents >= EPSILON_CENTS
    ]

    settlements: list[Settlement] = []
    warnings: list[dict] = []
    partial = False

    while debtors and creditors:
        debtors.sort(key=_largest_first)
        creditors.sort(key=_largest_first)

        pair = _first_valid_pair(debtors, creditors)
        if pair is None:
            # Only self-pairs left; stop instead of spinning.
            unsettled = from_cents(sum(d.cents for d in debtors))
            logger.warning(
                "Planning stopped with %s unsettled: only self-pairs remain",
                unsettled,
            )
            warnings.append(issue(
                WarningCode.PLANNING_DEGENERATE,
                f"Could not pair the remaining {unsettled} without a self-payment; "
                "the plan is partial.",
                unsettled=str(unsettled),
            ))
            partial = True
            break

        debtor, creditor = pair
        transfer = min(debtor.cents, creditor.cents)
        settlements.append(Settlement(
            from_participant=debtor.participant,
            to_participant=creditor.participant,
            amount=from_cents(transfer),
        ))

        debtor.cents -= transfer
        creditor.cents -= transfer
        debtors = [d for d in debtors if d.cents >= EPSILON_CENTS]
        creditors = [c for c in creditors if c.cents >= EPSILON_CENTS]

    logger.debug(
        "Planned %d settlements for %d balances (partial=%s)",
        len(settlements), len(balances), partial,
    )
    return SettlementPlan(settlements=settlements, warnings=warnings, partial=partial)
