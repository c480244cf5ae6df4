"""
engine/aggregator.py — Pending obligations → one net balance per participant.

This module is the single place where balances are computed. It is a pure
function of its input: no Flask, no session, no writes. Callers re-run it
from raw pending obligations every time; balances are never persisted and
fed back in.

Algorithm:
  1. Keep pending obligations only; count each obligation id once.
  2. Skip (and report) self-obligations and amounts that are not a positive
     number of whole cents.
  3. Credit the creditor and debit the debtor in integer cents.
  4. Drop participants whose net is below one cent.
  5. Check conservation. On failure return no balances and an
     AGGREGATION_INCONSISTENCY error, never a partial balance set.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from settleup.app.engine.money import (
    EPSILON_CENTS,
    InvalidAmount,
    from_cents,
    to_cents,
    to_decimal,
)
from settleup.app.engine.records import (
    AggregationResult,
    Balance,
    Obligation,
    Participant,
    conservation_gap,
)
from settleup.app.errors import ErrorCode, WarningCode, issue

logger = logging.getLogger(__name__)


@dataclass
class _Accumulator:
    participant: Participant
    net_cents: int = 0


def _invalid(obligation: Obligation, reason: str) -> dict:
    logger.warning("Skipping obligation %r: %s", obligation.id, reason)
    return issue(
        WarningCode.INVALID_OBLIGATION,
        reason,
        obligation_id=obligation.id,
    )


def _amount_cents(obligation: Obligation) -> tuple[int | None, dict | None]:
    """Returns (cents, None) for a usable amount, else (None, warning)."""
    try:
        amount = to_decimal(obligation.amount)
        cents = to_cents(amount)
    except InvalidAmount as exc:
        return None, _invalid(obligation, str(exc))

    if amount <= 0:
        return None, _invalid(obligation, "Amount must be greater than zero.")

    if cents < EPSILON_CENTS:
        return None, _invalid(obligation, f"Amount {amount} is below 0.01.")

    return cents, None


def _accumulate(
        obligations: Iterable[Obligation],
) -> tuple[dict[str, _Accumulator], list[dict]]:
    """Folds obligations into per-participant accumulators keyed by id."""
    accumulators: dict[str, _Accumulator] = {}
    warnings: list[dict] = []
    seen_ids: set = set()

    for obligation in obligations:
        if not obligation.is_pending:
            continue

        if obligation.id in seen_ids:
            warnings.append(issue(
                WarningCode.DUPLICATE_OBLIGATION,
                f"Obligation {obligation.id} appears more than once; counted once.",
                obligation_id=obligation.id,
            ))
            continue
        seen_ids.add(obligation.id)

        if obligation.debtor.id == obligation.creditor.id:
            warnings.append(_invalid(
                obligation,
                "Debtor and creditor are the same participant.",
            ))
            continue

        cents, warning = _amount_cents(obligation)
        if warning is not None:
            warnings.append(warning)
            continue

        # First label seen for an id wins.
        creditor = accumulators.setdefault(
            obligation.creditor.id, _Accumulator(obligation.creditor)
        )
        debtor = accumulators.setdefault(
            obligation.debtor.id, _Accumulator(obligation.debtor)
        )
        creditor.net_cents += cents
        debtor.net_cents -= cents

    return accumulators, warnings


def _unsettled_balances(accumulators: dict[str, _Accumulator]) -> list[Balance]:
    """Balances with |net| >= 0.01, ordered by participant id."""
    return [
        Balance(participant=acc.participant, net=from_cents(acc.net_cents))
        for _, acc in sorted(accumulators.items())
        if abs(acc.net_cents) >= EPSILON_CENTS
    ]


def aggregate(obligations: Iterable[Obligation]) -> AggregationResult:
    """
    Reduces obligations to net balances.

    Returns:
        AggregationResult with `balances` summing to zero and any skipped
        records in `warnings`. If conservation fails, `balances` is empty and
        `error` carries AGGREGATION_INCONSISTENCY.
    """
    accumulators, warnings = _accumulate(obligations)
    balances = _unsettled_balances(accumulators)

    gap = conservation_gap(balances)
    if abs(gap) > EPSILON_CENTS:
        logger.error(
            "Conservation check failed: credits and debts differ by %s "
            "across %d participants",
            from_cents(gap), len(balances),
        )
        return AggregationResult(
            balances=[],
            warnings=warnings,
            error=issue(
                ErrorCode.AGGREGATION_INCONSISTENCY,
                f"Net balances do not sum to zero (difference {from_cents(gap)}).",
                difference=str(from_cents(gap)),
            ),
        )

    logger.debug(
        "Aggregated %d participants with %d warnings",
        len(balances), len(warnings),
    )
    return AggregationResult(balances=balances, warnings=warnings)
