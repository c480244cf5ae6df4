"""
tests/unit/test_aggregator.py — Unit tests for engine.aggregator.aggregate.

What this file proves:
  - Creditor is credited and debtor debited the full obligation amount
  - Balance sum is always zero for valid input (conservation)
  - Only pending obligations participate; duplicate ids count once
  - Self-obligations, non-positive, unparseable and sub-cent amounts are
    skipped with an INVALID_OBLIGATION warning, never aborting the call
  - Participants that net to zero are dropped
  - A conservation failure fails closed: no balances, AGGREGATION_INCONSISTENCY

Unit test constraints:
  - No database, no Flask. aggregate() takes plain Obligation records.
"""

from __future__ import annotations

from decimal import Decimal
from unittest.mock import patch

from settleup.app.engine import aggregator
from settleup.app.engine.aggregator import _Accumulator, aggregate
from settleup.app.engine.records import Obligation, ObligationStatus, Participant
from settleup.app.errors import ErrorCode, WarningCode


# ── Factory helpers ────────────────────────────────────────────────────────

def _p(pid: str) -> Participant:
    return Participant(id=pid, label=f"{pid.lower()}@example.com")


def _owes(oid, debtor: str, creditor: str, amount, status=ObligationStatus.PENDING) -> Obligation:
    """`debtor` owes `creditor` `amount` (the creditor created the request)."""
    return Obligation(
        id=oid,
        amount=amount,
        debtor=_p(debtor),
        creditor=_p(creditor),
        status=status,
    )


def _nets(result) -> dict[str, Decimal]:
    return {b.participant.id: b.net for b in result.balances}


def _codes(warnings: list[dict]) -> list[str]:
    return [w["code"] for w in warnings]


# ── Basic formula ──────────────────────────────────────────────────────────

def test_creditor_credited_debtor_debited():
    result = aggregate([_owes(1, "A", "B", "40.00")])

    assert result.ok
    assert _nets(result) == {"A": Decimal("-40.00"), "B": Decimal("40.00")}
    assert result.warnings == []


def test_chain_nets_out_middle_participant():
    """C requests 30 from B, B requests 30 from A → A -30, C +30, B dropped."""
    result = aggregate([
        _owes(1, "B", "C", "30"),
        _owes(2, "A", "B", "30"),
    ])

    assert _nets(result) == {"A": Decimal("-30.00"), "C": Decimal("30.00")}


def test_three_way_cycle_produces_no_balances():
    result = aggregate([
        _owes(1, "A", "B", "10"),
        _owes(2, "B", "C", "10"),
        _owes(3, "C", "A", "10"),
    ])

    assert result.ok
    assert result.balances == []


def test_one_debtor_two_creditors():
    result = aggregate([
        _owes(1, "A", "B", "50"),
        _owes(2, "A", "C", "50"),
    ])

    assert _nets(result) == {
        "A": Decimal("-100.00"),
        "B": Decimal("50.00"),
        "C": Decimal("50.00"),
    }


def test_balance_sum_is_zero_for_many_obligations():
    obligations = [
        _owes(1, "A", "B", "12.34"),
        _owes(2, "C", "B", "0.99"),
        _owes(3, "B", "D", "100.01"),
        _owes(4, "D", "A", "45.67"),
        _owes(5, "C", "A", "3.33"),
    ]
    result = aggregate(obligations)

    assert sum((b.net for b in result.balances), Decimal("0.00")) == Decimal("0.00")


def test_balances_are_ordered_by_participant_id():
    result = aggregate([
        _owes(1, "zed", "amy", "5"),
        _owes(2, "mia", "amy", "5"),
    ])

    assert [b.participant.id for b in result.balances] == ["amy", "mia", "zed"]


def test_first_label_seen_wins():
    first = Obligation(id=1, amount="5", debtor=Participant("A", "alice"), creditor=_p("B"))
    second = Obligation(id=2, amount="5", debtor=Participant("A", "Alice Smith"), creditor=_p("C"))

    result = aggregate([first, second])

    labels = {b.participant.id: b.participant.label for b in result.balances}
    assert labels["A"] == "alice"


def test_amounts_are_decimal_with_two_places():
    result = aggregate([_owes(1, "A", "B", 7)])

    for balance in result.balances:
        assert isinstance(balance.net, Decimal)
        assert balance.net.as_tuple().exponent == -2


def test_empty_input():
    result = aggregate([])

    assert result.ok
    assert result.balances == []
    assert result.warnings == []


# ── Filtering ──────────────────────────────────────────────────────────────

def test_settled_obligations_are_ignored():
    result = aggregate([
        _owes(1, "A", "B", "40", status=ObligationStatus.SETTLED),
        _owes(2, "A", "B", "10"),
    ])

    assert _nets(result) == {"A": Decimal("-10.00"), "B": Decimal("10.00")}
    assert result.warnings == []


def test_plain_string_status_is_accepted():
    result = aggregate([
        _owes(1, "A", "B", "40", status="settled"),
        _owes(2, "A", "B", "10", status="pending"),
    ])

    assert _nets(result)["B"] == Decimal("10.00")


def test_duplicate_ids_are_counted_once():
    result = aggregate([
        _owes(7, "A", "B", "25"),
        _owes(7, "A", "B", "25"),
    ])

    assert _nets(result) == {"A": Decimal("-25.00"), "B": Decimal("25.00")}
    assert _codes(result.warnings) == [WarningCode.DUPLICATE_OBLIGATION]
    assert result.warnings[0]["obligation_id"] == 7


# ── Invalid obligations ────────────────────────────────────────────────────

def test_self_obligation_is_skipped_with_warning():
    result = aggregate([
        _owes(1, "A", "A", "99"),
        _owes(2, "A", "B", "10"),
    ])

    assert _nets(result) == {"A": Decimal("-10.00"), "B": Decimal("10.00")}
    assert _codes(result.warnings) == [WarningCode.INVALID_OBLIGATION]
    assert result.warnings[0]["obligation_id"] == 1


def test_non_positive_amounts_are_skipped():
    result = aggregate([
        _owes(1, "A", "B", "0"),
        _owes(2, "A", "B", "-5"),
    ])

    assert result.ok
    assert result.balances == []
    assert _codes(result.warnings) == [WarningCode.INVALID_OBLIGATION] * 2


def test_unparseable_and_nan_amounts_are_skipped():
    result = aggregate([
        _owes(1, "A", "B", "ten dollars"),
        _owes(2, "A", "B", Decimal("NaN")),
        _owes(3, "A", "B", None),
        _owes(4, "C", "D", "1.00"),
    ])

    assert _nets(result) == {"C": Decimal("-1.00"), "D": Decimal("1.00")}
    assert [w["obligation_id"] for w in result.warnings] == [1, 2, 3]


def test_sub_cent_amount_rounds_below_epsilon():
    """A owes B 0.005 → no balances at all."""
    result = aggregate([_owes(1, "A", "B", "0.005")])

    assert result.ok
    assert result.balances == []
    assert _codes(result.warnings) == [WarningCode.INVALID_OBLIGATION]


def test_amount_is_truncated_to_cents():
    result = aggregate([_owes(1, "A", "B", "10.129")])

    assert _nets(result) == {"A": Decimal("-10.12"), "B": Decimal("10.12")}


def test_invalid_obligation_id_still_blocks_later_duplicate():
    """An id is 'seen' even if its record was invalid."""
    result = aggregate([
        _owes(1, "A", "A", "5"),
        _owes(1, "A", "B", "5"),
    ])

    assert result.balances == []
    assert _codes(result.warnings) == [
        WarningCode.INVALID_OBLIGATION,
        WarningCode.DUPLICATE_OBLIGATION,
    ]


# ── Conservation check ─────────────────────────────────────────────────────

@patch("settleup.app.engine.aggregator._accumulate")
def test_conservation_failure_fails_closed(mock_accumulate):
    earlier_warning = {"code": WarningCode.INVALID_OBLIGATION, "message": "skipped"}
    mock_accumulate.return_value = (
        {
            "A": _Accumulator(_p("A"), net_cents=-1000),
            "B": _Accumulator(_p("B"), net_cents=900),
        },
        [earlier_warning],
    )

    result = aggregator.aggregate([_owes(1, "A", "B", "10")])

    assert not result.ok
    assert result.balances == []
    assert result.error["code"] == ErrorCode.AGGREGATION_INCONSISTENCY
    assert result.error["difference"] == "-1.00"
    assert result.warnings == [earlier_warning]


@patch("settleup.app.engine.aggregator._accumulate")
def test_one_cent_gap_is_within_epsilon(mock_accumulate):
    mock_accumulate.return_value = (
        {
            "A": _Accumulator(_p("A"), net_cents=-1000),
            "B": _Accumulator(_p("B"), net_cents=999),
        },
        [],
    )

    result = aggregator.aggregate([])

    assert result.ok
    assert len(result.balances) == 2


def test_input_is_not_mutated_and_result_is_repeatable():
    obligations = [
        _owes(1, "A", "B", "30"),
        _owes(2, "B", "C", "20"),
    ]
    snapshot = list(obligations)

    first = aggregate(obligations)
    second = aggregate(obligations)

    assert obligations == snapshot
    assert first == second


def test_amount_too_large_for_cents_is_skipped_not_raised():
    """One oversized record must not take down the rest of the group."""
    result = aggregate([
        _owes(1, "A", "B", "1e30"),
        _owes(2, "C", "D", "5.00"),
    ])

    assert result.ok
    assert _nets(result) == {"C": Decimal("-5.00"), "D": Decimal("5.00")}
    assert _codes(result.warnings) == [WarningCode.INVALID_OBLIGATION]
    assert result.warnings[0]["obligation_id"] == 1
