"""
engine/records.py — Value types flowing through the settlement engine.

    Obligation[] → aggregate() → AggregationResult.balances
                 → plan()      → SettlementPlan.settlements

Everything here is an in-memory value with no identity beyond a single
computation. Nothing in this module knows about Flask or SQLAlchemy; the
service layer converts ORM rows into Obligation records before calling in.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from settleup.app.engine.money import from_cents, to_cents


class ObligationStatus(str, enum.Enum):
    PENDING = "pending"
    SETTLED = "settled"


@dataclass(frozen=True)
class Participant:
    """A group member as the engine sees it: opaque id plus display label."""

    id: str
    label: str = ""

    @property
    def display_name(self) -> str:
        return self.label or self.id


@dataclass(frozen=True)
class Obligation:
    """
    One recorded debt: `debtor` owes `creditor` `amount`.

    `amount` is kept as the caller supplied it (Decimal, str, int); the
    aggregator parses it so a malformed amount becomes a warning instead of a
    crash at construction time.
    """

    id: Any
    amount: Any
    debtor: Participant
    creditor: Participant
    status: ObligationStatus | str = ObligationStatus.PENDING

    @property
    def is_pending(self) -> bool:
        return self.status == ObligationStatus.PENDING


@dataclass(frozen=True)
class Balance:
    """Net position of one participant. Positive: is owed. Negative: owes."""

    participant: Participant
    net: Decimal

    @property
    def net_cents(self) -> int:
        return to_cents(self.net)

    def to_dict(self) -> dict:
        return {
            "participant_id": self.participant.id,
            "label": self.participant.display_name,
            "balance": str(from_cents(self.net_cents)),
        }


@dataclass(frozen=True)
class Settlement:
    """One payment instruction: `from_participant` pays `to_participant`."""

    from_participant: Participant
    to_participant: Participant
    amount: Decimal

    def to_dict(self) -> dict:
        return {
            "from_id": self.from_participant.id,
            "from_label": self.from_participant.display_name,
            "to_id": self.to_participant.id,
            "to_label": self.to_participant.display_name,
            "amount": str(self.amount),
        }


def conservation_gap(balances: list[Balance]) -> int:
    """
    Total credit minus total debt, in cents.

    Every obligation adds +amount to one participant and -amount to another,
    so a consistent balance set has a gap of zero.
    """
    credit = sum(b.net_cents for b in balances if b.net_cents > 0)
    debt = sum(-b.net_cents for b in balances if b.net_cents < 0)
    return credit - debt


@dataclass
class AggregationResult:
    balances: list[Balance] = field(default_factory=list)
    warnings: list[dict] = field(default_factory=list)
    error: dict | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class SettlementPlan:
    settlements: list[Settlement] = field(default_factory=list)
    warnings: list[dict] = field(default_factory=list)
    error: dict | None = None
    partial: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None
