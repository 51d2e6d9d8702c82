import threading
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_EVEN
from enum import Enum
from typing import Optional

AMOUNT_PRECISION = Decimal("0.0001")
ZERO = Decimal("0.0000")


def to_amount(value) -> Decimal:
    """Quantize a value to the ledger's four fractional digits."""
    return Decimal(value).quantize(AMOUNT_PRECISION, rounding=ROUND_HALF_EVEN)


class TransactionType(Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    DISPUTE = "dispute"
    RESOLVE = "resolve"
    CHARGEBACK = "chargeback"


class DisputeState(Enum):
    NONE = "none"
    DISPUTED = "disputed"
    RESOLVED = "resolved"
    CHARGED_BACK = "charged_back"

    def can_transition_to(self, target: "DisputeState") -> bool:
        return target in _DISPUTE_TRANSITIONS[self]


_DISPUTE_TRANSITIONS = {
    DisputeState.NONE: frozenset({DisputeState.DISPUTED}),
    DisputeState.DISPUTED: frozenset({DisputeState.RESOLVED, DisputeState.CHARGED_BACK}),
    DisputeState.RESOLVED: frozenset(),
    DisputeState.CHARGED_BACK: frozenset(),
}


class ProcessingResult(Enum):
    SUCCESS = "success"
    REJECTED = "rejected"


@dataclass
class Transaction:
    transaction_type: TransactionType
    client_id: int
    transaction_id: int
    amount: Optional[Decimal] = None

    def __repr__(self) -> str:
        return f"Transaction({self.transaction_type.value}, client={self.client_id}, tx={self.transaction_id}, amount={self.amount})"


@dataclass
class LedgerEntry:
    """History record for an accepted deposit or withdrawal, referenced by later disputes."""

    transaction_id: int
    client_id: int
    amount: Decimal
    kind: TransactionType
    dispute_state: DisputeState = DisputeState.NONE

    def advance(self, target: DisputeState) -> None:
        if not self.dispute_state.can_transition_to(target):
            raise ValueError(f"tx {self.transaction_id}: cannot move from {self.dispute_state.value} to {target.value}")
        self.dispute_state = target


@dataclass
class ClientAccount:
    client_id: int
    available: Decimal = ZERO
    held: Decimal = ZERO
    locked: bool = False

    @property
    def total(self) -> Decimal:
        return self.available + self.held

    def credit(self, amount: Decimal) -> None:
        self.available += amount

    def debit(self, amount: Decimal) -> None:
        self.available -= amount

    def hold(self, amount: Decimal) -> None:
        self.available -= amount
        self.held += amount

    def release_hold(self, amount: Decimal) -> None:
        self.held -= amount
        self.available += amount

    def remove_held(self, amount: Decimal) -> None:
        self.held -= amount

    def snapshot(self) -> "AccountSnapshot":
        return AccountSnapshot(
            client_id=self.client_id,
            available=self.available,
            held=self.held,
            total=self.total,
            locked=self.locked,
        )


@dataclass(frozen=True)
class AccountSnapshot:
    client_id: int
    available: Decimal
    held: Decimal
    total: Decimal
    locked: bool


class ProcessingStats:
    """Thread-safe counters for tracking processing statistics."""

    def __init__(self):
        self._lock = threading.Lock()
        self.applied = 0
        self.rejected = 0

    def record(self, result: ProcessingResult) -> None:
        with self._lock:
            if result == ProcessingResult.SUCCESS:
                self.applied += 1
            else:
                self.rejected += 1

    def merge(self, other: "ProcessingStats") -> None:
        with self._lock:
            self.applied += other.applied
            self.rejected += other.rejected

    @property
    def total(self) -> int:
        return self.applied + self.rejected

    def __repr__(self) -> str:
        return f"ProcessingStats(applied={self.applied}, rejected={self.rejected})"
