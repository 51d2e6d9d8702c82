import logging
from typing import Iterable, List

from models import (
    AccountSnapshot,
    ClientAccount,
    DisputeState,
    LedgerEntry,
    ProcessingResult,
    ProcessingStats,
    Transaction,
    TransactionType,
)
from state import AccountStore, TransactionHistory

logger = logging.getLogger(__name__)

# Entry kinds that a dispute may open against. Withdrawals are excluded: the
# funds already left the account and there is no counterparty to recall from.
DISPUTABLE_KINDS = frozenset({TransactionType.DEPOSIT})


def is_disputable(entry: LedgerEntry) -> bool:
    return entry.kind in DISPUTABLE_KINDS


class LedgerEngine:
    """
    Applies transaction records to client accounts, one at a time, in arrival order.
    Domain-invalid records are rejected without mutating anything; apply() never raises for them.
    """

    def __init__(self):
        self._accounts = AccountStore()
        self._history = TransactionHistory()

    @property
    def accounts(self) -> AccountStore:
        return self._accounts

    @property
    def history(self) -> TransactionHistory:
        return self._history

    def process(self, records: Iterable[Transaction]) -> ProcessingStats:
        """Apply every record from a single-pass stream until it is exhausted."""
        stats = ProcessingStats()
        for record in records:
            stats.record(self.apply(record))
        logger.info(f"Ledger run complete: applied={stats.applied}, rejected={stats.rejected}")
        return stats

    def snapshot(self) -> List[AccountSnapshot]:
        """Final account states, ordered by client id."""
        return sorted(self._accounts.snapshot_all(), key=lambda s: s.client_id)

    def apply(self, transaction: Transaction) -> ProcessingResult:
        """
        Apply a single record.

        Returns:
            SUCCESS: account state was updated
            REJECTED: the record was ignored (locked account, duplicate id, bad amount,
                insufficient funds, unknown or mismatched reference, invalid dispute state)
        """
        account = self._accounts.get_or_create(transaction.client_id)

        if account.locked:
            logger.info(f"{transaction}: account {account.client_id} is locked, rejecting")
            return ProcessingResult.REJECTED

        match transaction.transaction_type:
            case TransactionType.DEPOSIT:
                return self._handle_deposit(account, transaction)
            case TransactionType.WITHDRAWAL:
                return self._handle_withdrawal(account, transaction)
            case TransactionType.DISPUTE:
                return self._handle_dispute(account, transaction)
            case TransactionType.RESOLVE:
                return self._handle_resolve(account, transaction)
            case TransactionType.CHARGEBACK:
                return self._handle_chargeback(account, transaction)
            case _:
                return ProcessingResult.REJECTED

    def _check_new_funds_movement(self, transaction: Transaction) -> bool:
        if transaction.amount is None or transaction.amount <= 0:
            logger.info(f"{transaction}: invalid amount {transaction.amount}")
            return False

        if transaction.transaction_id in self._history:
            logger.info(f"{transaction}: duplicate transaction id, rejecting")
            return False

        return True

    def _record_entry(self, transaction: Transaction) -> None:
        self._history.insert(LedgerEntry(
            transaction_id=transaction.transaction_id,
            client_id=transaction.client_id,
            amount=transaction.amount,
            kind=transaction.transaction_type,
        ))

    def _handle_deposit(self, account: ClientAccount, transaction: Transaction) -> ProcessingResult:
        if not self._check_new_funds_movement(transaction):
            return ProcessingResult.REJECTED

        account.credit(transaction.amount)
        self._record_entry(transaction)
        return ProcessingResult.SUCCESS

    def _handle_withdrawal(self, account: ClientAccount, transaction: Transaction) -> ProcessingResult:
        if not self._check_new_funds_movement(transaction):
            return ProcessingResult.REJECTED

        if account.available < transaction.amount:
            logger.info(f"{transaction}: insufficient funds (available {account.available})")
            return ProcessingResult.REJECTED

        account.debit(transaction.amount)
        self._record_entry(transaction)
        return ProcessingResult.SUCCESS

    def _find_referenced_entry(self, transaction: Transaction, expected: DisputeState):
        """Look up the entry a dispute-lifecycle record points at, or None if it must be ignored."""
        entry = self._history.get(transaction.transaction_id)

        if entry is None:
            logger.info(f"{transaction}: referenced transaction not found")
            return None

        if entry.client_id != transaction.client_id:
            logger.warning(f"{transaction}: client mismatch (tx belongs to client {entry.client_id})")
            return None

        if entry.dispute_state != expected:
            logger.info(f"{transaction}: transaction is {entry.dispute_state.value}, expected {expected.value}")
            return None

        return entry

    def _handle_dispute(self, account: ClientAccount, transaction: Transaction) -> ProcessingResult:
        entry = self._find_referenced_entry(transaction, DisputeState.NONE)
        if entry is None:
            return ProcessingResult.REJECTED

        if not is_disputable(entry):
            logger.info(f"{transaction}: {entry.kind.value} transactions cannot be disputed")
            return ProcessingResult.REJECTED

        account.hold(entry.amount)
        entry.advance(DisputeState.DISPUTED)
        return ProcessingResult.SUCCESS

    def _handle_resolve(self, account: ClientAccount, transaction: Transaction) -> ProcessingResult:
        entry = self._find_referenced_entry(transaction, DisputeState.DISPUTED)
        if entry is None:
            return ProcessingResult.REJECTED

        account.release_hold(entry.amount)
        entry.advance(DisputeState.RESOLVED)
        return ProcessingResult.SUCCESS

    def _handle_chargeback(self, account: ClientAccount, transaction: Transaction) -> ProcessingResult:
        entry = self._find_referenced_entry(transaction, DisputeState.DISPUTED)
        if entry is None:
            return ProcessingResult.REJECTED

        # Funds leave the system; no counterparty account is credited.
        account.remove_held(entry.amount)
        account.locked = True
        entry.advance(DisputeState.CHARGED_BACK)
        return ProcessingResult.SUCCESS
