from typing import Dict, Iterator, Optional

from models import ClientAccount, AccountSnapshot, LedgerEntry


class AccountStore:
    """
    Owns the mapping from client id to account.
    Accounts are opened implicitly on first reference and live until the run ends.
    """

    def __init__(self):
        self._accounts: Dict[int, ClientAccount] = {}

    def get_or_create(self, client_id: int) -> ClientAccount:
        """Get existing account or create an empty, unlocked one."""
        account = self._accounts.get(client_id)
        if account is None:
            account = ClientAccount(client_id=client_id)
            self._accounts[client_id] = account
        return account

    def snapshot_all(self) -> Iterator[AccountSnapshot]:
        """
        Lazily yield a snapshot of every account, in no particular order.
        Only valid while no records are being applied.
        """
        for account in self._accounts.values():
            yield account.snapshot()

    def __len__(self) -> int:
        return len(self._accounts)

    def __contains__(self, client_id: int) -> bool:
        return client_id in self._accounts


class TransactionHistory:
    """Deposit and withdrawal entries keyed by transaction id, for dispute lookups."""

    def __init__(self):
        self._entries: Dict[int, LedgerEntry] = {}

    def insert(self, entry: LedgerEntry) -> None:
        if entry.transaction_id in self._entries:
            raise KeyError(f"tx {entry.transaction_id} already recorded")
        self._entries[entry.transaction_id] = entry

    def get(self, transaction_id: int) -> Optional[LedgerEntry]:
        return self._entries.get(transaction_id)

    def __contains__(self, transaction_id: int) -> bool:
        return transaction_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)
