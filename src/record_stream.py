import csv
import logging
from decimal import Decimal, InvalidOperation
from typing import Dict, IO, Iterator, Optional

from models import Transaction, TransactionType, to_amount

logger = logging.getLogger(__name__)

MAX_CLIENT_ID = 2**16 - 1
MAX_TRANSACTION_ID = 2**32 - 1

AMOUNT_REQUIRED = frozenset({TransactionType.DEPOSIT, TransactionType.WITHDRAWAL})


class MalformedRecord(ValueError):
    pass


def _parse_id(value: Optional[str], field: str, upper: int) -> int:
    if value is None or value == "":
        raise MalformedRecord(f"missing {field}")
    parsed = int(value)
    if not 0 <= parsed <= upper:
        raise MalformedRecord(f"{field} {parsed} out of range 0..{upper}")
    return parsed


def _parse_amount(value: Optional[str]) -> Optional[Decimal]:
    if not value:
        return None
    amount = Decimal(value)
    if not amount.is_finite():
        raise MalformedRecord(f"non-finite amount {value!r}")
    quantized = to_amount(amount)
    if quantized != amount:
        raise MalformedRecord(f"amount {value!r} has more than 4 fractional digits")
    return quantized


def parse_row(row: Dict[str, Optional[str]]) -> Transaction:
    """
    Parse one CSV row into a Transaction.
    Raises MalformedRecord when the row has the wrong shape, an unknown type or an unusable amount.
    """
    normalized = {
        (k or "").strip().lower(): (v.strip() if isinstance(v, str) else v)
        for k, v in row.items()
    }

    try:
        transaction_type = TransactionType((normalized.get("type") or "").lower())
        client_id = _parse_id(normalized.get("client"), "client", MAX_CLIENT_ID)
        transaction_id = _parse_id(normalized.get("tx"), "tx", MAX_TRANSACTION_ID)
        amount = _parse_amount(normalized.get("amount"))
    except MalformedRecord:
        raise
    except (ValueError, InvalidOperation) as e:
        raise MalformedRecord(str(e)) from e

    if transaction_type in AMOUNT_REQUIRED and amount is None:
        raise MalformedRecord(f"{transaction_type.value} requires an amount")

    return Transaction(
        transaction_type=transaction_type,
        client_id=client_id,
        transaction_id=transaction_id,
        amount=amount if transaction_type in AMOUNT_REQUIRED else None,
    )


def iter_records(stream: IO[str]) -> Iterator[Transaction]:
    """Lazily yield records from an open CSV stream, skipping rows that fail to parse."""
    reader = csv.DictReader(stream, skipinitialspace=True)
    for row in reader:
        try:
            yield parse_row(row)
        except MalformedRecord as e:
            logger.warning(f"Skipping malformed row {reader.line_num}: {e}")


def read_records(filepath: str) -> Iterator[Transaction]:
    """Read transaction records from a CSV file in file order."""
    # utf-8-sig drops a leading byte-order mark; undecodable bytes become U+FFFD so the row fails to parse.
    with open(filepath, "r", encoding="utf-8-sig", errors="replace", newline="") as f:
        yield from iter_records(f)
