import argparse
import csv
import logging
import sys
from decimal import Decimal
from typing import IO, Iterable, List, Optional

from ledger import LedgerEngine
from models import AMOUNT_PRECISION, AccountSnapshot
from record_stream import read_records
from sharded_engine import ShardedLedgerEngine

logger = logging.getLogger(__name__)

OUTPUT_HEADER = ["client", "available", "held", "total", "locked"]


def format_amount(value: Decimal) -> str:
    """Format an amount with exactly 4 decimal places."""
    return f"{value.quantize(AMOUNT_PRECISION):f}"


def write_snapshots(snapshots: Iterable[AccountSnapshot], out: IO[str]) -> None:
    writer = csv.writer(out, lineterminator="\n")
    writer.writerow(OUTPUT_HEADER)
    for snapshot in snapshots:
        writer.writerow([
            snapshot.client_id,
            format_amount(snapshot.available),
            format_amount(snapshot.held),
            format_amount(snapshot.total),
            str(snapshot.locked).lower(),
        ])


def _positive_int(value: str) -> int:
    parsed = int(value)
    if parsed < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {parsed}")
    return parsed


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ledger",
        description="Apply a CSV stream of transactions and print final client balances.",
    )
    parser.add_argument("input", help="path to the transactions CSV file")
    parser.add_argument(
        "--workers",
        type=_positive_int,
        default=1,
        help=(
            "number of client partitions processed in parallel (default: 1, sequential); "
            "with more than one, transaction ids are only checked for uniqueness within a partition"
        ),
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="log level for diagnostics written to stderr",
    )
    return parser


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level),
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )


def run(filepath: str, workers: int = 1) -> List[AccountSnapshot]:
    """Process a CSV file to completion and return the final snapshots."""
    engine = LedgerEngine() if workers == 1 else ShardedLedgerEngine(num_workers=workers)
    engine.process(read_records(filepath))
    return engine.snapshot()


def main(argv: Optional[List[str]] = None, out: Optional[IO[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    try:
        snapshots = run(args.input, workers=args.workers)
    except OSError as e:
        print(f"Error: cannot read {args.input}: {e}", file=sys.stderr)
        return 1

    write_snapshots(snapshots, out if out is not None else sys.stdout)
    return 0


if __name__ == "__main__":
    sys.exit(main())
