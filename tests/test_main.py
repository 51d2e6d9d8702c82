import sys
import os
import io
from decimal import Decimal

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from main import build_parser, format_amount, main, write_snapshots
from models import AccountSnapshot


class TestFormatAmount:
    def test_four_places(self):
        assert format_amount(Decimal("1.5")) == "1.5000"
        assert format_amount(Decimal("0")) == "0.0000"
        assert format_amount(Decimal("-30")) == "-30.0000"
        assert format_amount(Decimal("2.12345")) == "2.1234"

    def test_no_exponent(self):
        assert format_amount(Decimal("1E+3")) == "1000.0000"


class TestWriteSnapshots:
    def test_rows(self):
        out = io.StringIO()
        write_snapshots([
            AccountSnapshot(1, Decimal("1.5"), Decimal("0"), Decimal("1.5"), False),
            AccountSnapshot(2, Decimal("0"), Decimal("0"), Decimal("0"), True),
        ], out)
        assert out.getvalue() == (
            "client,available,held,total,locked\n"
            "1,1.5000,0.0000,1.5000,false\n"
            "2,0.0000,0.0000,0.0000,true\n"
        )


class TestParser:
    def test_defaults(self):
        args = build_parser().parse_args(["input.csv"])
        assert args.input == "input.csv"
        assert args.workers == 1
        assert args.log_level == "WARNING"

    def test_workers_must_be_positive(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["input.csv", "--workers", "0"])


class TestMain:
    def write_input(self, tmp_path):
        csv_file = tmp_path / "transactions.csv"
        csv_file.write_text('\n'.join([
            "type, client, tx, amount",
            "deposit, 2, 1, 2.0",
            "deposit, 1, 2, 1.0",
            "deposit, 1, 3, 2.0",
            "withdrawal, 1, 4, 1.5",
            "withdrawal, 2, 5, 3.0",
        ]))
        return csv_file

    def test_end_to_end(self, tmp_path):
        out = io.StringIO()
        assert main([str(self.write_input(tmp_path))], out=out) == 0
        assert out.getvalue() == (
            "client,available,held,total,locked\n"
            "1,1.5000,0.0000,1.5000,false\n"
            "2,2.0000,0.0000,2.0000,false\n"
        )

    def test_end_to_end_sharded(self, tmp_path):
        # Holds because every transaction id in the input is unique across clients.
        sequential, sharded = io.StringIO(), io.StringIO()
        csv_file = str(self.write_input(tmp_path))
        main([csv_file], out=sequential)
        main([csv_file, "--workers", "4"], out=sharded)
        assert sharded.getvalue() == sequential.getvalue()

    def test_missing_file(self, tmp_path, capsys):
        out = io.StringIO()
        assert main([str(tmp_path / "nope.csv")], out=out) == 1
        assert out.getvalue() == ""
        assert "cannot read" in capsys.readouterr().err

    def test_invalid_utf8_row_skipped(self, tmp_path):
        csv_file = tmp_path / "transactions.csv"
        csv_file.write_bytes(b"\n".join([
            b"type,client,tx,amount",
            b"deposit,1,1,10.0",
            b"dep\xffosit,1,2,1.0",
            b"deposit,2,3,5.0",
        ]))

        out = io.StringIO()
        assert main([str(csv_file)], out=out) == 0
        assert out.getvalue() == (
            "client,available,held,total,locked\n"
            "1,10.0000,0.0000,10.0000,false\n"
            "2,5.0000,0.0000,5.0000,false\n"
        )
