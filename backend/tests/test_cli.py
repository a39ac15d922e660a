import json

from shopledger.models import Supplier


class TestLedgerCli:

    def test_supplier_add(self, app, db_session):
        runner = app.test_cli_runner()
        result = runner.invoke(args=["ledger", "supplier-add", "--name", "Acme", "--phone", "0170"])
        assert result.exit_code == 0, result.output
        assert "PASS Created supplier Acme" in result.output
        assert db_session.query(Supplier).count() == 1

    def test_bill_import_and_balance(self, app, supplier, tmp_path):
        bill_file = tmp_path / "bill.json"
        bill_file.write_text(json.dumps({
            "supplier_id": supplier.id,
            "bill_number": "CLI-1",
            "deal_amount_cents": 20000,
            "paid_amount_cents": 5000,
            "lines": [{"barcode": "C1", "name": "Cable", "quantity": 4, "unit_price_cents": 5000}],
        }))

        runner = app.test_cli_runner()
        result = runner.invoke(args=["ledger", "bill-import", str(bill_file)])
        assert result.exit_code == 0, result.output
        assert "PASS Registered bill CLI-1 with 1 line(s)" in result.output

        result = runner.invoke(args=["ledger", "bill-balance", "CLI-1"])
        assert result.exit_code == 0
        assert "Remaining:       15000" in result.output

    def test_bill_balance_unknown(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["ledger", "bill-balance", "NOPE"])
        assert result.exit_code == 1
        assert "FAIL" in result.output

    def test_sequences_and_traces_empty(self, app, db_session):
        runner = app.test_cli_runner()
        assert "No counters yet." in runner.invoke(args=["ledger", "sequences"]).output
        assert "No delete traces found." in runner.invoke(args=["ledger", "traces"]).output
