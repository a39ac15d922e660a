"""
Tests for suppliers, bill intake and stock write-offs.
"""

import pytest

from shopledger.models import DeleteTrace, Product, Supplier, SupplierBill
from shopledger.services import supplier_service, trace_service
from shopledger.services.errors import InsufficientStock, MissingReason, RecordNotFound
from shopledger.validation import ConflictError, ValidationError

from conftest import get_line


class TestSuppliers:

    def test_supplier_codes_increase(self, db_session):
        first = supplier_service.create_supplier("First Supplier")
        second = supplier_service.create_supplier("Second Supplier")
        assert (first.supplier_code, second.supplier_code) == (1, 2)
        assert [s.name for s in supplier_service.list_suppliers()] == ["First Supplier", "Second Supplier"]

    def test_name_required(self, db_session):
        with pytest.raises(ValidationError):
            supplier_service.create_supplier("  ")

    def test_cannot_delete_supplier_with_products(self, supplier, bill_b1, db_session):
        with pytest.raises(ConflictError) as excinfo:
            supplier_service.delete_supplier(supplier.id, reason="closing account")
        assert excinfo.value.details["product_count"] == 2
        assert db_session.query(Supplier).count() == 1

    def test_delete_empty_supplier_writes_trace(self, db_session):
        supplier = supplier_service.create_supplier("Short Lived")
        supplier_id = supplier.id

        deleted = supplier_service.delete_supplier(supplier_id, reason="duplicate entry", actor="admin")

        assert deleted["name"] == "Short Lived"
        assert db_session.get(Supplier, supplier_id) is None
        traces = trace_service.list_delete_traces(table_name="suppliers")
        assert [t.id for t in traces] == [deleted["trace_id"]]

    def test_delete_requires_reason(self, supplier):
        with pytest.raises(MissingReason):
            supplier_service.delete_supplier(supplier.id)

    def test_delete_unknown_supplier(self, db_session):
        with pytest.raises(RecordNotFound):
            supplier_service.delete_supplier(999, reason="x")


class TestRegisterBill:

    def test_bill_and_lines_created(self, bill_b1, db_session):
        bill = db_session.query(SupplierBill).filter_by(bill_number="B1").one()
        assert bill.deal_amount_cents == 50000
        assert len(bill.products) == 2

        a = get_line("B1", "A-001")
        assert a.total_price_cents == 10 * 5000
        assert a.bill_number == "B1"
        assert a.to_dict()["deal_amount_cents"] == 50000

    def test_duplicate_bill_number(self, make_bill):
        make_bill("B1")
        with pytest.raises(ConflictError):
            make_bill("B1")

    def test_paid_above_deal_rejected(self, make_bill):
        with pytest.raises(ValidationError):
            make_bill("B1", deal_amount_cents=1000, paid_amount_cents=2000)

    def test_duplicate_barcode_on_bill_rejected(self, make_bill, db_session):
        line = {"barcode": "X", "name": "X", "quantity": 1, "unit_price_cents": 100}
        with pytest.raises(ValidationError):
            make_bill("B1", lines=[line, dict(line)])
        assert db_session.query(Product).count() == 0

    def test_missing_unit_price_falls_back_to_retail(self, make_bill):
        make_bill("B1", lines=[
            {"barcode": "X", "name": "X", "quantity": 3, "retail_price_cents": 400},
        ])
        assert get_line("B1", "X").total_price_cents == 1200

    def test_fractional_quantity_rejected(self, make_bill):
        with pytest.raises(ValidationError):
            make_bill("B1", lines=[{"barcode": "X", "name": "X", "quantity": "2.5", "unit_price_cents": 100}])


class TestDumpProduct:

    def test_dump_decrements_and_traces(self, bill_b1, db_session):
        a = get_line("B1", "A-001")

        product = supplier_service.dump_product(a.id, 3, reason="Water damage", actor="u1")

        assert product.quantity == 7
        assert product.total_price_cents == 7 * 5000
        trace = db_session.query(DeleteTrace).one()
        assert trace.trace_type == "dump_product"
        assert trace.deleted_data["dumped_quantity"] == 3
        assert trace.deleted_data["quantity"] == 10

    def test_dump_more_than_stock(self, bill_b1, db_session):
        a = get_line("B1", "A-001")
        with pytest.raises(InsufficientStock):
            supplier_service.dump_product(a.id, 11, reason="x")
        assert get_line("B1", "A-001").quantity == 10
        assert db_session.query(DeleteTrace).count() == 0

    def test_dump_requires_reason(self, bill_b1):
        a = get_line("B1", "A-001")
        with pytest.raises(MissingReason):
            supplier_service.dump_product(a.id, 1)
