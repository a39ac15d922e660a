"""
Tests for checkout, order totals and invoice numbering.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy.exc import SQLAlchemyError

from shopledger.extensions import db
from shopledger.models import Customer, Sale
from shopledger.services import sales_service
from shopledger.services.errors import InsufficientStock, ProductNotFound
from shopledger.services.sales_service import compute_totals, make_invoice_number
from shopledger.services.sequence_service import SALES_COUNTER, peek_value
from shopledger.validation import ValidationError

from conftest import get_line


class TestComputeTotals:

    def test_percent_discount(self):
        totals = compute_totals(
            10000,
            vat_percent=Decimal("5"),
            discount_type="percent",
            discount_value=Decimal("10"),
            shipping_cents=200,
        )
        assert totals.vat_amount_cents == 500
        assert totals.discount_amount_cents == 1000
        assert totals.total_cents == 10000 + 500 + 200 - 1000

    def test_fixed_discount(self):
        totals = compute_totals(10000, vat_percent=Decimal("5"), discount_type="fixed", discount_value=300)
        assert totals.discount_amount_cents == 300
        assert totals.total_cents == 10200

    def test_vat_rounds_half_up_to_cents(self):
        # 333 x 5% = 16.65
        assert compute_totals(333, vat_percent=Decimal("5")).vat_amount_cents == 17
        # 330 x 5% = 16.5
        assert compute_totals(330, vat_percent=Decimal("5")).vat_amount_cents == 17

    def test_discount_larger_than_order_rejected(self):
        with pytest.raises(ValidationError):
            compute_totals(1000, discount_type="fixed", discount_value=1001)

    def test_unknown_discount_type_rejected(self):
        with pytest.raises(ValidationError):
            compute_totals(1000, discount_type="bogus")


class TestInvoiceNumber:

    def test_format(self):
        assert make_invoice_number(datetime(2024, 3, 5, 9, 7), 7) == "05032024-0907-007"

    def test_sequence_wider_than_padding(self):
        assert make_invoice_number(datetime(2024, 12, 31, 23, 59), 1234) == "31122024-2359-1234"


class TestCheckout:

    def test_checkout_decrements_stock_and_records_sale(self, bill_b1):
        product = get_line("B1", "A-001")

        sale = sales_service.checkout(
            [{"product_id": product.id, "quantity": 3}],
            vat_percent=5,
            payment_method="cash",
            staff_id="staff-1",
        )

        line = get_line("B1", "A-001")
        assert line.quantity == 7
        assert line.total_price_cents == 7 * 5000

        assert sale.sale_count == 1
        assert sale.subtotal_cents == 18000
        assert sale.vat_amount_cents == 900
        assert sale.total_cents == 18900
        assert sale.base_paid_cents == 18900
        assert sale.invoice_number.endswith("-001")
        assert len(sale.lines) == 1
        assert sale.lines[0].line_total_cents == 18000

    def test_checkout_by_barcode(self, bill_b1):
        sale = sales_service.checkout([{"barcode": "B-001", "quantity": 2}])
        assert sale.lines[0].barcode == "B-001"
        assert get_line("B1", "B-001").quantity == 6

    def test_lines_for_same_product_are_summed(self, bill_b1):
        product = get_line("B1", "B-001")

        with pytest.raises(InsufficientStock) as excinfo:
            sales_service.checkout([
                {"product_id": product.id, "quantity": 5},
                {"product_id": product.id, "quantity": 4},
            ])

        items = excinfo.value.details["items"]
        assert items == [{
            "product_id": product.id,
            "barcode": "B-001",
            "name": "Product B",
            "requested_quantity": 9,
            "available_quantity": 8,
        }]

    def test_shortfall_writes_nothing(self, bill_b1, db_session):
        a = get_line("B1", "A-001")
        b = get_line("B1", "B-001")

        with pytest.raises(InsufficientStock):
            sales_service.checkout([
                {"product_id": a.id, "quantity": 2},
                {"product_id": b.id, "quantity": 50},
            ])

        assert get_line("B1", "A-001").quantity == 10
        assert get_line("B1", "B-001").quantity == 8
        assert peek_value(SALES_COUNTER) == 0
        assert db_session.query(Sale).count() == 0

    def test_unknown_product_aborts(self, bill_b1, db_session):
        a = get_line("B1", "A-001")

        with pytest.raises(ProductNotFound):
            sales_service.checkout([
                {"product_id": a.id, "quantity": 1},
                {"product_id": 999999, "quantity": 1},
            ])

        assert get_line("B1", "A-001").quantity == 10
        assert db_session.query(Sale).count() == 0

    def test_barcode_on_two_bills_needs_product_id(self, bill_b1, make_bill):
        make_bill("B2", 10000, lines=[
            {"barcode": "A-001", "name": "Product A", "quantity": 4,
             "unit_price_cents": 5000, "retail_price_cents": 6000},
        ])

        with pytest.raises(ValidationError) as excinfo:
            sales_service.checkout([{"barcode": "A-001", "quantity": 1}])
        assert len(excinfo.value.details["product_ids"]) == 2

    def test_invoice_numbers_distinct_and_increasing(self, bill_b1):
        product = get_line("B1", "A-001")
        sales = [
            sales_service.checkout([{"product_id": product.id, "quantity": 1}])
            for _ in range(3)
        ]

        assert [s.sale_count for s in sales] == [1, 2, 3]
        assert len({s.invoice_number for s in sales}) == 3
        assert [s.invoice_number[-3:] for s in sales] == ["001", "002", "003"]

    def test_backdated_sale(self, bill_b1):
        product = get_line("B1", "A-001")
        sale = sales_service.checkout([{"product_id": product.id, "quantity": 1}], sale_date="2024-03-01")

        assert sale.created_at == datetime(2024, 3, 1)
        assert sale.sale_date == datetime(2024, 3, 1)
        assert sale.invoice_number == "01032024-0000-001"

    def test_aware_sale_date_stored_as_utc(self, bill_b1):
        product = get_line("B1", "A-001")
        dhaka = timezone(timedelta(hours=6))

        from_datetime = sales_service.checkout(
            [{"product_id": product.id, "quantity": 1}],
            sale_date=datetime(2026, 1, 1, 23, 30, tzinfo=dhaka),
        )
        from_string = sales_service.checkout(
            [{"product_id": product.id, "quantity": 1}],
            sale_date="2026-01-01T23:30+06:00",
        )

        assert from_datetime.created_at == datetime(2026, 1, 1, 17, 30)
        assert from_datetime.created_at == from_string.created_at
        assert from_datetime.invoice_number == "01012026-1730-001"
        assert from_string.invoice_number == "01012026-1730-002"

    def test_empty_cart_rejected(self, db_session):
        with pytest.raises(ValidationError):
            sales_service.checkout([])

    def test_fractional_quantity_rejected(self, bill_b1):
        product = get_line("B1", "A-001")
        with pytest.raises(ValidationError):
            sales_service.checkout([{"product_id": product.id, "quantity": 1.5}])

    def test_unknown_payment_method_rejected(self, bill_b1):
        product = get_line("B1", "A-001")
        with pytest.raises(ValidationError):
            sales_service.checkout([{"product_id": product.id, "quantity": 1}], payment_method="barter")


class TestDueSales:

    def test_due_sale_requires_customer_number(self, bill_b1):
        product = get_line("B1", "A-001")
        with pytest.raises(ValidationError):
            sales_service.checkout([{"product_id": product.id, "quantity": 1}], payment_method="due_sale")

    def test_due_sale_seeds_base_paid(self, bill_b1):
        product = get_line("B1", "A-001")
        sale = sales_service.checkout(
            [{"product_id": product.id, "quantity": 1}],
            payment_method="due_sale",
            customer_number="01811111111",
            paid_cents=1500,
        )
        assert sale.total_cents == 6000
        assert sale.base_paid_cents == 1500

    def test_due_sale_paid_above_total_rejected(self, bill_b1):
        product = get_line("B1", "A-001")
        with pytest.raises(ValidationError):
            sales_service.checkout(
                [{"product_id": product.id, "quantity": 1}],
                payment_method="due_sale",
                customer_number="01811111111",
                paid_cents=7000,
            )
        assert get_line("B1", "A-001").quantity == 10


class TestCustomerProfile:

    def test_profile_created_and_refreshed(self, bill_b1, db_session):
        product = get_line("B1", "A-001")
        first = sales_service.checkout(
            [{"product_id": product.id, "quantity": 1}],
            customer_name="Rahim",
            customer_number="01811111111",
        )
        second = sales_service.checkout(
            [{"product_id": product.id, "quantity": 1}],
            customer_name="Rahim Uddin",
            customer_number="01811111111",
        )

        customers = db_session.query(Customer).all()
        assert len(customers) == 1
        assert customers[0].customer_name == "Rahim Uddin"
        assert customers[0].last_sale_id == second.id
        assert first.id != second.id

    def test_profile_failure_keeps_sale(self, bill_b1, db_session, monkeypatch):
        product = get_line("B1", "A-001")
        real_commit = db.session.commit
        calls = {"n": 0}

        def flaky_commit():
            calls["n"] += 1
            if calls["n"] == 2:
                raise SQLAlchemyError("customers table unavailable")
            return real_commit()

        monkeypatch.setattr(db.session, "commit", flaky_commit)

        sale = sales_service.checkout(
            [{"product_id": product.id, "quantity": 1}],
            customer_name="Karim",
            customer_number="01922222222",
        )
        monkeypatch.undo()

        assert db_session.query(Sale).filter_by(id=sale.id).count() == 1
        assert db_session.query(Customer).count() == 0
        assert get_line("B1", "A-001").quantity == 9

    def test_name_without_number_creates_no_profile(self, bill_b1, db_session):
        product = get_line("B1", "A-001")

        sale = sales_service.checkout([{"product_id": product.id, "quantity": 1}], customer_name="Walk-in")

        assert sale.customer_name == "Walk-in"
        assert db_session.query(Customer).count() == 0
