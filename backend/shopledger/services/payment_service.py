"""
Payment Allocator

Supplier-bill payments and customer-due payments share one design:

    paid      = base_paid + sum(payment log amounts)
    remaining = owed - paid

`owed` is the bill's deal amount (supplier side) or the sale total (customer
side). `base_paid` is the seed stored once per bill / sale. Balances are
recomputed from the full log on every read and never cached on a mutable row,
so an edited payment shows up in the next read without any reconciliation.

Each payment row also stores the remaining balance as it was when the row was
written. That snapshot is historical; list views additionally carry a
`remaining_cents` replayed from the log in chronological order.
"""

from __future__ import annotations

from typing import Any

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import (
    Customer,
    CustomerPaymentAllocation,
    CustomerTransaction,
    Sale,
    SupplierBill,
    SupplierTransaction,
)
from ..validation import (
    ValidationError,
    MAX_AMOUNT_CENTS,
    optional_datetime,
    optional_text,
    require_int,
    require_text,
)
from shopledger.time_utils import utcnow
from .concurrency import run_in_transaction
from .errors import InvalidPaymentAmount, RecordNotFound, require_reason
from .sales_service import PAYMENT_DUE_SALE
from .trace_service import write_delete_trace


def _payment_amount(value: Any, field: str = "amount_cents") -> int:
    """Integer cents; zero or negative is a payment error, not an input error."""
    amount = require_int(value, field, maximum=MAX_AMOUNT_CENTS)
    if amount <= 0:
        raise InvalidPaymentAmount(f"{field} must be greater than zero", details={field: amount})
    return amount


# --------------------------------------------------------------------------
# Supplier bills
# --------------------------------------------------------------------------

def _get_bill(bill_number: str) -> SupplierBill:
    bill = db.session.query(SupplierBill).filter_by(bill_number=bill_number).first()
    if not bill:
        raise RecordNotFound(f"Bill {bill_number} not found", details={"bill_number": bill_number})
    return bill


def _bill_transactions_total(bill: SupplierBill) -> int:
    total = (
        db.session.query(func.coalesce(func.sum(SupplierTransaction.amount_cents), 0))
        .filter(SupplierTransaction.bill_id == bill.id)
        .scalar()
    )
    return int(total or 0)


def _bill_balance(bill: SupplierBill) -> dict:
    transactions_total = _bill_transactions_total(bill)
    paid = bill.base_paid_amount_cents + transactions_total
    return {
        "bill_number": bill.bill_number,
        "supplier_id": bill.supplier_id,
        "deal_amount_cents": bill.deal_amount_cents,
        "base_paid_amount_cents": bill.base_paid_amount_cents,
        "transactions_total_cents": transactions_total,
        "paid_amount_cents": paid,
        "remaining_cents": bill.deal_amount_cents - paid,
    }


def get_bill_balance(bill_number: str) -> dict:
    return _bill_balance(_get_bill(bill_number))


def record_supplier_payment(
    bill_number: Any,
    amount_cents: Any,
    method: Any,
    reference: Any = None,
    paid_at: Any = None,
    actor: str | None = None,
) -> SupplierTransaction:
    """Append one payment against a bill; 0 < amount <= remaining."""
    bill_number = require_text(bill_number, "bill_number", max_length=64)
    amount = _payment_amount(amount_cents)
    method = require_text(method, "payment_method", max_length=32)
    reference = optional_text(reference, "reference", max_length=128)
    paid_at = optional_datetime(paid_at, "paid_at") or utcnow()

    def _op() -> SupplierTransaction:
        bill = _get_bill(bill_number)
        remaining = _bill_balance(bill)["remaining_cents"]
        if amount > remaining:
            raise InvalidPaymentAmount(
                "Payment exceeds remaining amount",
                details={"amount_cents": amount, "remaining_cents": remaining, "bill_number": bill_number},
            )

        txn = SupplierTransaction(
            bill_id=bill.id,
            bill_number=bill.bill_number,
            amount_cents=amount,
            payment_method=method,
            reference=reference,
            paid_at=paid_at,
            remaining_snapshot_cents=remaining - amount,
            created_by=actor,
        )
        db.session.add(txn)
        db.session.flush()
        return txn

    txn = run_in_transaction(_op, label="record_supplier_payment")
    current_app.logger.info("Supplier payment %s: %d cents on bill %s", txn.id, txn.amount_cents, txn.bill_number)
    return txn


def edit_supplier_payment(
    transaction_id: int,
    amount_cents: Any = None,
    method: Any = None,
    reference: Any = None,
) -> SupplierTransaction:
    """
    Correct amount, payment method or reference of a recorded payment.

    Other rows' snapshots are left alone; the live balance reflects the edit
    on the next read.
    """
    new_amount = _payment_amount(amount_cents) if amount_cents is not None else None
    new_method = require_text(method, "payment_method", max_length=32) if method is not None else None
    new_reference = optional_text(reference, "reference", max_length=128) if reference is not None else None
    if new_amount is None and new_method is None and reference is None:
        raise ValidationError("Nothing to update: amount_cents, payment_method or reference is required")

    def _op() -> SupplierTransaction:
        txn = db.session.get(SupplierTransaction, transaction_id)
        if not txn:
            raise RecordNotFound(
                f"Supplier payment {transaction_id} not found",
                details={"transaction_id": transaction_id},
            )

        if new_amount is not None and new_amount != txn.amount_cents:
            remaining = _bill_balance(txn.bill)["remaining_cents"]
            after = remaining + txn.amount_cents - new_amount
            # Lowering an amount is always allowed, even on a bill a later
            # reduction has already left overpaid.
            if new_amount > txn.amount_cents and after < 0:
                raise InvalidPaymentAmount(
                    "Edited amount would overpay the bill",
                    details={
                        "amount_cents": new_amount,
                        "max_amount_cents": remaining + txn.amount_cents,
                        "bill_number": txn.bill_number,
                    },
                )
            txn.amount_cents = new_amount
        if new_method is not None:
            txn.payment_method = new_method
        if reference is not None:
            txn.reference = new_reference
        db.session.flush()
        return txn

    txn = run_in_transaction(_op, label="edit_supplier_payment")
    current_app.logger.info("Supplier payment %s edited", txn.id)
    return txn


def delete_all_supplier_payments(bill_number: Any, reason: str | None = None, actor: str | None = None) -> dict:
    """
    Remove every payment of a bill and reset its base paid amount to zero.

    All or nothing. One delete trace is written per removed payment.
    """
    reason = require_reason(reason, "delete supplier payments")
    bill_number = require_text(bill_number, "bill_number", max_length=64)

    def _op() -> dict:
        bill = _get_bill(bill_number)
        rows = (
            db.session.query(SupplierTransaction)
            .filter_by(bill_id=bill.id)
            .order_by(SupplierTransaction.id)
            .all()
        )
        trace_ids = []
        for txn in rows:
            trace = write_delete_trace(SupplierTransaction.__tablename__, txn.id, txn.to_dict(), reason, actor)
            trace_ids.append(trace.id)
            db.session.delete(txn)

        previous_base = bill.base_paid_amount_cents
        bill.base_paid_amount_cents = 0
        db.session.flush()
        return {
            "bill_number": bill.bill_number,
            "deleted_count": len(rows),
            "trace_ids": trace_ids,
            "previous_base_paid_amount_cents": previous_base,
        }

    result = run_in_transaction(_op, label="delete_all_supplier_payments")
    current_app.logger.info(
        "Deleted %d supplier payment(s) on bill %s (%s)", result["deleted_count"], bill_number, reason
    )
    result["balance"] = get_bill_balance(bill_number)
    return result


def list_supplier_payments(bill_number: str) -> list[dict]:
    """Newest first, each with its stored snapshot and the replayed balance."""
    bill = _get_bill(bill_number)
    rows = (
        db.session.query(SupplierTransaction)
        .filter_by(bill_id=bill.id)
        .order_by(SupplierTransaction.paid_at.asc(), SupplierTransaction.id.asc())
        .all()
    )

    paid = bill.base_paid_amount_cents
    out = []
    for txn in rows:
        paid += txn.amount_cents
        data = txn.to_dict()
        data["remaining_cents"] = bill.deal_amount_cents - paid
        out.append(data)
    out.reverse()
    return out


# --------------------------------------------------------------------------
# Customer dues
# --------------------------------------------------------------------------

def _get_sale(sale_id: int) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if not sale:
        raise RecordNotFound(f"Sale {sale_id} not found", details={"sale_id": sale_id})
    return sale


def _sale_payments_total(sale_id: int) -> int:
    total = (
        db.session.query(func.coalesce(func.sum(CustomerPaymentAllocation.amount_cents), 0))
        .filter(CustomerPaymentAllocation.sale_id == sale_id)
        .scalar()
    )
    return int(total or 0)


def _sale_balance(sale: Sale) -> dict:
    payments_total = _sale_payments_total(sale.id)
    paid = sale.base_paid_cents + payments_total
    return {
        "sale_id": sale.id,
        "invoice_number": sale.invoice_number,
        "customer_number": sale.customer_number,
        "payment_method": sale.payment_method,
        "total_cents": sale.total_cents,
        "base_paid_cents": sale.base_paid_cents,
        "payments_total_cents": payments_total,
        "paid_cents": paid,
        "remaining_cents": sale.total_cents - paid,
    }


def get_sale_balance(sale_id: int) -> dict:
    return _sale_balance(_get_sale(sale_id))


def _due_sales(customer_number: str) -> list[Sale]:
    return (
        db.session.query(Sale)
        .filter_by(customer_number=customer_number, payment_method=PAYMENT_DUE_SALE)
        .order_by(Sale.created_at.asc(), Sale.id.asc())
        .all()
    )


def get_customer_dues(customer_number: str, outstanding_only: bool = False) -> dict:
    balances = [_sale_balance(sale) for sale in _due_sales(customer_number)]
    if outstanding_only:
        balances = [b for b in balances if b["remaining_cents"] > 0]
    return {
        "customer_number": customer_number,
        "sales": balances,
        "total_remaining_cents": sum(b["remaining_cents"] for b in balances),
    }


def _normalize_allocations(allocations: Any) -> list[dict]:
    if not isinstance(allocations, list) or not allocations:
        raise ValidationError("At least one sale must be selected")

    normalized = []
    seen = set()
    for index, alloc in enumerate(allocations):
        if not isinstance(alloc, dict):
            raise ValidationError(f"sales_paid[{index}] must be an object")
        sale_id = require_int(alloc.get("sale_id"), f"sales_paid[{index}].sale_id", minimum=1)
        if sale_id in seen:
            raise ValidationError(f"Sale {sale_id} is selected more than once", details={"sale_id": sale_id})
        seen.add(sale_id)
        amount = _payment_amount(alloc.get("amount_cents"), f"sales_paid[{index}].amount_cents")
        product_ids = alloc.get("product_ids") or []
        if not isinstance(product_ids, list):
            raise ValidationError(f"sales_paid[{index}].product_ids must be a list")
        product_ids = [require_int(p, f"sales_paid[{index}].product_ids", minimum=1) for p in product_ids]
        normalized.append({"sale_id": sale_id, "amount_cents": amount, "product_ids": product_ids})
    return normalized


def record_customer_payment(
    customer_number: Any,
    allocations: Any,
    method: Any,
    reference: Any = None,
    notes: Any = None,
    actor: str | None = None,
    customer_name: Any = None,
) -> CustomerTransaction:
    """
    Append one customer payment split explicitly across due sales.

    `allocations` is a list of {"sale_id", "amount_cents", "product_ids"}.
    There is no implicit priority between sales: each allocation is checked
    against its own sale's remaining balance and nothing else.
    """
    customer_number = require_text(customer_number, "customer_number", max_length=32)
    parts = _normalize_allocations(allocations)
    method = require_text(method, "method", max_length=32)
    reference = optional_text(reference, "reference", max_length=128)
    notes = optional_text(notes, "notes", max_length=2000)
    customer_name = optional_text(customer_name, "customer_name")

    def _op() -> CustomerTransaction:
        for part in parts:
            sale = _get_sale(part["sale_id"])
            if sale.payment_method != PAYMENT_DUE_SALE or sale.customer_number != customer_number:
                raise ValidationError(
                    f"Sale {sale.id} is not a due sale of customer {customer_number}",
                    details={"sale_id": sale.id},
                )
            line_products = {line.product_id for line in sale.lines}
            unknown = [p for p in part["product_ids"] if p not in line_products]
            if unknown:
                raise ValidationError(
                    f"Products {unknown} are not on sale {sale.id}",
                    details={"sale_id": sale.id, "product_ids": unknown},
                )
            remaining = _sale_balance(sale)["remaining_cents"]
            if part["amount_cents"] > remaining:
                raise InvalidPaymentAmount(
                    f"Payment for sale {sale.invoice_number} exceeds remaining amount",
                    details={
                        "sale_id": sale.id,
                        "amount_cents": part["amount_cents"],
                        "remaining_cents": remaining,
                    },
                )

        customer = db.session.query(Customer).filter_by(customer_number=customer_number).first()
        name = customer_name or (customer.customer_name if customer else None)
        total_due = get_customer_dues(customer_number)["total_remaining_cents"]
        amount = sum(p["amount_cents"] for p in parts)

        txn = CustomerTransaction(
            customer_id=customer.id if customer else None,
            customer_number=customer_number,
            customer_name=name,
            amount_cents=amount,
            method=method,
            reference=reference,
            notes=notes,
            timestamp=utcnow(),
            remaining_snapshot_cents=total_due - amount,
            created_by=actor,
        )
        txn.sales_paid = [
            CustomerPaymentAllocation(
                sale_id=p["sale_id"],
                product_ids=p["product_ids"],
                amount_cents=p["amount_cents"],
            )
            for p in parts
        ]
        db.session.add(txn)
        db.session.flush()
        return txn

    txn = run_in_transaction(_op, label="record_customer_payment")
    current_app.logger.info(
        "Customer payment %s: %d cents from %s across %d sale(s)",
        txn.id, txn.amount_cents, txn.customer_number, len(txn.sales_paid),
    )
    return txn


def edit_customer_payment(
    transaction_id: int,
    amount_cents: Any = None,
    method: Any = None,
    reference: Any = None,
) -> CustomerTransaction:
    """
    Correct amount, method or reference of a customer payment.

    The amount can only be changed when the payment covers a single sale;
    a split payment would need a new breakdown, not a new total.
    """
    new_amount = _payment_amount(amount_cents) if amount_cents is not None else None
    new_method = require_text(method, "method", max_length=32) if method is not None else None
    new_reference = optional_text(reference, "reference", max_length=128) if reference is not None else None
    if new_amount is None and new_method is None and reference is None:
        raise ValidationError("Nothing to update: amount_cents, method or reference is required")

    def _op() -> CustomerTransaction:
        txn = db.session.get(CustomerTransaction, transaction_id)
        if not txn:
            raise RecordNotFound(
                f"Customer payment {transaction_id} not found",
                details={"transaction_id": transaction_id},
            )

        if new_amount is not None and new_amount != txn.amount_cents:
            if len(txn.sales_paid) != 1:
                raise ValidationError(
                    "Amount can only be edited on a payment that covers a single sale",
                    details={"transaction_id": txn.id, "sales": len(txn.sales_paid)},
                )
            alloc = txn.sales_paid[0]
            remaining = _sale_balance(_get_sale(alloc.sale_id))["remaining_cents"]
            if new_amount > remaining + alloc.amount_cents:
                raise InvalidPaymentAmount(
                    "Edited amount would overpay the sale",
                    details={
                        "sale_id": alloc.sale_id,
                        "amount_cents": new_amount,
                        "max_amount_cents": remaining + alloc.amount_cents,
                    },
                )
            alloc.amount_cents = new_amount
            txn.amount_cents = new_amount
        if new_method is not None:
            txn.method = new_method
        if reference is not None:
            txn.reference = new_reference
        db.session.flush()
        return txn

    txn = run_in_transaction(_op, label="edit_customer_payment")
    current_app.logger.info("Customer payment %s edited", txn.id)
    return txn


def list_customer_payments(customer_number: str) -> list[dict]:
    """
    Newest first. Every allocation carries the sale's remaining balance right
    after that payment, and every payment the customer's total remaining,
    both replayed from the log in chronological order.
    """
    sales = {sale.id: sale for sale in _due_sales(customer_number)}
    rows = (
        db.session.query(CustomerTransaction)
        .filter_by(customer_number=customer_number)
        .order_by(CustomerTransaction.timestamp.asc(), CustomerTransaction.id.asc())
        .all()
    )

    remaining_by_sale = {sid: s.total_cents - s.base_paid_cents for sid, s in sales.items()}
    out = []
    for txn in rows:
        data = txn.to_dict()
        for alloc in data["sales_paid"]:
            sid = alloc["sale_id"]
            if sid in remaining_by_sale:
                remaining_by_sale[sid] -= alloc["amount_cents"]
                alloc["remaining_cents"] = remaining_by_sale[sid]
            else:
                alloc["remaining_cents"] = None
        data["remaining_cents"] = sum(remaining_by_sale.values())
        out.append(data)
    out.reverse()
    return out
