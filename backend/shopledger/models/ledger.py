from __future__ import annotations

from ..extensions import db
from shopledger.time_utils import to_utc_z, utcnow


class Counter(db.Model):
    """
    Named monotonic counter (invoice numbers, supplier codes).

    WHY: The value is read and bumped inside the caller's transaction. The
    version column turns a concurrent bump into a StaleDataError at flush, so
    the losing transaction is retried from scratch and never reuses a value.
    """
    __tablename__ = "counters"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(64), nullable=False, unique=True)
    value = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "value": self.value,
            "updated_at": to_utc_z(self.updated_at),
        }


class SupplierAdjustment(db.Model):
    """
    A supplier return recorded against one line of a bill.

    TYPES:
    - return_replacement: audit record only, no stock or bill effect
    - bill_reduction: removes `quantity` units from the matched product and
      reduces the bill deal amount by unit price x quantity

    applied_reduction_cents is the deal-amount reduction currently in effect
    (after the zero floor), so edit and delete restore exactly what was taken.
    """
    __tablename__ = "supplier_adjustments"
    __table_args__ = (
        db.Index("ix_supplier_adjustments_bill_barcode", "bill_number", "barcode"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False, index=True)
    bill_number = db.Column(db.String(64), nullable=False, index=True)
    barcode = db.Column(db.String(64), nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="SET NULL"), nullable=True)
    product_name = db.Column(db.String(255), nullable=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False, default=0)
    total_price_cents = db.Column(db.Integer, nullable=False, default=0)
    type = db.Column(db.String(32), nullable=False, index=True)
    note = db.Column(db.Text, nullable=True)

    applied_reduction_cents = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    created_by = db.Column(db.String(128), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    updated_by = db.Column(db.String(128), nullable=True)
    edit_reason = db.Column(db.String(255), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "supplier_id": self.supplier_id,
            "bill_number": self.bill_number,
            "barcode": self.barcode,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "total_price_cents": self.total_price_cents,
            "type": self.type,
            "note": self.note,
            "applied_reduction_cents": self.applied_reduction_cents,
            "created_at": to_utc_z(self.created_at),
            "created_by": self.created_by,
            "updated_at": to_utc_z(self.updated_at) if self.updated_at else None,
            "updated_by": self.updated_by,
            "edit_reason": self.edit_reason,
            "version_id": self.version_id,
        }


class SupplierTransaction(db.Model):
    """
    Append-only supplier payment against a bill.

    remaining_snapshot_cents is the bill balance right after this payment, as
    seen when it was recorded. It is historical; live balances are always
    recomputed from the full log.

    Only amount, payment_method and reference may be corrected afterwards.
    """
    __tablename__ = "supplier_transactions"
    __table_args__ = (
        db.Index("ix_supplier_txns_bill_paid", "bill_number", "paid_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    bill_id = db.Column(db.Integer, db.ForeignKey("supplier_bills.id"), nullable=False, index=True)
    bill_number = db.Column(db.String(64), nullable=False, index=True)

    amount_cents = db.Column(db.Integer, nullable=False)
    payment_method = db.Column(db.String(32), nullable=False)
    reference = db.Column(db.String(128), nullable=True)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    remaining_snapshot_cents = db.Column(db.Integer, nullable=False)

    created_by = db.Column(db.String(128), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    bill = db.relationship("SupplierBill", backref=db.backref("transactions", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "bill_id": self.bill_id,
            "bill_number": self.bill_number,
            "amount_cents": self.amount_cents,
            "payment_method": self.payment_method,
            "reference": self.reference,
            "paid_at": to_utc_z(self.paid_at),
            "remaining_snapshot_cents": self.remaining_snapshot_cents,
            "created_by": self.created_by,
            "version_id": self.version_id,
        }


class CustomerTransaction(db.Model):
    """
    Append-only customer payment against one or more due sales.

    The per-sale breakdown lives in CustomerPaymentAllocation; amount_cents is
    always the sum of its allocations.
    """
    __tablename__ = "customer_transactions"
    __table_args__ = (
        db.Index("ix_customer_txns_number_ts", "customer_number", "timestamp"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True)
    customer_number = db.Column(db.String(32), nullable=False, index=True)
    customer_name = db.Column(db.String(255), nullable=True)

    amount_cents = db.Column(db.Integer, nullable=False)
    method = db.Column(db.String(32), nullable=False)
    reference = db.Column(db.String(128), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    timestamp = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    remaining_snapshot_cents = db.Column(db.Integer, nullable=False)

    created_by = db.Column(db.String(128), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    sales_paid = db.relationship(
        "CustomerPaymentAllocation",
        backref="transaction",
        lazy=True,
        order_by="CustomerPaymentAllocation.id",
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "customer_number": self.customer_number,
            "customer_name": self.customer_name,
            "amount_cents": self.amount_cents,
            "method": self.method,
            "reference": self.reference,
            "notes": self.notes,
            "timestamp": to_utc_z(self.timestamp),
            "remaining_snapshot_cents": self.remaining_snapshot_cents,
            "created_by": self.created_by,
            "sales_paid": [a.to_dict() for a in self.sales_paid],
            "version_id": self.version_id,
        }


class CustomerPaymentAllocation(db.Model):
    """One sale's share of a customer payment, optionally naming line items."""
    __tablename__ = "customer_payment_allocations"
    __table_args__ = (
        db.UniqueConstraint("transaction_id", "sale_id", name="uq_customer_alloc_txn_sale"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("customer_transactions.id"), nullable=False, index=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_ids = db.Column(db.JSON, nullable=False, default=list)
    amount_cents = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {
            "sale_id": self.sale_id,
            "product_ids": list(self.product_ids or []),
            "amount_cents": self.amount_cents,
        }


class DeleteTrace(db.Model):
    """
    Append-only audit of destructive operations.

    IMMUTABLE: written in the same transaction as the delete it records and
    never updated or deleted. deleted_data holds the full prior document.
    """
    __tablename__ = "delete_traces"
    __table_args__ = (
        db.Index("ix_delete_traces_table_deleted", "table_name", "deleted_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    table_name = db.Column(db.String(64), nullable=False)
    deleted_id = db.Column(db.Integer, nullable=True)
    trace_type = db.Column(db.String(32), nullable=False, default="delete")  # delete, dump_product
    deleted_data = db.Column(db.JSON, nullable=False)
    deleted_by = db.Column(db.String(128), nullable=False, default="Unknown")
    reason = db.Column(db.String(255), nullable=False)
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "table": self.table_name,
            "deleted_id": self.deleted_id,
            "trace_type": self.trace_type,
            "deleted_data": self.deleted_data,
            "deleted_by": self.deleted_by,
            "reason": self.reason,
            "deleted_at": to_utc_z(self.deleted_at),
        }
