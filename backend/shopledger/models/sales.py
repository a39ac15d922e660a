from __future__ import annotations

from ..extensions import db
from shopledger.time_utils import to_utc_z, utcnow


class Sale(db.Model):
    """
    A committed checkout.

    WHY: A sale is written once, inside the same transaction that decrements
    stock and consumes the invoice sequence. It is never edited afterwards;
    customer payments against a due sale are appended elsewhere
    (customer_transactions) and never touch this row.

    created_at is business time (a backdated sale carries the chosen date);
    recorded_at is system time.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_customer_method", "customer_number", "payment_method"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Sequence value and the human-readable invoice derived from it
    sale_count = db.Column(db.Integer, nullable=False, unique=True)
    invoice_number = db.Column(db.String(64), nullable=False, unique=True)

    # Order totals (all amounts in cents)
    subtotal_cents = db.Column(db.Integer, nullable=False)
    vat_percent = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    vat_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_type = db.Column(db.String(16), nullable=False, default="percent")  # percent, fixed
    discount_value = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    discount_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    shipping_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False)

    payment_method = db.Column(db.String(32), nullable=False, index=True)
    # Collected at checkout. Equal to total except on a due sale.
    base_paid_cents = db.Column(db.Integer, nullable=False, default=0)

    customer_name = db.Column(db.String(255), nullable=True)
    customer_number = db.Column(db.String(32), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    sale_date = db.Column(db.DateTime(timezone=True), nullable=True)
    recorded_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    staff_id = db.Column(db.String(128), nullable=True)

    lines = db.relationship(
        "SaleLine",
        backref="sale",
        lazy=True,
        order_by="SaleLine.id",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Sale id={self.id} invoice={self.invoice_number!r} total={self.total_cents}>"

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "sale_count": self.sale_count,
            "invoice_number": self.invoice_number,
            "subtotal_cents": self.subtotal_cents,
            "vat_percent": str(self.vat_percent),
            "vat_amount_cents": self.vat_amount_cents,
            "discount_type": self.discount_type,
            "discount_value": str(self.discount_value),
            "discount_amount_cents": self.discount_amount_cents,
            "shipping_cents": self.shipping_cents,
            "total_cents": self.total_cents,
            "payment_method": self.payment_method,
            "base_paid_cents": self.base_paid_cents,
            "customer_name": self.customer_name,
            "customer_number": self.customer_number,
            "created_at": to_utc_z(self.created_at),
            "sale_date": to_utc_z(self.sale_date) if self.sale_date else None,
            "recorded_at": to_utc_z(self.recorded_at),
            "staff_id": self.staff_id,
        }
        if include_lines:
            data["items"] = [line.to_dict() for line in self.lines]
        return data


class SaleLine(db.Model):
    """Individual line items on a sale, priced at checkout time."""
    __tablename__ = "sale_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    # Snapshot of the product at checkout
    barcode = db.Column(db.String(64), nullable=False)
    product_name = db.Column(db.String(255), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    retail_price_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "barcode": self.barcode,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "retail_price_cents": self.retail_price_cents,
            "line_total_cents": self.line_total_cents,
        }


class Customer(db.Model):
    """
    Customer profile, refreshed after checkout (best effort, outside the
    sale transaction). Looked up by phone number when collecting dues.
    """
    __tablename__ = "customers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    customer_number = db.Column(db.String(32), nullable=True, unique=True)
    customer_name = db.Column(db.String(255), nullable=True)
    last_sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_number": self.customer_number,
            "customer_name": self.customer_name,
            "last_sale_id": self.last_sale_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
