from __future__ import annotations

from ..extensions import db
from shopledger.time_utils import to_utc_z, utcnow


class Supplier(db.Model):
    """
    Supplier master data.

    supplier_code is allocated from the "supplier" counter inside the same
    transaction that inserts the row, so codes are unique and increasing.
    """
    __tablename__ = "suppliers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    supplier_code = db.Column(db.Integer, nullable=False, unique=True, index=True)
    name = db.Column(db.String(255), nullable=False)
    address = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Supplier id={self.id} code={self.supplier_code} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "supplier_code": self.supplier_code,
            "name": self.name,
            "address": self.address,
            "phone": self.phone,
            "created_at": to_utc_z(self.created_at),
            "version_id": self.version_id,
        }


class SupplierBill(db.Model):
    """
    One supplier delivery: the owner of the bill-level money figures.

    WHY: the deal amount is a property of the bill, not of any one line item.
    Every product on the bill reads it through `Product.bill`, so all rows of a
    bill always agree and a bill reduction updates exactly one row.

    base_paid_amount_cents is the legacy "paid at intake" seed. Supplier
    payments are never folded into it; they live in supplier_transactions.
    """
    __tablename__ = "supplier_bills"
    __table_args__ = (
        db.CheckConstraint("deal_amount_cents >= 0", name="deal_amount_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    bill_number = db.Column(db.String(64), nullable=False, unique=True, index=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False, index=True)

    deal_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    base_paid_amount_cents = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    supplier = db.relationship("Supplier", backref=db.backref("bills", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<SupplierBill {self.bill_number!r} deal={self.deal_amount_cents}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "bill_number": self.bill_number,
            "supplier_id": self.supplier_id,
            "deal_amount_cents": self.deal_amount_cents,
            "base_paid_amount_cents": self.base_paid_amount_cents,
            "created_at": to_utc_z(self.created_at),
            "version_id": self.version_id,
        }


class Product(db.Model):
    """
    A stocked line item of a supplier bill.

    The same barcode may appear on several bills (one row per delivery);
    within a bill a barcode is unique.

    Money is stored in cents. total_price_cents is quantity x unit price and is
    recomputed on every stock change (see stock_service.recompute_total_price).
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("bill_id", "barcode", name="uq_products_bill_barcode"),
        db.CheckConstraint("quantity >= 0", name="quantity_non_negative"),
        db.Index("ix_products_supplier_bill", "supplier_id", "bill_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    barcode = db.Column(db.String(64), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)

    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False, index=True)
    bill_id = db.Column(db.Integer, db.ForeignKey("supplier_bills.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False, default=0)
    unit_price_cents = db.Column(db.Integer, nullable=True)
    retail_price_cents = db.Column(db.Integer, nullable=True)
    total_price_cents = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    bill = db.relationship("SupplierBill", backref=db.backref("products", lazy=True, order_by="Product.id"))
    supplier = db.relationship("Supplier", backref=db.backref("products", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def bill_number(self) -> str | None:
        return self.bill.bill_number if self.bill else None

    @property
    def deal_amount_cents(self) -> int:
        return self.bill.deal_amount_cents if self.bill else 0

    @property
    def paid_amount_cents(self) -> int:
        return self.bill.base_paid_amount_cents if self.bill else 0

    def __repr__(self) -> str:
        return f"<Product id={self.id} barcode={self.barcode!r} bill={self.bill_number!r} qty={self.quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "barcode": self.barcode,
            "name": self.name,
            "supplier_id": self.supplier_id,
            "bill_id": self.bill_id,
            "bill_number": self.bill_number,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "retail_price_cents": self.retail_price_cents,
            "total_price_cents": self.total_price_cents,
            "deal_amount_cents": self.deal_amount_cents,
            "paid_amount_cents": self.paid_amount_cents,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
