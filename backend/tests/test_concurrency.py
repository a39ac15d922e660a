"""
Threaded concurrency tests against a file database.

Each worker runs in its own thread and app context, so each has its own
session and connection; conflicts are resolved by the versioned writes and
the transaction retries alone.
"""
import os
import tempfile
import threading
import unittest

from shopledger import create_app
from shopledger.extensions import db
from shopledger.models import Product, Sale
from shopledger.services import adjustment_service, sales_service, supplier_service
from shopledger.services.errors import InsufficientStock, InvalidAdjustmentQuantity


class ConcurrencyTests(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        db_path = os.path.join(self.tmpdir.name, "concurrency.db")
        self.app = create_app({
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path}",
            "LEDGER_TXN_ATTEMPTS": 20,
            "LEDGER_TXN_BACKOFF": 0.01,
        })

        with self.app.app_context():
            db.drop_all()
            db.create_all()

            supplier = supplier_service.create_supplier("Concurrency Supplier")
            self.supplier_id = supplier.id
            bill = supplier_service.register_bill(
                self.supplier_id,
                "C1",
                50000,
                lines=[{
                    "barcode": "CONCUR-1",
                    "name": "Concurrent Product",
                    "quantity": 10,
                    "unit_price_cents": 400,
                    "retail_price_cents": 1000,
                }],
            )
            self.product_id = bill.products[0].id

    def tearDown(self):
        with self.app.app_context():
            db.session.remove()
            db.drop_all()
            db.session.remove()
            db.engine.dispose()
        self.tmpdir.cleanup()

    def _run_workers(self, targets):
        results = []
        lock = threading.Lock()

        def wrap(fn):
            def worker():
                with self.app.app_context():
                    try:
                        value = fn()
                        with lock:
                            results.append(value)
                    except Exception as exc:
                        with lock:
                            results.append(exc)
                    finally:
                        db.session.remove()
            return worker

        threads = [threading.Thread(target=wrap(fn)) for fn in targets]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        return results

    def _quantity(self):
        with self.app.app_context():
            quantity = db.session.get(Product, self.product_id).quantity
            db.session.remove()
            return quantity

    def test_concurrent_checkouts_never_oversell(self):
        def buy_six():
            sale = sales_service.checkout([{"product_id": self.product_id, "quantity": 6}])
            return sale.invoice_number

        results = self._run_workers([buy_six, buy_six])

        invoices = [r for r in results if isinstance(r, str)]
        failures = [r for r in results if isinstance(r, Exception)]
        self.assertEqual(len(invoices), 1, results)
        self.assertEqual(len(failures), 1)
        self.assertIsInstance(failures[0], InsufficientStock)
        self.assertEqual(self._quantity(), 4)

    def test_stock_conserved_across_many_checkouts(self):
        def buy_one():
            return sales_service.checkout([{"product_id": self.product_id, "quantity": 1}]).sale_count

        results = self._run_workers([buy_one] * 14)

        sold = [r for r in results if isinstance(r, int)]
        failures = [r for r in results if isinstance(r, Exception)]
        self.assertEqual(len(sold), 10, results)
        self.assertTrue(all(isinstance(f, InsufficientStock) for f in failures))
        self.assertEqual(self._quantity(), 0)

    def test_invoice_numbers_distinct_and_increasing(self):
        def buy_one():
            sale = sales_service.checkout([{"product_id": self.product_id, "quantity": 1}])
            return sale.sale_count, sale.invoice_number

        results = self._run_workers([buy_one] * 6)
        self.assertFalse([r for r in results if isinstance(r, Exception)], results)

        with self.app.app_context():
            rows = db.session.query(Sale).order_by(Sale.sale_count).all()
            counts = [s.sale_count for s in rows]
            invoices = [s.invoice_number for s in rows]
            db.session.remove()

        self.assertEqual(counts, list(range(1, 7)))
        self.assertEqual(len(set(invoices)), 6)
        self.assertEqual([int(i.rsplit("-", 1)[1]) for i in invoices], counts)

    def test_checkout_and_adjustment_on_same_product(self):
        def buy_six():
            return sales_service.checkout([{"product_id": self.product_id, "quantity": 6}]).id

        def return_six():
            return adjustment_service.create_adjustment(
                self.supplier_id, "C1", "CONCUR-1", 6, "bill_reduction"
            ).id

        results = self._run_workers([buy_six, return_six])

        failures = [r for r in results if isinstance(r, Exception)]
        self.assertEqual(len(failures), 1, results)
        self.assertIsInstance(failures[0], (InsufficientStock, InvalidAdjustmentQuantity))
        self.assertEqual(self._quantity(), 4)


if __name__ == "__main__":
    unittest.main()
