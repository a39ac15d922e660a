from .inventory import Supplier, SupplierBill, Product
from .sales import Sale, SaleLine, Customer
from .ledger import (
    Counter,
    SupplierAdjustment,
    SupplierTransaction,
    CustomerTransaction,
    CustomerPaymentAllocation,
    DeleteTrace,
)

__all__ = [
    'Supplier', 'SupplierBill', 'Product',
    'Sale', 'SaleLine', 'Customer',
    'Counter', 'SupplierAdjustment', 'SupplierTransaction',
    'CustomerTransaction', 'CustomerPaymentAllocation', 'DeleteTrace',
]
