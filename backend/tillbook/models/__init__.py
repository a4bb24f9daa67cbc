from .auth import User, SessionToken
from .catalog import Product
from .customers import Customer, CUSTOMER_RANKS
from .sales import Transaction, TransactionItem
from .deliveries import DeliveryBatch, DeliveryBatchItem
from .documents import Refund, Invoice
from .settings import BusinessSettings

__all__ = [
    'User', 'SessionToken',
    'Product',
    'Customer', 'CUSTOMER_RANKS',
    'Transaction', 'TransactionItem',
    'DeliveryBatch', 'DeliveryBatchItem',
    'Refund', 'Invoice',
    'BusinessSettings',
]
