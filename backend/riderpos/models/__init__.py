from .profiles import Profile, ROLE_ADMIN, ROLE_RIDER
from .catalog import Category, Product
from .inventory import WarehouseStock, RiderInventory, Distribution
from .sales import Transaction, TransactionItem
from .settings import TaxPolicy
from .documents import DocumentSequence, LedgerEvent

__all__ = [
    'Profile', 'ROLE_ADMIN', 'ROLE_RIDER',
    'Category', 'Product',
    'WarehouseStock', 'RiderInventory', 'Distribution',
    'Transaction', 'TransactionItem',
    'TaxPolicy',
    'DocumentSequence', 'LedgerEvent',
]
