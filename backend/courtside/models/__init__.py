from .shifts import Shift, LedgerEntry
from .checkouts import Checkout, PayerAccount, LineItem, Payment
from .settings import PaymentSettings

__all__ = [
    'Shift', 'LedgerEntry',
    'Checkout', 'PayerAccount', 'LineItem', 'Payment',
    'PaymentSettings',
]
