from .auth import User, SessionToken
from .inventory import InventoryItem
from .orders import Order, OrderItem, Payment
from .tailoring import Garment, MeasurementHead, MeasurementOption, TailoringOrder, Invoice
from .payouts import Payout, PayoutSource

__all__ = [
    'User', 'SessionToken',
    'InventoryItem',
    'Order', 'OrderItem', 'Payment',
    'Garment', 'MeasurementHead', 'MeasurementOption', 'TailoringOrder', 'Invoice',
    'Payout', 'PayoutSource',
]
