from .tenancy import Business
from .tables import DiningTable
from .orders import Order, OrderItem
from .conflicts import ConsistencyConflict

__all__ = [
    'Business',
    'DiningTable',
    'Order', 'OrderItem',
    'ConsistencyConflict',
]
