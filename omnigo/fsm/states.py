"""
FSM State Definitions.
Statuses for payment records, orders, payouts and related records.
"""

from enum import Enum


class PaymentStatus(str, Enum):
    """
    Lifecycle of an internal PaymentRecord.
    Created as APPROVED; moves once toward a terminal state.
    """
    
    APPROVED = "approved"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"
    
    @property
    def is_final(self) -> bool:
        """Completed and cancelled records are never changed again."""
        return self in (PaymentStatus.COMPLETED, PaymentStatus.CANCELLED)


_ORDER_RANKS = {
    "pending": 0,
    "confirmed": 1,
    "preparing": 2,
    "out_for_delivery": 3,
    "delivered": 4,
}


class OrderStatus(str, Enum):
    """
    Order lifecycle.
    Forward-only along the delivery path; CANCELLED from any open state.
    """
    
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    
    @property
    def rank(self) -> int:
        """Position on the delivery path (CANCELLED is off-path)."""
        return _ORDER_RANKS.get(self.value, -1)
    
    @property
    def is_terminal(self) -> bool:
        return self in (OrderStatus.DELIVERED, OrderStatus.CANCELLED)


class PayoutStatus(str, Enum):
    """Status of a single payout attempt."""
    
    PENDING = "pending"       # Awaiting payout destination linkage
    COMPLETED = "completed"
    FAILED = "failed"


class PaymentDirection(str, Enum):
    """Pi Network payment direction."""
    
    USER_TO_APP = "user_to_app"
    APP_TO_USER = "app_to_user"


class StoreType(str, Enum):
    """Store categories. Restaurants do not track stock."""
    
    RESTAURANT = "restaurant"
    PHARMACY = "pharmacy"
    GROCERY = "grocery"
    ELECTRONICS = "electronics"
    CLOTHING = "clothing"
    GAMES = "games"
    SERVICES = "services"
    OTHER = "other"
    
    @property
    def tracks_stock(self) -> bool:
        return self != StoreType.RESTAURANT


class NotificationType(str, Enum):
    NEW_ORDER = "new_order"
    STATUS_UPDATE = "status_update"
    PROMOTION = "promotion"


class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class DiscountTarget(str, Enum):
    ALL = "all"
    NEW_USERS_ONLY = "new_users_only"


class UserRole(str, Enum):
    STORE_OWNER = "store_owner"
    DRIVER = "driver"
