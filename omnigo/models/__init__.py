"""Models package for database models."""

from omnigo.models.user import User, UserProfile
from omnigo.models.store import Store, Product
from omnigo.models.payment import PiPayment
from omnigo.models.order import Order
from omnigo.models.payout import Payout
from omnigo.models.marketing import Discount, DiscountUsage
from omnigo.models.notification import Notification
from omnigo.models.conversation import Conversation, Message

__all__ = [
    "User",
    "UserProfile",
    "Store",
    "Product",
    "PiPayment",
    "Order",
    "Payout",
    "Discount",
    "DiscountUsage",
    "Notification",
    "Conversation",
    "Message",
]
