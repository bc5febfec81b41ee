"""Services package."""

from omnigo.services.auth_service import AuthService
from omnigo.services.chat_service import ChatService
from omnigo.services.completion_service import CompletionProcessor
from omnigo.services.discount_service import DiscountService
from omnigo.services.inventory_service import InventoryService
from omnigo.services.notification_service import NotificationService
from omnigo.services.order_service import OrderService
from omnigo.services.payment_record_service import PaymentRecordService
from omnigo.services.payout_scheduler import DeferredPayoutScheduler, PayoutScheduler
from omnigo.services.payout_service import PayoutExecutor, PayoutResult, PayoutService
from omnigo.services.pi_network_service import PiNetworkService
from omnigo.services.pi_payment_service import PiPaymentService
from omnigo.services.stellar_service import StellarPayoutSigner
from omnigo.services.store_service import StoreService

__all__ = [
    "AuthService",
    "ChatService",
    "CompletionProcessor",
    "DiscountService",
    "InventoryService",
    "NotificationService",
    "OrderService",
    "PaymentRecordService",
    "DeferredPayoutScheduler",
    "PayoutScheduler",
    "PayoutExecutor",
    "PayoutResult",
    "PayoutService",
    "PiNetworkService",
    "PiPaymentService",
    "StellarPayoutSigner",
    "StoreService",
]
