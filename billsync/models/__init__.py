from .user import User
from .subscription import Subscription, SubscriptionStatus, Tier
from .invoice import Invoice
from .processed_event import ProcessedEvent

__all__ = ["User", "Subscription", "SubscriptionStatus", "Tier", "Invoice", "ProcessedEvent"]
