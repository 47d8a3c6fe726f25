from sqlalchemy.orm import declarative_base
from enum import Enum

Base = declarative_base()

# Enums
class MovementType(str, Enum):
    INITIAL = "initial"
    SALE = "sale"
    ADJUSTMENT = "adjustment"
    PURCHASE = "purchase"

class MovementReason(str, Enum):
    EXPIRY = "expiry"
    DAMAGE = "damage"
    THEFT = "theft"
    CORRECTION = "correction"
    OTHER = "other"

class ExpiryMode(str, Enum):
    MANUAL_SALE = "manual_sale"   # Expiring stock sold at a discount
    DISPOSAL = "disposal"         # Expiring stock thrown away

class PostingKind(str, Enum):
    REVENUE = "revenue"
    EXPENSE = "expense"

class PendingPostingStatus(str, Enum):
    PENDING = "pending"
    POSTED = "posted"

class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    ON_HOLD = "on-hold"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"
    FAILED = "failed"

class PurchaseOrderStatus(str, Enum):
    DRAFT = "draft"
    ORDERED = "ordered"
    PARTIALLY_RECEIVED = "partially_received"
    RECEIVED = "received"
    CANCELLED = "cancelled"


def enum_values(enum_cls):
    """Persist enum values (not member names) in SQL enum columns"""
    return [member.value for member in enum_cls]
