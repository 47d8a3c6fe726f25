from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime, date
from stock_ledger.models.shared.enums import OrderStatus, PurchaseOrderStatus

class OrderLineItem(BaseModel):
    id: Optional[int] = None
    sku: Optional[str] = None
    quantity: int

class Order(BaseModel):
    number: str
    status: OrderStatus
    date_created: Optional[datetime] = None
    date_completed: Optional[datetime] = None
    line_items: List[OrderLineItem] = []

class PurchaseOrderItem(BaseModel):
    id: Optional[int] = None
    sku: Optional[str] = None
    quantity_received: Optional[int] = None
    batch_number: Optional[str] = None
    expiry_date: Optional[date] = None

class PurchaseOrder(BaseModel):
    reference_number: str
    status: PurchaseOrderStatus
    date: datetime
    items: List[PurchaseOrderItem] = []
