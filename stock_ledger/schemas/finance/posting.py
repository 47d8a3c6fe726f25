from pydantic import BaseModel, ConfigDict
from typing import Optional
from datetime import date, datetime
from decimal import Decimal
from stock_ledger.models.shared.enums import PostingKind, PendingPostingStatus

class FinancialPostingCreate(BaseModel):
    kind: PostingKind
    amount: Decimal
    date: date
    category: str
    category_id: Optional[int] = None
    description: Optional[str] = None
    reference: Optional[str] = None

class FinancialPosting(FinancialPostingCreate):
    model_config = ConfigDict(from_attributes=True)

    id: int
    created_at: Optional[datetime] = None

class PendingPosting(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    movement_id: Optional[int] = None
    sku: str
    kind: PostingKind
    amount: Decimal
    date: date
    category: str
    description: Optional[str] = None
    status: PendingPostingStatus
    attempts: int
    last_error: Optional[str] = None
    posting_id: Optional[int] = None
