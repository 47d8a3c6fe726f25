from pydantic import BaseModel, ConfigDict, Field, validator
from typing import Dict, List, Optional
from datetime import datetime
from decimal import Decimal
from stock_ledger.models.shared.enums import ExpiryMode
from stock_ledger.schemas.inventory.stock_movement import StockMovementCreate

class ReconciliationSummary(BaseModel):
    sku: str
    product_name: str
    initial_stock: int = 0
    total_sales: int = 0
    total_adjustments: int = 0
    total_purchases: int = 0
    expected_stock: int = 0
    actual_stock: int
    discrepancy: int
    last_reconciled: datetime

class ProductRef(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    sku: str
    name: str
    stock_quantity: Optional[int] = None
    supplier_price: Optional[Decimal] = None
    is_variation: bool = False
    parent_name: Optional[str] = None

class SummarySnapshot(BaseModel):
    """Durable copy of the summary cache, served on cold start"""
    model_config = ConfigDict(populate_by_name=True)

    summaries: List[ReconciliationSummary] = []
    products: List[ProductRef] = []
    last_updated: Optional[datetime] = Field(default=None, alias="lastUpdated")

class SummaryListResponse(BaseModel):
    summaries: List[ReconciliationSummary]
    last_updated: Optional[datetime] = None
    state: str

class ExpirySideEffectContext(BaseModel):
    """Financial intent supplied alongside an expiry adjustment; never stored on the movement"""
    mode: ExpiryMode
    sale_amount: Optional[Decimal] = None
    loss_amount: Optional[Decimal] = None
    require_loss_amount: Optional[bool] = None

    @validator('sale_amount', 'loss_amount')
    def validate_not_negative(cls, v):
        if v is not None and v < 0:
            raise ValueError('Amount cannot be negative')
        return v

class SubmitMovementRequest(BaseModel):
    movement: StockMovementCreate
    expiry: Optional[ExpirySideEffectContext] = None
    refresh_summary: bool = True

class SubmitMovementResponse(BaseModel):
    movement_id: int
    summary: Optional[ReconciliationSummary] = None
    posting_ids: List[int] = []

class StockReconciliationCreate(BaseModel):
    sku: str
    actual_quantity: int
    notes: Optional[str] = None

    @validator('actual_quantity')
    def validate_actual_quantity(cls, v):
        if v < 0:
            raise ValueError('Actual quantity cannot be negative')
        return v

class StockReconciliation(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    sku: str
    reconciliation_date: datetime
    expected_quantity: int
    actual_quantity: int
    discrepancy: int
    notes: Optional[str] = None

class ImportRowError(BaseModel):
    sku: str
    error: str

class ImportResult(BaseModel):
    success: int = 0
    failed: int = 0
    errors: List[ImportRowError] = []

class CleanupResult(BaseModel):
    removed: int = 0
    errors: List[str] = []

class MovementProcessingResult(BaseModel):
    processed: int = 0
    skipped: int = 0
    failed: int = 0
    errors: List[Dict[str, str]] = []
