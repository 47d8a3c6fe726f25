from pydantic import BaseModel, ConfigDict, validator
from typing import Optional
from datetime import datetime, date
from stock_ledger.models.shared.enums import MovementType, MovementReason

class StockMovementBase(BaseModel):
    sku: str
    movement_date: Optional[datetime] = None
    quantity: int
    movement_type: MovementType
    reason: Optional[MovementReason] = None
    reference_id: Optional[str] = None
    batch_number: Optional[str] = None
    expiry_date: Optional[date] = None
    notes: Optional[str] = None

    @validator('sku')
    def validate_sku(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('SKU is required')
        return v

    @validator('quantity')
    def validate_non_zero_quantity(cls, v):
        if v == 0:
            raise ValueError('Quantity cannot be zero')
        return v

    @validator('reason', always=True)
    def validate_reason_matches_type(cls, v, values):
        movement_type = values.get('movement_type')
        if movement_type == MovementType.ADJUSTMENT and v is None:
            raise ValueError('Adjustments require a reason')
        if movement_type is not None and movement_type != MovementType.ADJUSTMENT and v is not None:
            raise ValueError('Only adjustments carry a reason')
        return v

class StockMovementCreate(StockMovementBase):
    created_by: Optional[str] = None

class StockMovement(StockMovementBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    movement_date: datetime
    created_at: Optional[datetime] = None
    created_by: Optional[str] = None
