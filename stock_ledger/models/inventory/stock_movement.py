from sqlalchemy import Column, Integer, String, DateTime, Text, Date, Enum as SQLEnum, CheckConstraint
from sqlalchemy.sql import func
from stock_ledger.db.base import BaseModel
from stock_ledger.models.shared.enums import MovementType, MovementReason, enum_values

class StockMovement(BaseModel):
    """Append-only ledger entry; corrections are new offsetting rows"""
    __tablename__ = 'stock_movements'
    
    sku = Column(String(100), nullable=False, index=True)
    movement_date = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    quantity = Column(Integer, nullable=False)  # +added / -removed
    movement_type = Column(
        SQLEnum(MovementType, name="movement_type", values_callable=enum_values),
        nullable=False,
        index=True,
    )
    reason = Column(SQLEnum(MovementReason, name="movement_reason", values_callable=enum_values))
    reference_id = Column(String(100), index=True)  # Order number / PO reference
    batch_number = Column(String(50))
    expiry_date = Column(Date)
    notes = Column(Text)

    __table_args__ = (
        CheckConstraint("quantity <> 0", name="ck_stock_movements_quantity_nonzero"),
    )
