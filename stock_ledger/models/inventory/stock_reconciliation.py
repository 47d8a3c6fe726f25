from sqlalchemy import Column, Integer, String, DateTime, Text
from sqlalchemy.sql import func
from stock_ledger.db.base import BaseModel

class StockReconciliation(BaseModel):
    """A physical stock count recorded by an operator"""
    __tablename__ = 'stock_reconciliations'
    
    sku = Column(String(100), nullable=False, index=True)
    reconciliation_date = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    expected_quantity = Column(Integer, nullable=False)
    actual_quantity = Column(Integer, nullable=False)
    discrepancy = Column(Integer, nullable=False)
    notes = Column(Text)
