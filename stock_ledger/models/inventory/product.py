from sqlalchemy import Column, String, Integer, Boolean, Numeric
from stock_ledger.db.base import BaseModel

class Product(BaseModel):
    """Catalog entry synced from the e-commerce platform"""
    __tablename__ = 'products'
    
    sku = Column(String(100), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    parent_name = Column(String(255))
    is_variation = Column(Boolean, default=False)
    stock_quantity = Column(Integer)  # Actual stock reported by the platform; NULL = unknown
    supplier_price = Column(Numeric(12, 2))  # Unit cost; NULL = unknown
