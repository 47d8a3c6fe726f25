from sqlalchemy import Column, Integer, String, Date, Text, Numeric, ForeignKey, Enum as SQLEnum
from stock_ledger.db.base import BaseModel
from stock_ledger.models.shared.enums import PostingKind, enum_values

class FinancialPosting(BaseModel):
    """Revenue or expense entry in the accounting ledger"""
    __tablename__ = 'financial_postings'
    
    kind = Column(SQLEnum(PostingKind, name="posting_kind", values_callable=enum_values), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    date = Column(Date, nullable=False)
    category = Column(String(100), nullable=False)
    category_id = Column(Integer, ForeignKey('financial_categories.id'))
    reference = Column(String(100), index=True)  # SKU
    description = Column(Text)
