from sqlalchemy import Column, Integer, String, Date, Text, Numeric, ForeignKey, Enum as SQLEnum
from stock_ledger.db.base import BaseModel
from stock_ledger.models.shared.enums import PostingKind, PendingPostingStatus, enum_values

class PendingPosting(BaseModel):
    """Financial posting that failed after its stock movement was recorded"""
    __tablename__ = 'pending_postings'
    
    movement_id = Column(Integer, ForeignKey('stock_movements.id', ondelete='SET NULL'), index=True)
    sku = Column(String(100), nullable=False)
    kind = Column(SQLEnum(PostingKind, name="posting_kind", values_callable=enum_values), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    date = Column(Date, nullable=False)
    category = Column(String(100), nullable=False)
    description = Column(Text)
    status = Column(
        SQLEnum(PendingPostingStatus, name="pending_posting_status", values_callable=enum_values),
        nullable=False,
        default=PendingPostingStatus.PENDING,
    )
    attempts = Column(Integer, nullable=False, default=1)
    last_error = Column(Text)
    posting_id = Column(Integer, ForeignKey('financial_postings.id'))
