from sqlalchemy import Column, String, Enum as SQLEnum, UniqueConstraint
from stock_ledger.db.base import BaseModel
from stock_ledger.models.shared.enums import PostingKind, enum_values

class FinancialCategory(BaseModel):
    __tablename__ = 'financial_categories'
    
    name = Column(String(100), nullable=False)
    kind = Column(SQLEnum(PostingKind, name="posting_kind", values_callable=enum_values), nullable=False)

    __table_args__ = (
        UniqueConstraint("name", "kind", name="uq_financial_categories_name_kind"),
    )
