import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy import and_, desc
from stock_ledger.models.finance.financial_category import FinancialCategory
from stock_ledger.models.finance.financial_posting import FinancialPosting
from stock_ledger.models.finance.pending_posting import PendingPosting
from stock_ledger.models.shared.enums import PostingKind, PendingPostingStatus
from stock_ledger.core.exceptions import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

class FinancialLedgerService:
    """Revenue/expense postings and the markers for postings that still need to be made"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def lookup_category_id(self, name: str, kind: Optional[PostingKind] = None) -> Optional[int]:
        query = select(FinancialCategory.id).where(FinancialCategory.name == name)
        if kind:
            query = query.where(FinancialCategory.kind == kind)
        result = await self.db.execute(query.limit(1))
        return result.scalar_one_or_none()

    async def post_entry(
        self,
        kind: PostingKind,
        amount: Decimal,
        entry_date: date,
        category: str,
        category_id: Optional[int] = None,
        description: Optional[str] = None,
        reference: Optional[str] = None,
    ) -> FinancialPosting:
        """Create a revenue or expense entry"""
        if amount is None or amount <= 0:
            raise ValidationError("Posting amount must be greater than zero")
        if not category:
            raise ValidationError("Posting category is required")

        posting = FinancialPosting(
            kind=kind,
            amount=Decimal(amount).quantize(Decimal("0.01")),
            date=entry_date,
            category=category,
            category_id=category_id,
            description=description,
            reference=reference,
        )
        self.db.add(posting)
        await self.db.commit()
        await self.db.refresh(posting)

        logger.info(f"Posted {kind.value} of {posting.amount} under '{category}' for {reference}")
        return posting

    async def get_postings_by_reference(self, reference: str) -> List[FinancialPosting]:
        result = await self.db.execute(
            select(FinancialPosting)
            .where(FinancialPosting.reference == reference)
            .order_by(FinancialPosting.id)
        )
        return list(result.scalars().all())

    async def record_pending_posting(
        self,
        movement_id: int,
        sku: str,
        kind: PostingKind,
        amount: Decimal,
        entry_date: date,
        category: str,
        description: Optional[str],
        error: str,
    ) -> PendingPosting:
        pending = PendingPosting(
            movement_id=movement_id,
            sku=sku,
            kind=kind,
            amount=amount,
            date=entry_date,
            category=category,
            description=description,
            status=PendingPostingStatus.PENDING,
            attempts=1,
            last_error=error,
        )
        self.db.add(pending)
        await self.db.commit()
        await self.db.refresh(pending)

        logger.warning(f"⚠️ Recorded pending {kind.value} posting {pending.id} for movement {movement_id}: {error}")
        return pending

    async def get_pending_posting_by_id(self, pending_id: int) -> Optional[PendingPosting]:
        result = await self.db.execute(select(PendingPosting).where(PendingPosting.id == pending_id))
        return result.scalar_one_or_none()

    async def get_pending_postings(self, sku: Optional[str] = None) -> List[PendingPosting]:
        conditions = [PendingPosting.status == PendingPostingStatus.PENDING]
        if sku:
            conditions.append(PendingPosting.sku == sku)

        result = await self.db.execute(
            select(PendingPosting).where(and_(*conditions)).order_by(desc(PendingPosting.id))
        )
        return list(result.scalars().all())

    async def retry_pending_posting(self, pending_id: int) -> PendingPosting:
        """Attempt a pending posting again; failures are kept on the marker and re-raised"""
        pending = await self.get_pending_posting_by_id(pending_id)
        if not pending:
            raise NotFoundError("Pending posting not found")
        if pending.status == PendingPostingStatus.POSTED:
            return pending

        category_id = await self.lookup_category_id(pending.category, pending.kind)
        try:
            posting = await self.post_entry(
                kind=pending.kind,
                amount=pending.amount,
                entry_date=pending.date,
                category=pending.category,
                category_id=category_id,
                description=pending.description,
                reference=pending.sku,
            )
        except Exception as e:
            await self.db.rollback()
            await self.db.refresh(pending)
            pending.attempts += 1
            pending.last_error = str(e)
            await self.db.commit()
            logger.error(f"❌ Retry of pending posting {pending_id} failed: {str(e)}")
            raise

        pending.status = PendingPostingStatus.POSTED
        pending.posting_id = posting.id
        pending.last_error = None
        await self.db.commit()
        await self.db.refresh(pending)

        logger.info(f"✅ Pending posting {pending_id} posted as {posting.id}")
        return pending
