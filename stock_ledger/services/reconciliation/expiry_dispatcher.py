"""
Financial side effects of expiry removals.

An ``adjustment``/``expiry`` movement with a negative quantity is either sold
off manually (revenue, optionally plus the unrecovered cost as a loss) or
disposed of (loss). The stock change itself is the movement; this module only
posts to the financial ledger. Postings are planned and validated before the
movement is written and made after it, without a shared transaction.
"""
import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from stock_ledger.core.config import settings
from stock_ledger.core.exceptions import PostingPartialFailure, ValidationError
from stock_ledger.models.finance.financial_posting import FinancialPosting
from stock_ledger.models.inventory.stock_movement import StockMovement
from stock_ledger.models.shared.enums import ExpiryMode, MovementReason, MovementType, PostingKind
from stock_ledger.schemas.inventory.reconciliation import ExpirySideEffectContext
from stock_ledger.schemas.inventory.stock_movement import StockMovementCreate
from stock_ledger.services.finance.financial_ledger_service import FinancialLedgerService
from stock_ledger.services.inventory.product_service import ProductService

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")
CENTS = Decimal("0.01")


@dataclass
class PlannedPosting:
    kind: PostingKind
    amount: Decimal
    category: str
    description: str


@dataclass
class ExpiryPostingPlan:
    mode: ExpiryMode
    maximum_possible_loss: Decimal
    sale_amount: Decimal = ZERO
    loss_amount: Decimal = ZERO
    postings: List[PlannedPosting] = field(default_factory=list)


def maximum_possible_loss(quantity: int, unit_cost: Optional[Decimal]) -> Decimal:
    """Cost of the removed units at supplier price; unknown cost counts as zero"""
    return (abs(quantity) * Decimal(unit_cost or 0)).quantize(CENTS)


def is_expiry_removal(movement) -> bool:
    return (
        movement.movement_type == MovementType.ADJUSTMENT
        and movement.reason == MovementReason.EXPIRY
        and movement.quantity < 0
    )


class ExpiryDispatcher:
    def __init__(
        self,
        db: AsyncSession,
        require_loss_amount: Optional[bool] = None,
        post_net_loss: Optional[bool] = None,
    ):
        self.db = db
        self.product_service = ProductService(db)
        self.ledger = FinancialLedgerService(db)
        self.require_loss_amount = settings.REQUIRE_LOSS_AMOUNT if require_loss_amount is None else require_loss_amount
        self.post_net_loss = settings.POST_NET_LOSS_ON_MANUAL_SALE if post_net_loss is None else post_net_loss

    async def suggested_loss(self, sku: str, quantity: int) -> Decimal:
        unit_cost = await self.product_service.get_unit_cost(sku)
        if unit_cost is None:
            logger.info(f"Unit cost unknown for SKU {sku}, using 0")
        return maximum_possible_loss(quantity, unit_cost)

    async def plan(
        self,
        movement_data: StockMovementCreate,
        context: Optional[ExpirySideEffectContext],
    ) -> Optional[ExpiryPostingPlan]:
        """Validate the submission and work out which postings it needs"""
        if not is_expiry_removal(movement_data):
            if context is not None:
                raise ValidationError("Expiry details only apply to negative expiry adjustments")
            return None

        if context is None:
            logger.warning(f"⚠️ Expiry removal for SKU {movement_data.sku} submitted without sale or loss details")
            return None

        sku = movement_data.sku
        units = abs(movement_data.quantity)
        max_loss = await self.suggested_loss(sku, movement_data.quantity)
        plan = ExpiryPostingPlan(mode=context.mode, maximum_possible_loss=max_loss)

        if context.mode == ExpiryMode.MANUAL_SALE:
            if context.sale_amount is not None:
                plan.sale_amount = Decimal(context.sale_amount).quantize(CENTS)
            if plan.sale_amount <= 0:
                raise ValidationError("Sale amount must be greater than zero for a manual sale")

            plan.postings.append(PlannedPosting(
                kind=PostingKind.REVENUE,
                amount=plan.sale_amount,
                category=settings.MANUAL_SALE_CATEGORY,
                description=f"Manual sale of {units} expired units of {sku}",
            ))

            if self.post_net_loss:
                plan.loss_amount = max(ZERO, max_loss - plan.sale_amount)
                if plan.loss_amount > 0:
                    plan.postings.append(PlannedPosting(
                        kind=PostingKind.EXPENSE,
                        amount=plan.loss_amount,
                        category=settings.EXPIRED_PRODUCTS_CATEGORY,
                        description=f"Unrecovered cost of {units} expired units of {sku} sold manually",
                    ))
            return plan

        require_loss_amount = self.require_loss_amount if context.require_loss_amount is None else context.require_loss_amount
        loss_amount = max_loss if context.loss_amount is None else Decimal(context.loss_amount).quantize(CENTS)

        if require_loss_amount and loss_amount <= 0:
            raise ValidationError("Loss amount must be greater than zero for a disposal")

        plan.loss_amount = loss_amount
        if loss_amount > 0:
            plan.postings.append(PlannedPosting(
                kind=PostingKind.EXPENSE,
                amount=loss_amount,
                category=settings.EXPIRED_PRODUCTS_CATEGORY,
                description=f"Disposal of {units} expired units of {sku}",
            ))
        else:
            logger.info(f"Expired stock of SKU {sku} disposed with no financial record")
        return plan

    async def dispatch(self, movement: StockMovement, plan: Optional[ExpiryPostingPlan]) -> List[FinancialPosting]:
        """
        Make the planned postings for a recorded movement.

        Each failed posting leaves a pending marker where one can be written;
        if any failed, PostingPartialFailure is raised after all postings
        were attempted.
        The movement is never rolled back.
        """
        if plan is None or not plan.postings:
            return []

        posted: List[FinancialPosting] = []
        pending_ids: List[int] = []
        errors: List[str] = []
        # A rollback expires the instance, so read what is needed up front
        movement_id, sku = movement.id, movement.sku
        entry_date = movement.movement_date.date() if movement.movement_date else date.today()

        for planned in plan.postings:
            try:
                category_id = await self.ledger.lookup_category_id(planned.category, planned.kind)
                posting = await self.ledger.post_entry(
                    kind=planned.kind,
                    amount=planned.amount,
                    entry_date=entry_date,
                    category=planned.category,
                    category_id=category_id,
                    description=planned.description,
                    reference=sku,
                )
                posted.append(posting)
            except Exception as e:
                logger.error(f"❌ {planned.kind.value.title()} posting for movement {movement_id} failed: {str(e)}")
                errors.append(str(e))
                pending_id = await self._record_pending(movement_id, sku, planned, entry_date, str(e))
                if pending_id is not None:
                    pending_ids.append(pending_id)

        if errors:
            raise PostingPartialFailure(movement_id, pending_ids, "; ".join(errors))

        return posted

    async def _record_pending(
        self, movement_id: int, sku: str, planned: PlannedPosting, entry_date: date, error: str
    ) -> Optional[int]:
        """Leave a retry marker; None when the marker could not be written either"""
        try:
            await self.db.rollback()
            pending = await self.ledger.record_pending_posting(
                movement_id=movement_id,
                sku=sku,
                kind=planned.kind,
                amount=planned.amount,
                entry_date=entry_date,
                category=planned.category,
                description=planned.description,
                error=error,
            )
            return pending.id
        except Exception as e:
            logger.critical(
                f"🚨 Could not record pending {planned.kind.value} posting of {planned.amount} "
                f"for movement {movement_id} (SKU {sku}): {str(e)}"
            )
            try:
                await self.db.rollback()
            except Exception as rollback_error:
                logger.error(f"❌ Rollback after failed pending marker raised: {str(rollback_error)}")
            return None
