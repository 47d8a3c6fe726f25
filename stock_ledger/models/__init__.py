from stock_ledger.models.shared.enums import Base
from stock_ledger.models.inventory.product import Product
from stock_ledger.models.inventory.stock_movement import StockMovement
from stock_ledger.models.inventory.stock_reconciliation import StockReconciliation
from stock_ledger.models.finance.financial_category import FinancialCategory
from stock_ledger.models.finance.financial_posting import FinancialPosting
from stock_ledger.models.finance.pending_posting import PendingPosting


__all__ = [
    "Base",
    "Product",
    "StockMovement",
    "StockReconciliation",
    "FinancialCategory",
    "FinancialPosting",
    "PendingPosting",
]
