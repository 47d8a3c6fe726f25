from fastapi import APIRouter
from stock_ledger.api.v1.endpoints.inventory import stock_reconciliation

api_router = APIRouter()

# Inventory routes
api_router.include_router(stock_reconciliation.router, prefix="/inventory/stock-reconciliation", tags=["Inventory"])
