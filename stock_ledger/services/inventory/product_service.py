from decimal import Decimal
from typing import Dict, List, Optional, Sequence
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from stock_ledger.models.inventory.product import Product
from stock_ledger.schemas.inventory.reconciliation import ProductRef

class ProductService:
    """Catalog lookups: names, unit costs and product references"""

    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def display_name(product: Optional[Product], sku: str) -> str:
        if product is None:
            return f"Unknown Product ({sku})"
        if product.is_variation:
            if product.parent_name:
                return f"{product.parent_name} - {product.name}"
            return f"{product.name} (Variation)"
        return product.name or "Unnamed Product"

    async def get_products_by_skus(self, skus: Sequence[str]) -> Dict[str, Product]:
        if not skus:
            return {}
        result = await self.db.execute(select(Product).where(Product.sku.in_(list(skus))))
        return {product.sku: product for product in result.scalars().all()}

    async def get_all_skus(self) -> List[str]:
        result = await self.db.execute(select(Product.sku).order_by(Product.sku))
        return list(result.scalars().all())

    async def get_unit_cost(self, sku: str) -> Optional[Decimal]:
        """Supplier unit price, or None when the SKU or its price is unknown"""
        result = await self.db.execute(select(Product.supplier_price).where(Product.sku == sku))
        return result.scalar_one_or_none()

    async def get_product_refs(self) -> List[ProductRef]:
        result = await self.db.execute(select(Product).order_by(Product.name))
        return [ProductRef.model_validate(product) for product in result.scalars().all()]
