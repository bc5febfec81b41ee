"""
Inventory Service - stock decrement on purchase and owner stock controls.
"""

import copy
import logging
import uuid
from typing import Dict, Any, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from omnigo.errors import AuthorizationError, BusinessRuleError, InsufficientStockError, NotFoundError
from omnigo.models.store import Product, Store
from omnigo.models.user import User
from omnigo.schemas.payment_metadata import CartItem

logger = logging.getLogger(__name__)


class InventoryService:
    """Service for product stock management."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_product(self, product_id: uuid.UUID) -> Optional[Product]:
        result = await self.db.execute(
            select(Product).where(Product.id == product_id)
        )
        return result.scalar_one_or_none()

    async def decrement_stock(self, store: Store, items: List[CartItem]) -> None:
        """
        Decrement stock for every purchased line.

        Lines with selected options on a product that has options decrement
        each chosen choice; other lines decrement the product quantity.
        Runs inside the caller's transaction: any error leaves the caller to
        roll back every decrement made so far.

        Raises:
            NotFoundError: a product no longer exists
            InsufficientStockError: stock is unknown or too low
        """
        if not store.tracks_stock:
            logger.debug(f"Store {store.id} ({store.store_type}) does not track stock")
            return

        for item in items:
            product = await self.get_product(item.id)
            if not product:
                raise NotFoundError(f"Product with ID {item.id} not found during stock update.")

            if product.options and item.options:
                self._decrement_choices(product, item)
            else:
                if product.quantity is None or product.quantity < item.quantity:
                    raise InsufficientStockError(f"Not enough stock for {product.name}.")
                product.quantity = product.quantity - item.quantity

        await self.db.flush()
        logger.info(f"Stock decremented for {len(items)} line(s) in store {store.id}")

    def _decrement_choices(self, product: Product, item: CartItem) -> None:
        # JSON column: assign a new list so the change is tracked
        options: List[Dict[str, Any]] = copy.deepcopy(product.options)
        updated = False

        for title, choice_names in item.selected_choices().items():
            group = next((o for o in options if o.get("title") == title), None)
            if group is None:
                continue
            for choice_name in choice_names:
                choice = next(
                    (c for c in group.get("choices", []) if c.get("name") == choice_name),
                    None,
                )
                if choice is None:
                    continue
                stock = choice.get("quantity")
                if stock is None or stock < item.quantity:
                    raise InsufficientStockError(
                        f"Not enough stock for {product.name} - {choice['name']}."
                    )
                choice["quantity"] = stock - item.quantity
                updated = True

        if updated:
            product.options = options

    async def _get_owned_product(self, user: User, product_id: uuid.UUID) -> tuple:
        product = await self.get_product(product_id)
        if not product:
            raise NotFoundError("Product not found.")

        result = await self.db.execute(
            select(Store).where(Store.id == product.store_id)
        )
        store = result.scalar_one_or_none()
        if not store or store.owner_id != user.id:
            raise AuthorizationError("You are not authorized to update this inventory.")

        return product, store

    async def set_product_quantity(
        self,
        user: User,
        product_id: uuid.UUID,
        quantity: int,
    ) -> int:
        """
        Set a product's stock. Negative values clamp to 0 and availability
        follows the new quantity. Returns the stored quantity.
        """
        product, store = await self._get_owned_product(user, product_id)

        if not store.tracks_stock:
            raise BusinessRuleError("Quantity management is not available for restaurants.")

        new_quantity = max(0, quantity)
        product.quantity = new_quantity
        product.is_available = new_quantity > 0
        await self.db.flush()

        logger.info(f"Product {product_id} quantity set to {new_quantity}")
        return new_quantity

    async def update_product_availability(
        self,
        user: User,
        product_id: uuid.UUID,
        is_available: bool,
    ) -> None:
        product, _ = await self._get_owned_product(user, product_id)
        product.is_available = is_available
        await self.db.flush()

        logger.info(f"Product {product_id} availability set to {is_available}")
