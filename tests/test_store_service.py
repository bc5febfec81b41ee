"""
Tests for Pi account linking and owner inventory controls.
"""

import pytest
from sqlalchemy import select

from omnigo.errors import AuthorizationError, BusinessRuleError
from omnigo.fsm.states import StoreType
from omnigo.models.user import User, UserProfile
from omnigo.services.inventory_service import InventoryService
from omnigo.services.store_service import StoreService


class TestLinkPiAccount:

    @pytest.mark.asyncio
    async def test_link_updates_every_owned_store(self, db, make_user, make_store):
        owner = await make_user()
        first = await make_store(owner, pi_uid=None, name="First")
        second = await make_store(owner, pi_uid=None, name="Second")
        other = await make_store(await make_user(), pi_uid="someone-else", name="Other")

        profile = await StoreService(db).link_pi_account(owner, "  new-uid ", pi_username="asha", wallet_address="GWALLET")

        assert profile.pi_uid == "new-uid"
        for store in (first, second, other):
            await db.refresh(store)
        assert (first.pi_uid, first.pi_wallet_address) == ("new-uid", "GWALLET")
        assert second.has_payout_destination
        assert other.pi_uid == "someone-else"

    @pytest.mark.asyncio
    async def test_creates_missing_profile(self, db):
        user = User(token_identifier="no-profile")
        db.add(user)
        await db.flush()

        await StoreService(db).link_pi_account(user, "uid-1")

        result = await db.execute(select(UserProfile).where(UserProfile.user_id == user.id))
        assert result.scalar_one().pi_uid == "uid-1"

    @pytest.mark.asyncio
    async def test_blank_uid_rejected(self, db, make_user):
        with pytest.raises(BusinessRuleError):
            await StoreService(db).link_pi_account(await make_user(), "   ")


class TestInventoryControls:

    @pytest.mark.asyncio
    async def test_set_quantity_clamps_and_tracks_availability(self, db, make_user, make_store, make_product):
        owner = await make_user()
        product = await make_product(await make_store(owner), quantity=3)
        service = InventoryService(db)

        assert await service.set_product_quantity(owner, product.id, -4) == 0
        assert product.is_available is False

        assert await service.set_product_quantity(owner, product.id, 7) == 7
        assert product.is_available is True

    @pytest.mark.asyncio
    async def test_restaurant_quantity_rejected(self, db, make_user, make_store, make_product):
        owner = await make_user()
        product = await make_product(await make_store(owner, store_type=StoreType.RESTAURANT))

        with pytest.raises(BusinessRuleError, match="not available for restaurants"):
            await InventoryService(db).set_product_quantity(owner, product.id, 5)

    @pytest.mark.asyncio
    async def test_only_owner_updates(self, db, make_user, make_store, make_product):
        product = await make_product(await make_store(await make_user()))

        with pytest.raises(AuthorizationError, match="not authorized to update this inventory"):
            await InventoryService(db).update_product_availability(await make_user(), product.id, False)

    @pytest.mark.asyncio
    async def test_availability_toggle(self, db, make_user, make_store, make_product):
        owner = await make_user()
        product = await make_product(await make_store(owner))

        await InventoryService(db).update_product_availability(owner, product.id, False)

        await db.refresh(product)
        assert product.is_available is False
