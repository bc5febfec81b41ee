"""
Tests for order chat and notifications.
"""

import uuid

import pytest

from omnigo.errors import AuthorizationError, BusinessRuleError, NotFoundError
from omnigo.fsm.states import NotificationType
from omnigo.services.chat_service import ChatService
from omnigo.services.notification_service import NotificationService


class TestChatService:

    @pytest.mark.asyncio
    async def test_owner_opens_conversation_once(self, db, make_user, make_store, make_order):
        owner = await make_user()
        customer = await make_user()
        order = await make_order(customer, await make_store(owner))
        service = ChatService(db)

        conversation = await service.find_or_create_conversation_for_order(owner, order.id)
        again = await service.find_or_create_conversation_for_order(owner, order.id)

        assert again.id == conversation.id
        assert conversation.participants == sorted([str(owner.id), str(customer.id)])
        assert conversation.unread_counts == {str(owner.id): 0, str(customer.id): 0}

    @pytest.mark.asyncio
    async def test_assigned_driver_may_open(self, db, make_user, make_store, make_order):
        driver = await make_user(roles=["driver"])
        order = await make_order(await make_user(), await make_store(await make_user()), driver_id=driver.id)

        conversation = await ChatService(db).find_or_create_conversation_for_order(driver, order.id)

        assert conversation.has_participant(driver.id)

    @pytest.mark.asyncio
    async def test_customer_cannot_open(self, db, make_user, make_store, make_order):
        customer = await make_user()
        order = await make_order(customer, await make_store(await make_user()))

        with pytest.raises(AuthorizationError, match="not authorized to start a chat"):
            await ChatService(db).find_or_create_conversation_for_order(customer, order.id)

    @pytest.mark.asyncio
    async def test_send_message_counts_unread(self, db, make_user, make_store, make_order):
        owner = await make_user()
        customer = await make_user()
        order = await make_order(customer, await make_store(owner))
        service = ChatService(db)
        conversation = await service.find_or_create_conversation_for_order(owner, order.id)

        await service.send_message(owner, conversation.id, " Your order is on the way ")

        assert conversation.last_message == "Your order is on the way"
        assert conversation.unread_counts == {str(owner.id): 0, str(customer.id): 1}

    @pytest.mark.asyncio
    async def test_outsider_and_archived(self, db, make_user, make_store, make_order):
        owner = await make_user()
        order = await make_order(await make_user(), await make_store(owner))
        service = ChatService(db)
        conversation = await service.find_or_create_conversation_for_order(owner, order.id)

        with pytest.raises(NotFoundError):
            await service.send_message(await make_user(), conversation.id, "hi")

        assert await service.archive_order_conversation(order.id) is True
        with pytest.raises(BusinessRuleError, match="archived"):
            await service.send_message(owner, conversation.id, "hi")

        assert await service.archive_order_conversation(uuid.uuid4()) is False


class TestNotificationService:

    @pytest.mark.asyncio
    async def test_mark_read(self, db, make_user):
        user = await make_user()
        service = NotificationService(db)
        first = await service.create(user.id, "one", NotificationType.PROMOTION)
        await service.create(user.id, "two", NotificationType.PROMOTION)

        with pytest.raises(AuthorizationError):
            await service.mark_as_read((await make_user()).id, first.id)

        await service.mark_as_read(user.id, first.id)
        assert first.is_read is True

        assert await service.mark_all_as_read(user.id) == 1
        assert await service.mark_all_as_read(user.id) == 0

    @pytest.mark.asyncio
    async def test_unknown_notification(self, db, make_user):
        with pytest.raises(NotFoundError):
            await NotificationService(db).mark_as_read((await make_user()).id, uuid.uuid4())
