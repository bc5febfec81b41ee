"""
Tests for the Pi Platform API client.
"""

import json
from decimal import Decimal

import httpx
import pytest

from omnigo.errors import OngoingPaymentError, PiNetworkError
from omnigo.services.pi_network_service import PiNetworkService, is_stuck_app_to_user_payment


def make_service(handler, max_attempts=3) -> PiNetworkService:
    return PiNetworkService(
        api_key="test-key",
        base_url="https://pi.test",
        max_attempts=max_attempts,
        backoff_seconds=0,
        transport=httpx.MockTransport(handler),
    )


class TestPiNetworkService:

    @pytest.mark.asyncio
    async def test_server_calls_use_api_key(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"identifier": "p1"})

        payment = await make_service(handler).approve_payment("p1")

        assert payment == {"identifier": "p1"}
        assert seen[0].url.path == "/v2/payments/p1/approve"
        assert seen[0].headers["Authorization"] == "Key test-key"

    @pytest.mark.asyncio
    async def test_retries_server_errors(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            if len(calls) < 3:
                return httpx.Response(502, text="bad gateway")
            return httpx.Response(200, json={"identifier": "p1"})

        payment = await make_service(handler).get_payment("p1")

        assert payment["identifier"] == "p1"
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_client_errors_not_retried(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(404, text="not found")

        with pytest.raises(PiNetworkError) as exc_info:
            await make_service(handler).get_payment("missing")

        assert exc_info.value.status_code == 404
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_transport_errors_exhaust_attempts(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(PiNetworkError, match="unreachable"):
            await make_service(handler, max_attempts=2).cancel_payment("p1")

        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_get_me_uses_bearer_token(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.headers["Authorization"] == "Bearer user-token"
            return httpx.Response(200, json={"uid": "u1", "username": "asha"})

        me = await make_service(handler).get_me("user-token")

        assert me["uid"] == "u1"

    @pytest.mark.asyncio
    async def test_get_me_failure_message(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, text="invalid token")

        with pytest.raises(PiNetworkError, match="Could not verify access token"):
            await make_service(handler).get_me("bad")

    @pytest.mark.asyncio
    async def test_create_payment_reports_ongoing_payment(self):
        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            assert body["amount"] == 9.5
            assert body["uid"] == "owner-uid"
            return httpx.Response(400, json={
                "error": "ongoing_payment_found",
                "payment": {"identifier": "stuck-1"},
            })

        with pytest.raises(OngoingPaymentError) as exc_info:
            await make_service(handler).create_app_to_user_payment(
                Decimal("9.5"), "Payout", {"orderId": "o1"}, "owner-uid"
            )

        assert exc_info.value.payment_identifier == "stuck-1"

    @pytest.mark.asyncio
    async def test_list_payments_accepts_wrapped_listing(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["direction"] == "app_to_user"
            return httpx.Response(200, json={"incomplete_server_payments": [{"identifier": "a"}]})

        payments = await make_service(handler).list_app_to_user_payments("owner-uid")

        assert payments == [{"identifier": "a"}]

    def test_mock_mode_without_key(self):
        assert not PiNetworkService(api_key="").is_configured


def test_stuck_payment_detection():
    assert is_stuck_app_to_user_payment({"status": {"developer_approved": True}})
    assert not is_stuck_app_to_user_payment({"status": {"developer_approved": True, "developer_completed": True}})
    assert not is_stuck_app_to_user_payment({"status": {"developer_approved": True, "cancelled": True}})
    assert not is_stuck_app_to_user_payment({})
