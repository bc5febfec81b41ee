"""
Pi Network Service - server-side calls to the Pi Platform REST API.
"""

import asyncio
import json
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

import httpx

from omnigo.config import settings
from omnigo.errors import OngoingPaymentError, PiNetworkError
from omnigo.fsm.states import PaymentDirection

logger = logging.getLogger(__name__)


class PiNetworkService:
    """
    Client for the Pi Platform API.

    Server calls authenticate with `Key <api key>`; `/v2/me` uses the
    user's own access token. Transport errors and 5xx responses are retried
    with exponential backoff.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        max_attempts: Optional[int] = None,
        backoff_seconds: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = settings.pi_api_key if api_key is None else api_key
        self.base_url = base_url or settings.pi_api_base_url
        self.max_attempts = max_attempts or settings.pi_http_max_attempts
        self.backoff_seconds = (
            settings.pi_http_backoff_seconds if backoff_seconds is None else backoff_seconds
        )
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        """False means development mock mode (no PI_API_KEY)."""
        return bool(self.api_key)

    def _server_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Key {self.api_key}",
            "Content-Type": "application/json",
        }

    async def _request(
        self,
        method: str,
        path: str,
        headers: Dict[str, str],
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        retry_client_errors: bool = False,
    ) -> httpx.Response:
        """
        Send a request, retrying transient failures.

        Returns the successful response; raises PiNetworkError otherwise.
        4xx responses are returned to the caller's error handling without
        retry unless `retry_client_errors` is set.
        """
        last_error: Optional[PiNetworkError] = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                async with httpx.AsyncClient(
                    base_url=self.base_url,
                    timeout=30.0,
                    transport=self._transport,
                ) as client:
                    response = await client.request(
                        method,
                        path,
                        headers=headers,
                        json=json,
                        params=params,
                    )

                if response.is_success:
                    return response

                last_error = PiNetworkError(
                    f"Pi API {method} {path} failed with status {response.status_code}: {response.text}",
                    status_code=response.status_code,
                    body=response.text,
                )
                if response.status_code < 500 and not retry_client_errors:
                    raise last_error

            except httpx.TransportError as e:
                last_error = PiNetworkError(f"Pi API {method} {path} unreachable: {e}")

            if attempt < self.max_attempts:
                delay = self.backoff_seconds * (2 ** (attempt - 1))
                logger.warning(f"Pi API attempt {attempt}/{self.max_attempts} failed: {last_error}. Retrying in {delay}s")
                await asyncio.sleep(delay)

        assert last_error is not None
        raise last_error

    async def get_me(self, access_token: str) -> Dict[str, Any]:
        """
        Resolve a user access token to the Pi user (`uid`, `username`).

        Every failure is retried, since token checks are flaky on Pi's side.
        """
        try:
            response = await self._request(
                "GET",
                "/v2/me",
                headers={"Authorization": f"Bearer {access_token}"},
                retry_client_errors=True,
            )
        except PiNetworkError as e:
            logger.error(f"Pi access token verification failed: {e}")
            raise PiNetworkError(
                "Pi payment approval failed: Could not verify access token with Pi servers.",
                status_code=e.status_code,
            ) from e
        return response.json()

    async def get_payment(self, payment_id: str) -> Dict[str, Any]:
        response = await self._request(
            "GET",
            f"/v2/payments/{payment_id}",
            headers=self._server_headers(),
        )
        return response.json()

    async def approve_payment(self, payment_id: str) -> Dict[str, Any]:
        response = await self._request(
            "POST",
            f"/v2/payments/{payment_id}/approve",
            headers=self._server_headers(),
        )
        return response.json()

    async def complete_payment(self, payment_id: str, txid: Optional[str]) -> Dict[str, Any]:
        response = await self._request(
            "POST",
            f"/v2/payments/{payment_id}/complete",
            headers=self._server_headers(),
            json={"txid": txid},
        )
        return response.json()

    async def cancel_payment(self, payment_id: str) -> Dict[str, Any]:
        response = await self._request(
            "POST",
            f"/v2/payments/{payment_id}/cancel",
            headers=self._server_headers(),
        )
        return response.json()

    async def list_app_to_user_payments(self, uid: str) -> List[Dict[str, Any]]:
        """List A2U payments addressed to a Pi user."""
        response = await self._request(
            "GET",
            "/v2/payments",
            headers=self._server_headers(),
            params={"uid": uid, "direction": PaymentDirection.APP_TO_USER.value},
        )
        data = response.json()
        # Bare list, or a listing wrapped in an object
        if isinstance(data, dict):
            return data.get("incomplete_server_payments") or data.get("payments") or []
        return data

    async def create_app_to_user_payment(
        self,
        amount: Decimal,
        memo: str,
        metadata: Dict[str, Any],
        uid: str,
    ) -> Dict[str, Any]:
        """
        Open an A2U payment.

        Raises OngoingPaymentError when Pi reports another open payment for
        the same user; the caller decides whether to cancel and retry.
        """
        body = {
            "amount": float(amount),
            "memo": memo,
            "metadata": metadata,
            "uid": uid,
        }
        try:
            response = await self._request(
                "POST",
                "/v2/payments",
                headers=self._server_headers(),
                json=body,
            )
        except PiNetworkError as e:
            ongoing = _ongoing_payment_identifier(e)
            if ongoing:
                raise OngoingPaymentError(ongoing) from e
            raise
        return response.json()


def is_stuck_app_to_user_payment(payment: Dict[str, Any]) -> bool:
    """Approved by us but never completed or cancelled."""
    status = payment.get("status") or {}
    return bool(
        status.get("developer_approved")
        and not status.get("developer_completed")
        and not status.get("cancelled")
    )


def _ongoing_payment_identifier(error: PiNetworkError) -> Optional[str]:
    """Extract the blocking payment id from an `ongoing_payment_found` error."""
    if not error.body:
        return None
    try:
        body = json.loads(error.body)
    except ValueError:
        return None
    if not isinstance(body, dict) or body.get("error") != "ongoing_payment_found":
        return None
    return (body.get("payment") or {}).get("identifier")
