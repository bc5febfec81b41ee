"""
Stellar Service - builds, signs and submits payout transactions on the
Pi blockchain (a Stellar network) with the app wallet's private seed.
"""

import asyncio
import logging
from decimal import Decimal
from typing import Optional

from stellar_sdk import Asset, Keypair, Server, TransactionBuilder
from stellar_sdk.exceptions import NotFoundError as HorizonNotFoundError, SdkError

from omnigo.config import settings
from omnigo.errors import PiNetworkError

logger = logging.getLogger(__name__)

# Pi payment transactions must be submitted within this window
TRANSACTION_TIMEOUT_SECONDS = 180

STROOP = Decimal("0.0000001")


def format_amount(amount: Decimal) -> str:
    """Stellar amounts are strings with at most 7 decimal places."""
    return format(amount.quantize(STROOP), "f")


class StellarPayoutSigner:
    """Signs A2U payout transfers from the app wallet."""
    
    def __init__(
        self,
        private_seed: Optional[str] = None,
        horizon_url: Optional[str] = None,
        network_passphrase: Optional[str] = None,
    ):
        self.private_seed = settings.pi_wallet_private_seed if private_seed is None else private_seed
        self.horizon_url = horizon_url or settings.pi_horizon_url
        self.network_passphrase = network_passphrase or settings.pi_network_passphrase
    
    @property
    def is_configured(self) -> bool:
        """Stellar secret seeds always start with 'S'."""
        return bool(self.private_seed) and self.private_seed.startswith("S")
    
    async def submit_payment(
        self,
        destination: str,
        amount: Decimal,
        memo: str,
    ) -> str:
        """
        Transfer `amount` Pi to `destination` with `memo` (the Pi payment
        identifier) and return the transaction id.
        """
        return await asyncio.to_thread(self._submit_payment_sync, destination, amount, memo)
    
    def _submit_payment_sync(self, destination: str, amount: Decimal, memo: str) -> str:
        if not self.is_configured:
            raise PiNetworkError("Invalid PI_WALLET_PRIVATE_SEED (must start with S).")
        
        # Invalid seeds raise ValueError subclasses from the SDK
        try:
            keypair = Keypair.from_secret(self.private_seed)
        except (SdkError, ValueError) as e:
            raise PiNetworkError(f"Invalid PI_WALLET_PRIVATE_SEED: {e}") from e

        public_key = keypair.public_key
        server = Server(horizon_url=self.horizon_url)

        try:
            account = server.load_account(public_key)
            base_fee = server.fetch_base_fee()
        except HorizonNotFoundError as e:
            raise PiNetworkError(f"Wallet not funded: {public_key}") from e
        except SdkError as e:
            raise PiNetworkError(f"Stellar error: {e}") from e

        logger.info(f"App wallet {public_key[:8]}... loaded for payout")

        try:
            transaction = (
                TransactionBuilder(
                    source_account=account,
                    network_passphrase=self.network_passphrase,
                    base_fee=base_fee,
                )
                .append_payment_op(
                    destination=destination,
                    asset=Asset.native(),
                    amount=format_amount(amount),
                )
                .add_text_memo(memo)
                .set_timeout(TRANSACTION_TIMEOUT_SECONDS)
                .build()
            )
            transaction.sign(keypair)
        except (SdkError, ValueError) as e:
            raise PiNetworkError(f"Could not build payout transaction: {e}") from e
        
        try:
            response = server.submit_transaction(transaction)
        except SdkError as e:
            raise PiNetworkError(f"Transaction submission failed: {e}") from e
        
        if not response.get("successful", False):
            raise PiNetworkError(f"Transaction failed: {response}")
        
        txid = response["id"]
        logger.info(f"Submitted payout tx {txid} for payment {memo}")
        return txid
