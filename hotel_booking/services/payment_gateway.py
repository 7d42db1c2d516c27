"""
Stand-in for a real payment processor.

Charges succeed unless the card number ends in ``DECLINED_CARD_SUFFIX``,
which mirrors the test-card convention of hosted gateways.
"""
import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from ..models import PaymentMethod

logger = logging.getLogger(__name__)

DECLINED_CARD_SUFFIX = "0002"
CARD_METHODS = (PaymentMethod.CREDIT_CARD, PaymentMethod.DEBIT_CARD)


@dataclass(frozen=True)
class ChargeRequest:
    amount: Decimal
    currency: str
    method: PaymentMethod
    reference: str
    card_number: Optional[str] = None


@dataclass(frozen=True)
class GatewayResponse:
    success: bool
    transaction_id: Optional[str]
    message: str


def new_transaction_id() -> str:
    return f"txn_{uuid.uuid4().hex[:24]}"


class MockPaymentGateway:
    def charge(self, request: ChargeRequest) -> GatewayResponse:
        digits = "".join(ch for ch in (request.card_number or "") if ch.isdigit())
        if request.method in CARD_METHODS and digits.endswith(DECLINED_CARD_SUFFIX):
            logger.info("Mock gateway declined charge for %s", request.reference)
            return GatewayResponse(success=False, transaction_id=None, message="Card declined")
        txn = new_transaction_id()
        logger.info("Mock gateway charged %s %s for %s (%s)", request.amount, request.currency, request.reference, txn)
        return GatewayResponse(success=True, transaction_id=txn, message="Approved")

    def refund(self, transaction_id: Optional[str], amount: Decimal) -> GatewayResponse:
        if not transaction_id:
            return GatewayResponse(success=False, transaction_id=None, message="Unknown transaction")
        logger.info("Mock gateway refunded %s on %s", amount, transaction_id)
        return GatewayResponse(success=True, transaction_id=transaction_id, message="Refunded")


def get_payment_gateway() -> MockPaymentGateway:
    """FastAPI dependency; tests override it to script gateway behaviour."""
    return MockPaymentGateway()
