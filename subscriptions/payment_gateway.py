"""
Simulated Payment Gateway

No real provider is integrated. The gateway only issues transaction ids and
builds the redirect/checkout URLs that the hosted payment page would use;
the result of the payment comes back through PaymentService.verify_payment.
"""

import logging
import time
import uuid
from decimal import Decimal
from urllib.parse import urlencode

from django.conf import settings

logger = logging.getLogger(__name__)


class SimulatedPaymentGateway:
    """Issues transaction ids and checkout URLs for the hosted payment page"""

    def __init__(self, checkout_url=None, link_base_url=None):
        self.checkout_url = checkout_url or getattr(
            settings, 'PAYMENT_GATEWAY_URL', 'http://localhost:8000/payment-gateway/'
        )
        self.link_base_url = link_base_url or getattr(
            settings, 'PAYMENT_LINK_BASE_URL', 'https://payment.example.com/pay/'
        )

    def generate_transaction_id(self) -> str:
        """
        Unique transaction reference: TXN-<epoch millis>-<8 hex chars>.
        The random suffix keeps ids unique within the same millisecond.
        """
        millis = int(time.time() * 1000)
        return f"TXN-{millis}-{uuid.uuid4().hex[:8]}"

    def build_checkout_url(self, transaction_id: str, amount: Decimal) -> str:
        """URL the customer is redirected to in order to complete the payment"""
        query = urlencode({'transactionId': transaction_id, 'amount': str(amount)})
        return f"{self.checkout_url}?{query}"

    def build_payment_link(self, subscription_id) -> str:
        """Shareable link for paying a subscription outside of an initiated transaction"""
        link = f"{self.link_base_url.rstrip('/')}/{subscription_id}/{uuid.uuid4()}"
        logger.info(f"Payment link generated: {link}")
        return link


# Default gateway instance
payment_gateway = SimulatedPaymentGateway()
