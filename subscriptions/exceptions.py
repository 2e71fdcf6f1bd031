"""
Domain errors raised by the billing core.

NotFound and InvalidOperation are surfaced to the caller and never retried;
InvalidArgument signals malformed numeric or date input and is never coerced.
"""


class BillingError(Exception):
    """Base exception for the recurring billing core"""
    pass


class NotFound(BillingError):
    """Raised when an entity id has no record"""

    entity = 'Record'

    def __init__(self, identifier=None, message=None):
        self.identifier = identifier
        if message is None:
            message = f"{self.entity} not found: {identifier}"
        super().__init__(message)


class BusinessNotFound(NotFound):
    entity = 'Business'


class CustomerNotFound(NotFound):
    entity = 'Customer'


class PaymentPlanNotFound(NotFound):
    entity = 'Payment plan'


class SubscriptionNotFound(NotFound):
    entity = 'Subscription'


class PaymentNotFound(NotFound):
    entity = 'Payment'


class InvalidOperation(BillingError):
    """Raised when an action is incompatible with the current state"""
    pass


class InvalidPayment(InvalidOperation):
    """Raised when a payment cannot be taken for a subscription"""
    pass


class InvalidArgument(BillingError, ValueError):
    """Raised for malformed numeric or date input"""
    pass
