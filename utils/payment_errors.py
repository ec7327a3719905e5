"""
Payment webhook error types.
Each error knows the HTTP status it maps to and a client-safe message.
"""


class PaymentWebhookError(Exception):
    """Base class for errors reported back to the calling provider"""
    status_code = 500
    error = "Server error"

    def __init__(self, message=None):
        super().__init__(message or self.error)
        self.message = message

    def to_dict(self):
        body = {"error": self.error}
        if self.message:
            body["message"] = self.message
        return body


class SignatureMissing(PaymentWebhookError):
    status_code = 401
    error = "Missing signature"


class VerificationFailed(PaymentWebhookError):
    status_code = 401
    error = "Invalid signature"


class MalformedPayload(PaymentWebhookError):
    """Permanent: the provider should not blindly retry"""
    status_code = 400
    error = "Invalid webhook payload"


class TransactionNotFound(PaymentWebhookError):
    """May resolve on redelivery if the transaction row is still being created"""
    status_code = 404
    error = "Transaction not found"


class StoreWriteFailure(PaymentWebhookError):
    """Transient: provider redelivery is expected to fix it"""
    status_code = 500
    error = "Store write failed"


class ReconciliationInconsistency(StoreWriteFailure):
    """Transaction and subscription could not be updated together"""
    error = "Reconciliation incomplete"


class ProviderUnavailable(PaymentWebhookError):
    status_code = 502
    error = "Payment provider unavailable"
