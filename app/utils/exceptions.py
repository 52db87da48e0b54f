class BillingError(Exception):
    """Base class for ledger failures surfaced to the console."""
    code = "BILLING_ERROR"
    status_code = 400

    def __init__(self, message: str = None):
        self.message = message or self.__class__.__doc__ or self.code
        super().__init__(self.message)

class BillNotFoundError(BillingError):
    """Bill not found"""
    code = "NOT_FOUND"
    status_code = 404

class TenantNotFoundError(BillingError):
    """Tenant not found"""
    code = "NOT_FOUND"
    status_code = 404

class ValidationFailedError(BillingError):
    """Validation failed"""
    code = "VALIDATION_FAILED"
    status_code = 422

class StoreUnavailableError(BillingError):
    """Data store unavailable"""
    code = "STORE_UNAVAILABLE"
    status_code = 503

class ConcurrentUpdateError(BillingError):
    """Bill was modified concurrently, retry the operation"""
    code = "CONCURRENT_UPDATE"
    status_code = 409
