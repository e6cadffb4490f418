"""Error taxonomy for the entitlement subsystem."""
from fastapi import Request
from fastapi.responses import JSONResponse


class EntitlementError(Exception):
    status_code = 500
    # What the caller is allowed to see; details stay in the logs
    public_message = "Something went wrong, please try again"

    def __init__(self, message: str = "", **context):
        super().__init__(message or self.public_message)
        self.message = message or self.public_message
        self.context = context


class InvalidSignature(EntitlementError):
    status_code = 400
    public_message = "Invalid webhook signature"


class MalformedPayload(InvalidSignature):
    public_message = "Malformed webhook payload"


class Misconfigured(EntitlementError):
    status_code = 500
    public_message = "Server misconfiguration"


class MissingSecret(Misconfigured):
    pass


class UnresolvableIdentity(EntitlementError):
    """Soft failure: the event is dropped and still acknowledged."""
    status_code = 200
    public_message = "Event could not be matched to a user"


class PersistenceFailure(EntitlementError):
    # non-200 so the provider redelivers
    status_code = 503
    public_message = "Temporary storage failure, please retry"


class QueryFailure(EntitlementError):
    status_code = 503
    public_message = "Could not load your subscription, please try again"


class PaymentProviderError(EntitlementError):
    status_code = 502
    public_message = "Payment provider unavailable, please try again"


async def entitlement_error_handler(request: Request, exc: EntitlementError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.public_message})
