from __future__ import annotations

from fastapi import status


class BillingError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST
    error = "Billing request failed"

    def __init__(self, details: str | None = None, *, error: str | None = None) -> None:
        self.details = details
        if error is not None:
            self.error = error
        super().__init__(details or self.error)

    def payload(self) -> dict[str, str | None]:
        return {"error": self.error, "details": self.details}


class InvalidRequestError(BillingError):
    status_code = status.HTTP_400_BAD_REQUEST
    error = "Invalid request"


class NotFoundError(BillingError):
    status_code = status.HTTP_404_NOT_FOUND
    error = "Not found"


class SignatureInvalidError(BillingError):
    status_code = status.HTTP_400_BAD_REQUEST
    error = "Invalid signature"


class ProcessorError(BillingError):
    """A payment processor call failed; no local state was changed for it."""

    status_code = status.HTTP_502_BAD_GATEWAY
    error = "Payment processor error"

    def __init__(self, code: str | None, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(message)

    def payload(self) -> dict[str, str | None]:
        body = super().payload()
        body["code"] = self.code
        return body
