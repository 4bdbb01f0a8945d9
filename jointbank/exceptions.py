"""
Domain exception classes and FastAPI exception handlers.

The service layer raises these domain errors without importing any HTTP
concepts. Each class carries the HTTP status and the machine-readable
`error_type` tag it maps to, so the handlers below translate every failure
into the same JSON envelope:

    {"success": false, "error": "<message>", "errorType": "<tag>"}

Exception hierarchy (closed set):
    BankAPIError (base, 500 "internal")
    ├── UnauthorizedAccessError (403)  — caller is not an owner of the account
    │   └── AuthenticationError (401)  — bad token or credentials
    │       └── InvalidCredentialsError
    ├── NotFoundError (404)
    │   ├── AccountNotFoundError
    │   ├── UserNotFoundError
    │   └── TransactionNotFoundError
    ├── InsufficientFundsError (400)   — debit larger than the balance
    └── InvalidRequestError (400)      — business-rule violation on the input
        ├── InvalidOTPError
        ├── DuplicateEmailError (409)
        └── AlreadyOwnerError (409)

Anything that is not a BankAPIError is reported as a generic 500. The raw
exception message is logged, never sent to the client.
"""

import logging
import uuid

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Base exception
# ---------------------------------------------------------------------------

class BankAPIError(Exception):
    """Base exception for all domain errors."""

    status_code = 500
    error_type = "internal"

    def __init__(self, detail: str = "An error occurred"):
        self.detail = detail
        super().__init__(self.detail)


# ---------------------------------------------------------------------------
# Authorization
# ---------------------------------------------------------------------------

class UnauthorizedAccessError(BankAPIError):
    """Raised when a user acts on an account they are not an owner of."""

    status_code = 403
    error_type = "unauthorized"

    def __init__(self, detail: str = "You do not have access to this account"):
        super().__init__(detail)


class AuthenticationError(UnauthorizedAccessError):
    """Raised when the caller's identity cannot be established."""

    status_code = 401
    error_type = "unauthenticated"

    def __init__(self, detail: str = "Could not validate credentials"):
        super().__init__(detail)


class InvalidCredentialsError(AuthenticationError):
    """Raised when login credentials are incorrect."""

    def __init__(self):
        super().__init__("Invalid credentials")


# ---------------------------------------------------------------------------
# Not found
# ---------------------------------------------------------------------------

class NotFoundError(BankAPIError):
    status_code = 404
    error_type = "not_found"


class AccountNotFoundError(NotFoundError):
    """Raised when a requested joint account does not exist."""

    def __init__(self, account_id: uuid.UUID):
        self.account_id = account_id
        super().__init__(f"Account {account_id} not found")


class UserNotFoundError(NotFoundError):
    """Raised when a referenced user does not exist."""

    def __init__(self, detail: str = "User not found"):
        super().__init__(detail)


class TransactionNotFoundError(NotFoundError):
    def __init__(self, transaction_id: uuid.UUID):
        self.transaction_id = transaction_id
        super().__init__(f"Transaction {transaction_id} not found")


# ---------------------------------------------------------------------------
# Business rules
# ---------------------------------------------------------------------------

class InsufficientFundsError(BankAPIError):
    """
    Raised when a withdrawal or transfer exceeds the current balance.

    Attributes:
        account_id: The account that lacks sufficient funds.
        requested_cents: The amount the user tried to debit.
        available_cents: The balance at the time of the attempt.
    """

    status_code = 400
    error_type = "insufficient_funds"

    def __init__(
        self,
        account_id: uuid.UUID,
        requested_cents: int,
        available_cents: int,
    ):
        self.account_id = account_id
        self.requested_cents = requested_cents
        self.available_cents = available_cents
        super().__init__("Insufficient funds")


class InvalidRequestError(BankAPIError):
    """Raised when a well-formed request breaks a business rule."""

    status_code = 400
    error_type = "invalid"


class InvalidOTPError(InvalidRequestError):
    pass


class DuplicateEmailError(InvalidRequestError):
    """Raised when attempting to register with an email that's already in use."""

    status_code = 409
    error_type = "duplicate_email"

    def __init__(self, email: str):
        self.email = email
        super().__init__(f"Email {email} is already registered")


class AlreadyOwnerError(InvalidRequestError):
    """Raised when inviting a user who already owns the account."""

    status_code = 409
    error_type = "already_owner"

    def __init__(self):
        super().__init__("User already has access to this account")


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

def error_envelope(status_code: int, message: str, error_type: str, **extra) -> JSONResponse:
    """Build the failure half of the {success, data | error} envelope."""
    content = {"success": False, "error": message, "errorType": error_type}
    content.update(extra)
    return JSONResponse(status_code=status_code, content=content)


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register the exception handlers with the FastAPI application.

    Starlette resolves handlers along the exception's MRO, so the
    InsufficientFundsError handler wins over the generic BankAPIError one.
    This is called once in main.py.
    """

    @app.exception_handler(InsufficientFundsError)
    async def insufficient_funds_handler(
        request: Request, exc: InsufficientFundsError
    ) -> JSONResponse:
        return error_envelope(
            exc.status_code,
            exc.detail,
            exc.error_type,
            requestedCents=exc.requested_cents,
            availableCents=exc.available_cents,
        )

    @app.exception_handler(BankAPIError)
    async def bank_api_error_handler(
        request: Request, exc: BankAPIError
    ) -> JSONResponse:
        headers = None
        if isinstance(exc, AuthenticationError):
            headers = {"WWW-Authenticate": "Bearer"}
        response = error_envelope(exc.status_code, exc.detail, exc.error_type)
        if headers:
            response.headers.update(headers)
        return response

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = [
            {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
            for err in exc.errors()
        ]
        return error_envelope(422, "Invalid request", "validation_error", details=errors)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        error_type = "unauthenticated" if exc.status_code == 401 else "http_error"
        response = error_envelope(exc.status_code, str(exc.detail), error_type)
        if exc.headers:
            response.headers.update(exc.headers)
        return response

    @app.exception_handler(Exception)
    async def internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(
            "unhandled_exception",
            extra={"path": request.url.path, "method": request.method},
        )
        return error_envelope(500, "Internal server error", "internal")
