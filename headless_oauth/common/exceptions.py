"""
Unified exception family (single entry point)

- **AppException**: every error inherits `AppException(HTTPException)` so the HTTP layer
  can map it directly; `status_code` is only a hint, `code` carries the business code.
- **OAuthException**: root of every OAuth failure. Upstream faults are re-raised with
  `raise ... from exc` so the original cause stays chained.
- **Handlers**: `register_exception_handlers` wires the family into a FastAPI app,
  rendering `headless_oauth.common.response.error_response` bodies.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse, Response

from headless_oauth.common.response import error_response


class AppException(HTTPException):
    """Application base exception."""

    code: int
    data: Any

    def __init__(
        self,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        message: str = "Internal Server Error",
        *,
        code: int | None = None,
        data: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        super().__init__(status_code=status_code, detail=message, headers=headers)
        self.code = status_code if code is None else code
        self.data = data

    @property
    def message(self) -> str:
        return str(self.detail)

    def __str__(self) -> str:
        return self.message


# ==================== OAuth errors ====================


class OAuthException(AppException):
    """Base exception for all OAuth-related errors (default 400)."""

    def __init__(
        self,
        message: str = "An OAuth error occurred",
        status_code: int = status.HTTP_400_BAD_REQUEST,
        *,
        code: int | None = None,
        data: Any = None,
    ):
        super().__init__(status_code=status_code, message=message, code=code, data=data)


class ProviderTransportError(OAuthException):
    """The provider could not be reached or answered with an error status."""


class InvalidResponseError(OAuthException):
    """The provider answered with a body that is not valid JSON (or not the expected shape)."""


class MissingFieldError(OAuthException):
    """A required field is absent from a provider response."""


class ProviderError(OAuthException):
    """The provider reported an error in its response payload."""


class IdentityVerificationError(OAuthException):
    """An id_token failed signature, issuer, audience or claim checks (401)."""

    def __init__(self, message: str = "id_token verification failed", status_code: int = status.HTTP_401_UNAUTHORIZED):
        super().__init__(message, status_code)


class ProviderNotSupportedError(OAuthException):
    """Raised when no registered provider matches the requested name."""

    def __init__(self, provider: str, available: Optional[list[str]] = None):
        self.provider = provider
        names = ", ".join(available) if available else "none"
        super().__init__(f'OAuth provider "{provider}" is not supported. Available providers: {names}')


class UnsupportedOperationError(OAuthException):
    """The provider structurally cannot perform the requested operation."""


class RefreshNotSupportedError(OAuthException):
    """The matched provider cannot refresh tokens (or has refresh disabled)."""


class RedirectUriRejectedError(OAuthException):
    """The redirect URI is not in the configured allowlist."""

    def __init__(self, redirect_uri: str):
        self.redirect_uri = redirect_uri
        super().__init__(f'Redirect URI "{redirect_uri}" is not in the allowed list')


class UnknownProviderError(OAuthException):
    """The resolver was handed user data for a provider it cannot map."""


class CredentialNotConfiguredError(OAuthException):
    """A provider is enabled but one of its credentials is missing (500)."""

    def __init__(self, message: str):
        super().__init__(message, status.HTTP_500_INTERNAL_SERVER_ERROR)


class AccountLinkConflictError(OAuthException):
    """The account already holds a different identity for the same provider (409)."""

    def __init__(self, message: str):
        super().__init__(message, status.HTTP_409_CONFLICT)


# ==================== Handlers ====================


def create_error_response(*, status_code: int, code: int, message: str, data: Any = None) -> Response:
    """Build a unified error response."""
    return JSONResponse(
        status_code=status_code,
        content=error_response(message=message, code=code, data=data),
    )


async def app_exception_handler(request: Request, exc: AppException) -> Response:
    """Handle AppException (and therefore every OAuthException)."""
    return create_error_response(
        status_code=exc.status_code,
        code=getattr(exc, "code", exc.status_code),
        message=exc.message,
        data=getattr(exc, "data", None),
    )


def register_exception_handlers(app: Any) -> None:
    """Register the handlers on a FastAPI app."""
    app.add_exception_handler(AppException, app_exception_handler)
