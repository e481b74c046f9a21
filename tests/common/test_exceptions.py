"""Exception family and FastAPI handler tests."""

import json

import pytest
from fastapi import HTTPException

from headless_oauth.common.exceptions import (
    AccountLinkConflictError,
    AppException,
    CredentialNotConfiguredError,
    IdentityVerificationError,
    OAuthException,
    ProviderNotSupportedError,
    ProviderTransportError,
    RedirectUriRejectedError,
    app_exception_handler,
    register_exception_handlers,
)


class TestExceptionFamily:
    def test_oauth_exception_defaults(self):
        exc = OAuthException()
        assert isinstance(exc, AppException)
        assert isinstance(exc, HTTPException)
        assert exc.status_code == 400
        assert exc.code == 400
        assert str(exc) == "An OAuth error occurred"

    @pytest.mark.parametrize(
        "exc,status_code",
        [
            (IdentityVerificationError(), 401),
            (CredentialNotConfiguredError("missing"), 500),
            (AccountLinkConflictError("conflict"), 409),
            (ProviderTransportError("down", 502), 502),
            (RedirectUriRejectedError("https://evil"), 400),
        ],
    )
    def test_status_hints(self, exc, status_code):
        assert isinstance(exc, OAuthException)
        assert exc.status_code == status_code

    def test_provider_not_supported_lists_available(self):
        exc = ProviderNotSupportedError("myspace", ["google", "github"])
        assert exc.provider == "myspace"
        assert exc.message == 'OAuth provider "myspace" is not supported. Available providers: google, github'

    def test_provider_not_supported_without_providers(self):
        assert ProviderNotSupportedError("x").message.endswith("Available providers: none")

    def test_cause_is_chained(self):
        try:
            try:
                raise ConnectionError("reset")
            except ConnectionError as e:
                raise ProviderTransportError("Failed to exchange code") from e
        except ProviderTransportError as exc:
            assert isinstance(exc.__cause__, ConnectionError)


class TestHandlers:
    @pytest.mark.asyncio
    async def test_handler_renders_error_body(self):
        response = await app_exception_handler(None, AccountLinkConflictError("already linked"))

        assert response.status_code == 409
        body = json.loads(response.body)
        assert body["success"] is False
        assert body["code"] == 409
        assert body["message"] == "already linked"
        assert body["timestamp"].endswith("Z")

    def test_register(self):
        class App:
            def __init__(self):
                self.handlers = {}

            def add_exception_handler(self, exc_class, handler):
                self.handlers[exc_class] = handler

        app = App()
        register_exception_handlers(app)
        assert app.handlers == {AppException: app_exception_handler}
