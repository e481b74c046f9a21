"""
Base classes for OAuth identity providers.

Every provider turns an authorization code into a verified `OAuthUserData`.
Providers that can refresh sessions additionally implement
`RefreshableOAuthProvider`.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import httpx

from headless_oauth.common.exceptions import MissingFieldError
from headless_oauth.core.oauth.credentials import CredentialValidator, is_configured
from headless_oauth.core.oauth.http import fetch_json, require_object
from headless_oauth.core.oauth.models import OAuthTokenData, OAuthUserData

LOG_PREFIX = "[OAuthProvider]"


def require_fields(data: Dict[str, Any], fields: List[str], what: str) -> None:
    """
    Raises:
        MissingFieldError: one of `fields` is absent or null in `data`
    """
    missing = [name for name in fields if data.get(name) in (None, "")]
    if missing:
        raise MissingFieldError(f"{what} missing required fields ({', '.join(missing)})")


class BaseOAuthProvider(ABC):
    """
    Base class for OAuth providers.

    Subclasses set `name` / `display_name` and implement `get_user_data`.
    Upstream failures surface as `OAuthException` subclasses.
    """

    name: str = "base"
    display_name: str = "Base"

    def __init__(self, http_client: httpx.AsyncClient, *, enabled: bool = True):
        self.http_client = http_client
        self.enabled = enabled
        self._credential_validator = CredentialValidator()

    def supports(self, provider: str) -> bool:
        """Case-insensitive name match; always False when disabled."""
        if not self.enabled or not provider:
            return False
        return provider.lower() == self.name.lower()

    def is_enabled(self) -> bool:
        return self.enabled

    @abstractmethod
    async def get_user_data(self, code: str, redirect_uri: str) -> OAuthUserData:
        """
        Exchange an authorization code for the user's identity.

        Args:
            code: Authorization code from the provider callback
            redirect_uri: Redirect URI used in the authorization request
        """

    # ==================== Credentials ====================

    def _credentials(self) -> List[Dict[str, Optional[str]]]:
        """`{"key", "value", "env", "name"}` items describing required credentials."""
        return []

    def credential_status(self) -> Dict[str, bool]:
        """Which credentials are configured, keyed by credential key."""
        return {str(item["key"]): is_configured(item["value"]) for item in self._credentials()}

    def validate_credentials(self) -> None:
        """
        Raises:
            CredentialNotConfiguredError: an enabled provider lacks a credential
        """
        if not self.enabled:
            return
        self._credential_validator.validate_many(self._credentials(), self.display_name)

    # ==================== HTTP ====================

    async def _post_form(
        self,
        url: str,
        data: Dict[str, Any],
        action: str,
        headers: Optional[Dict[str, str]] = None,
        error_in_body: bool = False,
    ) -> Dict[str, Any]:
        payload = await fetch_json(
            self.http_client,
            "POST",
            url,
            action=action,
            data=data,
            headers=headers,
            error_in_body=error_in_body,
        )
        return require_object(payload, action)

    async def _get_json(
        self,
        url: str,
        action: str,
        *,
        access_token: Optional[str] = None,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        error_in_body: bool = False,
    ) -> Any:
        request_headers = dict(headers or {})
        if access_token is not None:
            request_headers["Authorization"] = f"Bearer {access_token}"
        return await fetch_json(
            self.http_client,
            "GET",
            url,
            action=action,
            params=params,
            headers=request_headers or None,
            error_in_body=error_in_body,
        )

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name} enabled={self.enabled}>"


class RefreshableOAuthProvider(BaseOAuthProvider):
    """Provider that can refresh sessions via refresh tokens."""

    def supports_refresh(self) -> bool:
        return True

    @abstractmethod
    async def refresh_tokens(self, refresh_token: str) -> OAuthTokenData:
        """
        Run the refresh grant.

        Some providers (Apple) rotate the refresh token on every use; others
        (Google) keep returning the one that was sent.
        """

    @abstractmethod
    async def get_user_data_from_access_token(self, access_token: str) -> OAuthUserData:
        """Fetch the identity behind an access token (may be unsupported)."""

    async def get_user_data_from_token_data(self, token_data: OAuthTokenData) -> OAuthUserData:
        """Identity for a refreshed token set; userinfo lookup by default."""
        user_data = await self.get_user_data_from_access_token(token_data.access_token)
        return user_data.with_refresh_token(token_data.refresh_token)

    @staticmethod
    def _token_data(data: Dict[str, Any], refresh_token: Optional[str]) -> OAuthTokenData:
        expires_in = data.get("expires_in")
        return OAuthTokenData(
            access_token=data["access_token"],
            refresh_token=refresh_token,
            expires_in=int(expires_in) if str(expires_in).isdigit() else None,
            token_type=data.get("token_type"),
            id_token=data.get("id_token"),
        )
