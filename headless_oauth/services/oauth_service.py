"""
OAuth service - business logic of the headless OAuth login flow

Features:
- authenticate: authorization code -> verified identity -> local account -> session token
- refresh: provider refresh token -> fresh identity -> session token
- provider listing, connection listing and unlinking
- POST_AUTHENTICATION hook after a successful code login (see core/oauth/events.py)
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import httpx
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from headless_oauth.common.exceptions import (
    OAuthException,
    ProviderNotSupportedError,
    RedirectUriRejectedError,
    RefreshNotSupportedError,
)
from headless_oauth.core.cache import Cache, build_cache
from headless_oauth.core.oauth.audit import BaseSecurityLogger, NullSecurityLogger, mask_email
from headless_oauth.core.oauth.config import OAuthConfigLoader, get_oauth_config
from headless_oauth.core.oauth.events import OAuthEventDispatcher, PostAuthenticationEvent
from headless_oauth.core.oauth.factory import build_audit_logger, build_providers, build_redirect_validator
from headless_oauth.core.oauth.providers.base import BaseOAuthProvider, RefreshableOAuthProvider
from headless_oauth.core.oauth.redirect import BaseRedirectUriValidator, NullRedirectUriValidator
from headless_oauth.core.security import TokenIssuer
from headless_oauth.core.settings import settings
from headless_oauth.repositories.account_store import AccountStore, SqlAlchemyAccountStore
from headless_oauth.services.user_resolver import UserResolver

LOG_PREFIX = "[OAuthService]"


@dataclass(frozen=True)
class OAuthResult:
    """Outcome of a successful login or refresh."""

    token: str
    refresh_token: Optional[str]
    customer_id: Optional[str]
    is_new_user: bool = False
    state: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "token": self.token,
            "refresh_token": self.refresh_token,
            "customer_id": self.customer_id,
            "is_new_user": self.is_new_user,
            "state": self.state,
        }


def _reason(exc: Exception) -> str:
    if isinstance(exc, ProviderNotSupportedError):
        return "Provider not supported"
    if isinstance(exc, OAuthException):
        return exc.message
    return f"Unexpected error: {exc}"


class OAuthService:
    """OAuth authentication service"""

    def __init__(
        self,
        providers: Sequence[BaseOAuthProvider],
        resolver: UserResolver,
        token_issuer: TokenIssuer,
        redirect_validator: Optional[BaseRedirectUriValidator] = None,
        audit_logger: Optional[BaseSecurityLogger] = None,
        store: Optional[AccountStore] = None,
        events: Optional[OAuthEventDispatcher] = None,
    ):
        self.providers = list(providers)
        self.resolver = resolver
        self.token_issuer = token_issuer
        self.redirect_validator = redirect_validator or NullRedirectUriValidator()
        self.audit_logger = audit_logger or NullSecurityLogger()
        self.store = store or resolver.store
        self.events = resolver.events if events is None else events

    # ==================== Provider lookup ====================

    def find_provider(self, provider_name: str) -> BaseOAuthProvider:
        """
        First provider whose `supports` matches (empty names never match).

        Raises:
            ProviderNotSupportedError: nothing matches
        """
        for provider in self.providers:
            if provider.supports(provider_name):
                return provider
        raise ProviderNotSupportedError(provider_name, [p.name for p in self.providers if p.enabled])

    def find_refreshable_provider(self, provider_name: str) -> RefreshableOAuthProvider:
        """
        Raises:
            ProviderNotSupportedError: nothing matches
            RefreshNotSupportedError: the match cannot refresh, or has refresh disabled
        """
        provider = self.find_provider(provider_name)
        if not isinstance(provider, RefreshableOAuthProvider):
            raise RefreshNotSupportedError(f'OAuth provider "{provider_name}" does not support token refresh')
        if not provider.supports_refresh():
            raise RefreshNotSupportedError(f'OAuth provider "{provider_name}" has refresh support disabled')
        return provider

    def list_providers(self) -> List[Dict[str, Any]]:
        """Enabled providers, for login buttons (no secrets)."""
        return [
            {
                "name": provider.name,
                "display_name": provider.display_name,
                "supports_refresh": isinstance(provider, RefreshableOAuthProvider) and provider.supports_refresh(),
            }
            for provider in self.providers
            if provider.enabled
        ]

    # ==================== Login flow ====================

    async def authenticate(
        self,
        provider_name: str,
        code: str,
        redirect_uri: str,
        state: Optional[str] = None,
    ) -> OAuthResult:
        """
        Exchange an authorization code for a session token.

        Args:
            provider_name: Provider name from the request path (case-insensitive)
            code: Authorization code from the provider callback
            redirect_uri: Redirect URI used in the authorization request
            state: Opaque client state, echoed back unchanged

        Raises:
            RedirectUriRejectedError: redirect URI not allowed (checked first)
            OAuthException: any provider, verification or account failure
        """
        try:
            self.redirect_validator.validate(redirect_uri)
        except RedirectUriRejectedError:
            self.audit_logger.log_redirect_uri_rejected(redirect_uri, provider_name)
            raise

        try:
            provider = self.find_provider(provider_name)
            user_data = await provider.get_user_data(code, redirect_uri)
            result = await self.resolver.resolve(user_data)
            token = self.token_issuer.create(result.shop_user)
            await self.events.dispatch(PostAuthenticationEvent(result.shop_user, user_data, result.is_new_user))
        except Exception as e:
            self.audit_logger.log_auth_failure(provider_name, _reason(e))
            raise

        self.audit_logger.log_auth_success(
            provider_name, user_data.email, result.customer.id, is_new_user=result.is_new_user
        )
        logger.info(
            f"{LOG_PREFIX} {provider.name} login for {mask_email(user_data.email)} "
            f"(customer={result.customer.id}, new={result.is_new_user})"
        )
        return OAuthResult(
            token=token,
            refresh_token=user_data.refresh_token,
            customer_id=result.customer.id,
            is_new_user=result.is_new_user,
            state=state,
        )

    async def refresh(self, provider_name: str, refresh_token: str) -> OAuthResult:
        """
        Refresh a session with a provider refresh token.

        The returned `refresh_token` is whatever the provider handed back:
        a rotated token (Apple), or the same one (Google), or None.

        Raises:
            ProviderNotSupportedError: no provider matches
            RefreshNotSupportedError: the provider cannot refresh
            OAuthException: refresh grant or identity lookup failed
        """
        try:
            provider = self.find_refreshable_provider(provider_name)
            token_data = await provider.refresh_tokens(refresh_token)
            user_data = await provider.get_user_data_from_token_data(token_data)
            result = await self.resolver.resolve(user_data)
            token = self.token_issuer.create(result.shop_user)
        except Exception as e:
            self.audit_logger.log_refresh_failure(provider_name, _reason(e))
            raise

        self.audit_logger.log_refresh_success(provider_name, result.customer.id)
        return OAuthResult(
            token=token,
            refresh_token=token_data.refresh_token,
            customer_id=result.customer.id,
            is_new_user=result.is_new_user,
        )

    # ==================== Connections ====================

    async def list_connections(self, customer_id: str) -> List[Dict[str, Any]]:
        """Enabled providers linked to the customer, with ISO-8601 `connected_at`."""
        identities = {identity.provider: identity for identity in await self.store.list_identities(customer_id)}

        connections: List[Dict[str, Any]] = []
        for provider in self.providers:
            if not provider.enabled:
                continue
            identity = identities.get(provider.name)
            if identity is None:
                continue
            connections.append(
                {
                    "provider": provider.name,
                    "display_name": provider.display_name,
                    "connected_at": identity.connected_at.isoformat() if identity.connected_at else None,
                }
            )
        return connections

    async def unlink(self, customer_id: str, provider_name: str) -> None:
        """
        Remove the customer's link to `provider_name`.

        Raises:
            OAuthException: customer unknown (404), provider not connected, or
                it is the last way a password-less user can log in
        """
        provider_name = provider_name.lower()
        customer = await self.store.get_customer(customer_id)
        if customer is None:
            raise OAuthException("Customer not found", 404)

        identities = await self.store.list_identities(customer_id)
        target = next((identity for identity in identities if identity.provider.lower() == provider_name), None)
        if target is None:
            raise OAuthException("Provider is not connected to this account")

        shop_user = await self.store.get_shop_user(customer)
        has_password = shop_user is not None and shop_user.has_usable_password
        if not has_password and len(identities) == 1:
            raise OAuthException(
                "Cannot unlink the last authentication method. "
                "Please set a password first or connect another provider."
            )

        try:
            await self.store.delete_identity(target)
            await self.store.commit()
        except Exception:
            await self.store.rollback()
            raise
        logger.info(f"{LOG_PREFIX} Unlinked {provider_name} from customer {customer_id}")


def create_oauth_service(
    db: AsyncSession,
    http_client: httpx.AsyncClient,
    config: Optional[OAuthConfigLoader] = None,
    cache: Optional[Cache] = None,
    token_issuer: Optional[TokenIssuer] = None,
    events: Optional[OAuthEventDispatcher] = None,
) -> OAuthService:
    """
    Wire an OAuthService from the YAML config.

    Raises:
        CredentialNotConfiguredError: an enabled provider lacks credentials
    """
    config = config or get_oauth_config()
    oauth_settings = config.settings
    cache = build_cache(oauth_settings.cache, settings.redis_url) if cache is None else cache
    audit_logger = build_audit_logger(oauth_settings)

    store = SqlAlchemyAccountStore(db)
    return OAuthService(
        providers=build_providers(config, http_client, cache, audit_logger),
        resolver=UserResolver(store, audit_logger, events=events),
        token_issuer=token_issuer or TokenIssuer(),
        redirect_validator=build_redirect_validator(oauth_settings),
        audit_logger=audit_logger,
        store=store,
    )
