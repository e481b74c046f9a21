"""
Provider factory.

Builds provider instances from `OAuthProviderConfig` entries through an
explicit registry of builders keyed by template name.

Usage:
    from headless_oauth.core.oauth.factory import build_providers

    providers = build_providers(get_oauth_config(), http_client, cache, audit_logger)
"""

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

import httpx
from loguru import logger

from headless_oauth.core.cache import Cache, NullCache
from headless_oauth.core.oauth.audit import BaseSecurityLogger, NullSecurityLogger, OAuthSecurityLogger
from headless_oauth.core.oauth.config import OAuthConfigLoader, OAuthProviderConfig, OAuthSettings
from headless_oauth.core.oauth.discovery import OidcDiscoveryService
from headless_oauth.core.oauth.jwks import BaseJwksVerifier, JwksVerifier, UnverifiedJwksVerifier
from headless_oauth.core.oauth.providers import (
    AppleClientSecretGenerator,
    AppleProvider,
    BaseOAuthProvider,
    FacebookProvider,
    GitHubProvider,
    GoogleProvider,
    LinkedInProvider,
    OpenIdConnectProvider,
)
from headless_oauth.core.oauth.providers import apple as apple_module
from headless_oauth.core.oauth.redirect import (
    BaseRedirectUriValidator,
    NullRedirectUriValidator,
    RedirectUriValidator,
)

LOG_PREFIX = "[OAuthFactory]"


@dataclass
class ProviderContext:
    """Shared collaborators handed to every provider builder."""

    http_client: httpx.AsyncClient
    cache: Cache
    audit_logger: BaseSecurityLogger
    discovery: OidcDiscoveryService
    verify_jwt: bool = True

    def verify_for(self, config: OAuthProviderConfig) -> bool:
        return self.verify_jwt if config.verify_jwt is None else config.verify_jwt


ProviderBuilder = Callable[[OAuthProviderConfig, ProviderContext], BaseOAuthProvider]


# ==================== Builders ====================


def _build_google(config: OAuthProviderConfig, ctx: ProviderContext) -> BaseOAuthProvider:
    return GoogleProvider(ctx.http_client, config.client_id, config.client_secret, enabled=config.enabled)


def _build_apple(config: OAuthProviderConfig, ctx: ProviderContext) -> BaseOAuthProvider:
    generator = AppleClientSecretGenerator(
        config.client_id, config.team_id, config.key_id, config.private_key_path
    )
    verifier: BaseJwksVerifier
    if ctx.verify_for(config):
        verifier = JwksVerifier(
            ctx.http_client,
            apple_module.JWKS_URL,
            issuer=apple_module.ISSUER,
            client_id=config.client_id,
            cache=ctx.cache,
            cache_ttl=apple_module.JWKS_CACHE_TTL,
            required_claims=("sub", "email"),
        )
    else:
        logger.warning(f"{LOG_PREFIX} Apple id_token signature verification is DISABLED")
        verifier = UnverifiedJwksVerifier(required_claims=("sub", "email"))
    return AppleProvider(
        ctx.http_client, generator, verifier, enabled=config.enabled, audit_logger=ctx.audit_logger
    )


def _build_facebook(config: OAuthProviderConfig, ctx: ProviderContext) -> BaseOAuthProvider:
    return FacebookProvider(ctx.http_client, config.client_id, config.client_secret, enabled=config.enabled)


def _build_github(config: OAuthProviderConfig, ctx: ProviderContext) -> BaseOAuthProvider:
    return GitHubProvider(ctx.http_client, config.client_id, config.client_secret, enabled=config.enabled)


def _build_linkedin(config: OAuthProviderConfig, ctx: ProviderContext) -> BaseOAuthProvider:
    return LinkedInProvider(ctx.http_client, config.client_id, config.client_secret, enabled=config.enabled)


def _build_oidc(config: OAuthProviderConfig, ctx: ProviderContext) -> BaseOAuthProvider:
    verify_jwt = ctx.verify_for(config)
    if not verify_jwt:
        logger.warning(f"{LOG_PREFIX} id_token signature verification is DISABLED for '{config.name}'")
    return OpenIdConnectProvider(
        ctx.http_client,
        ctx.discovery,
        config.client_id,
        config.client_secret,
        config.issuer_url,
        enabled=config.enabled,
        verify_jwt=verify_jwt,
        provider_name=config.name,
        display_name=config.display_name,
        scopes=config.scopes,
        cache=ctx.cache,
        audit_logger=ctx.audit_logger,
    )


# ==================== Registry ====================


class ProviderRegistry:
    """Template name -> provider builder."""

    def __init__(self) -> None:
        self._builders: Dict[str, ProviderBuilder] = {}

    def register(self, template: str, builder: ProviderBuilder) -> None:
        """
        Register a provider builder.

        Example:
            registry.register("custom", build_custom_provider)
        """
        self._builders[template.lower()] = builder
        logger.debug(f"{LOG_PREFIX} Registered provider builder: {template}")

    def templates(self) -> List[str]:
        return list(self._builders.keys())

    def build(self, config: OAuthProviderConfig, ctx: ProviderContext) -> BaseOAuthProvider:
        """
        Raises:
            ValueError: no builder for the config's template
            CredentialNotConfiguredError: an enabled provider lacks credentials
        """
        builder = self._builders.get(config.template.lower())
        if builder is None:
            raise ValueError(
                f"No provider builder registered for template '{config.template}'. "
                f"Available: {', '.join(self._builders)}"
            )
        return builder(config, ctx)


def default_registry() -> ProviderRegistry:
    """Registry with every built-in provider."""
    registry = ProviderRegistry()
    registry.register("google", _build_google)
    registry.register("apple", _build_apple)
    registry.register("facebook", _build_facebook)
    registry.register("github", _build_github)
    registry.register("linkedin", _build_linkedin)
    registry.register("oidc", _build_oidc)
    return registry


def build_providers(
    config: OAuthConfigLoader,
    http_client: httpx.AsyncClient,
    cache: Optional[Cache] = None,
    audit_logger: Optional[BaseSecurityLogger] = None,
    registry: Optional[ProviderRegistry] = None,
) -> List[BaseOAuthProvider]:
    """
    Instantiate every enabled provider, in config order.

    Raises:
        CredentialNotConfiguredError: an enabled provider lacks credentials
    """
    cache = NullCache() if cache is None else cache
    ctx = ProviderContext(
        http_client=http_client,
        cache=cache,
        audit_logger=audit_logger or NullSecurityLogger(),
        discovery=OidcDiscoveryService(http_client, cache),
        verify_jwt=config.settings.verify_jwt,
    )
    registry = registry or default_registry()

    providers: List[BaseOAuthProvider] = []
    for provider_config in config.get_all_providers().values():
        if not provider_config.enabled:
            continue
        providers.append(registry.build(provider_config, ctx))
        logger.info(f"{LOG_PREFIX} Built provider: {provider_config.name} ({provider_config.template})")
    return providers


def build_redirect_validator(oauth_settings: OAuthSettings) -> BaseRedirectUriValidator:
    if not oauth_settings.validate_redirect_uris:
        logger.warning(f"{LOG_PREFIX} Redirect URI validation is DISABLED")
        return NullRedirectUriValidator()
    if not oauth_settings.allowed_redirect_uris:
        logger.warning(f"{LOG_PREFIX} No allowed_redirect_uris configured, every redirect URI is accepted")
    return RedirectUriValidator(oauth_settings.allowed_redirect_uris)


def build_audit_logger(oauth_settings: OAuthSettings) -> BaseSecurityLogger:
    return OAuthSecurityLogger() if oauth_settings.audit_log else NullSecurityLogger()
