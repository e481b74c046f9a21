"""
Generic OpenID Connect provider (Keycloak, Auth0, Okta, Azure AD, ...).

Endpoints come from the issuer's discovery document. The identity is read
from the id_token when one is returned; on any failure there the userinfo
endpoint is used instead.
"""

from typing import Any, Dict, List, Optional

import httpx
from loguru import logger

from headless_oauth.common.exceptions import (
    IdentityVerificationError,
    MissingFieldError,
    OAuthException,
)
from headless_oauth.core.cache import Cache
from headless_oauth.core.oauth.audit import BaseSecurityLogger, NullSecurityLogger
from headless_oauth.core.oauth.discovery import OidcDiscoveryService
from headless_oauth.core.oauth.jwks import BaseJwksVerifier, JwksVerifier, UnverifiedJwksVerifier
from headless_oauth.core.oauth.models import OAuthTokenData, OAuthUserData, split_full_name
from headless_oauth.core.oauth.providers.base import RefreshableOAuthProvider, require_fields

LOG_PREFIX = "[OIDCProvider]"

DEFAULT_NAME = "oidc"
DEFAULT_SCOPES = "openid email profile"
JWKS_CACHE_TTL = 3600


def user_data_from_claims(provider: str, claims: Dict[str, Any], what: str) -> OAuthUserData:
    """Map standard OIDC claims (id_token or userinfo) to OAuthUserData."""
    require_fields(claims, ["sub", "email"], what)

    first_name = claims.get("given_name") or claims.get("first_name")
    last_name = claims.get("family_name") or claims.get("last_name")
    if first_name is None and last_name is None:
        first_name, last_name = split_full_name(claims.get("name"))

    return OAuthUserData(
        provider=provider,
        provider_id=str(claims["sub"]),
        email=claims["email"],
        first_name=first_name,
        last_name=last_name,
    )


class OpenIdConnectProvider(RefreshableOAuthProvider):
    """Discovery-driven provider; the name is configurable per deployment."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        discovery: OidcDiscoveryService,
        client_id: Optional[str],
        client_secret: Optional[str],
        issuer_url: Optional[str],
        *,
        enabled: bool = True,
        verify_jwt: bool = True,
        provider_name: str = DEFAULT_NAME,
        display_name: Optional[str] = None,
        scopes: str = DEFAULT_SCOPES,
        cache: Optional[Cache] = None,
        audit_logger: Optional[BaseSecurityLogger] = None,
    ):
        super().__init__(http_client, enabled=enabled)
        self.discovery = discovery
        self.client_id = client_id or ""
        self.client_secret = client_secret or ""
        self.issuer_url = issuer_url or ""
        self.verify_jwt = verify_jwt
        self.name = provider_name or DEFAULT_NAME
        self.display_name = display_name or self.name[:1].upper() + self.name[1:]
        self.scopes = scopes
        self.cache = cache
        self.audit_logger = audit_logger or NullSecurityLogger()
        self._verifiers: Dict[str, BaseJwksVerifier] = {}
        self._unverified = UnverifiedJwksVerifier(required_claims=("sub",))
        self.validate_credentials()

    def _credentials(self) -> List[Dict[str, Optional[str]]]:
        return [
            {"key": "client_id", "value": self.client_id, "env": "OIDC_CLIENT_ID", "name": "client ID"},
            {"key": "client_secret", "value": self.client_secret, "env": "OIDC_CLIENT_SECRET", "name": "client secret"},
            {"key": "issuer_url", "value": self.issuer_url, "env": "OIDC_ISSUER_URL", "name": "issuer URL"},
        ]

    async def get_user_data(self, code: str, redirect_uri: str) -> OAuthUserData:
        token_endpoint = await self.discovery.get_token_endpoint(self.issuer_url)
        tokens = await self._post_form(
            token_endpoint,
            {
                "code": code,
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "redirect_uri": redirect_uri,
                "grant_type": "authorization_code",
            },
            action="exchange OIDC authorization code",
        )
        require_fields(tokens, ["access_token"], "OIDC token response")

        return await self.get_user_data_from_token_data(
            OAuthTokenData(
                access_token=tokens["access_token"],
                refresh_token=tokens.get("refresh_token"),
                id_token=tokens.get("id_token"),
            )
        )

    async def get_user_data_from_access_token(self, access_token: str) -> OAuthUserData:
        user_info = await self._fetch_user_info(access_token)
        return user_data_from_claims(self.name, user_info, "OIDC userinfo response")

    async def get_user_data_from_token_data(self, token_data: OAuthTokenData) -> OAuthUserData:
        if token_data.id_token:
            try:
                user_data = await self.get_user_data_from_id_token(token_data.id_token)
                return user_data.with_refresh_token(token_data.refresh_token)
            except OAuthException as e:
                logger.info(f"{LOG_PREFIX} [{self.name}] id_token unusable, falling back to userinfo: {e.message}")

        user_data = await self.get_user_data_from_access_token(token_data.access_token)
        return user_data.with_refresh_token(token_data.refresh_token)

    async def get_user_data_from_id_token(self, id_token: str) -> OAuthUserData:
        verifier = await self._get_verifier()
        try:
            claims = await verifier.verify(id_token)
        except IdentityVerificationError as e:
            self.audit_logger.log_jwt_verification_failure(self.name, e.message)
            raise
        return user_data_from_claims(self.name, claims, "OIDC id_token")

    async def refresh_tokens(self, refresh_token: str) -> OAuthTokenData:
        token_endpoint = await self.discovery.get_token_endpoint(self.issuer_url)
        data = await self._post_form(
            token_endpoint,
            {
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "refresh_token": refresh_token,
                "grant_type": "refresh_token",
            },
            action="refresh OIDC tokens",
        )
        require_fields(data, ["access_token"], "OIDC refresh token response")
        return self._token_data(data, data.get("refresh_token") or refresh_token)

    async def _get_verifier(self) -> BaseJwksVerifier:
        if not self.verify_jwt:
            return self._unverified

        jwks_uri = await self.discovery.get_jwks_uri(self.issuer_url)
        verifier = self._verifiers.get(jwks_uri)
        if verifier is None:
            verifier = JwksVerifier(
                self.http_client,
                jwks_uri,
                issuer=self.issuer_url,
                client_id=self.client_id,
                cache=self.cache,
                cache_ttl=JWKS_CACHE_TTL,
            )
            self._verifiers[jwks_uri] = verifier
        return verifier

    async def _fetch_user_info(self, access_token: str) -> Dict[str, Any]:
        endpoint = await self.discovery.get_userinfo_endpoint(self.issuer_url)
        if endpoint is None:
            raise MissingFieldError("OIDC provider does not expose a userinfo endpoint")

        user_info = await self._get_json(endpoint, "fetch OIDC user info", access_token=access_token)
        if not isinstance(user_info, dict):
            user_info = {}
        return user_info
