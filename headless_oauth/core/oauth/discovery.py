"""
OpenID Connect discovery.

Fetches and caches `<issuer>/.well-known/openid-configuration`.
"""

import hashlib
from typing import Any, Dict, Optional

import httpx
from loguru import logger

from headless_oauth.common.exceptions import InvalidResponseError, MissingFieldError, OAuthException
from headless_oauth.core.cache import Cache, NullCache
from headless_oauth.core.oauth.http import fetch_json

LOG_PREFIX = "[OIDCDiscovery]"

DISCOVERY_TTL = 3600

REQUIRED_FIELDS = ("issuer", "authorization_endpoint", "token_endpoint", "jwks_uri")


def discovery_url(issuer_url: str) -> str:
    return issuer_url.rstrip("/") + "/.well-known/openid-configuration"


class OidcDiscoveryService:
    """Resolves provider endpoints from the discovery document."""

    def __init__(self, http_client: httpx.AsyncClient, cache: Optional[Cache] = None, cache_ttl: int = DISCOVERY_TTL):
        self.http_client = http_client
        self.cache = NullCache() if cache is None else cache
        self.cache_ttl = cache_ttl

    @staticmethod
    def cache_key(issuer_url: str) -> str:
        return "oidc_discovery_" + hashlib.md5(issuer_url.encode("utf-8")).hexdigest()

    async def discover(self, issuer_url: str) -> Dict[str, Any]:
        """
        Return the discovery document for `issuer_url`.

        At minimum it carries `issuer`, `authorization_endpoint`,
        `token_endpoint` and `jwks_uri` as strings.

        Raises:
            OAuthException: fetch failed or the document is invalid
        """

        async def _fetch() -> Dict[str, Any]:
            return await self._fetch_configuration(issuer_url)

        return await self.cache.get_or_set(self.cache_key(issuer_url), self.cache_ttl, _fetch)

    async def get_token_endpoint(self, issuer_url: str) -> str:
        return (await self.discover(issuer_url))["token_endpoint"]

    async def get_userinfo_endpoint(self, issuer_url: str) -> Optional[str]:
        endpoint = (await self.discover(issuer_url)).get("userinfo_endpoint")
        return endpoint if isinstance(endpoint, str) and endpoint else None

    async def get_jwks_uri(self, issuer_url: str) -> str:
        return (await self.discover(issuer_url))["jwks_uri"]

    async def supports_scope(self, issuer_url: str, scope: str) -> bool:
        supported = (await self.discover(issuer_url)).get("scopes_supported") or ["openid"]
        return scope in supported

    async def clear_cache(self, issuer_url: str) -> None:
        await self.cache.delete(self.cache_key(issuer_url))

    async def _fetch_configuration(self, issuer_url: str) -> Dict[str, Any]:
        url = discovery_url(issuer_url)
        try:
            config = await fetch_json(
                self.http_client,
                "GET",
                url,
                action="fetch OIDC discovery document",
                headers={"Accept": "application/json"},
            )
        except OAuthException:
            logger.error(f"{LOG_PREFIX} Discovery failed for {issuer_url}")
            raise

        if not isinstance(config, dict):
            raise InvalidResponseError("Invalid OIDC discovery document: expected a JSON object")

        for field in REQUIRED_FIELDS:
            value = config.get(field)
            if not isinstance(value, str) or not value:
                raise MissingFieldError(f'Invalid OIDC discovery document: missing required field "{field}"')

        logger.debug(f"{LOG_PREFIX} Discovered configuration for {issuer_url}")
        return config
