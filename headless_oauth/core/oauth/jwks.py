"""
id_token verification against a provider's published JWKS.

The key set is fetched over the shared HTTP client and cached under
`jwks_<md5(url)>`. Every failure (fetch, malformed token, signature, issuer,
audience, expiry, missing claims) surfaces as `IdentityVerificationError`.
"""

import hashlib
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

import httpx
from jose import jwt
from jose.exceptions import JOSEError
from loguru import logger

from headless_oauth.common.exceptions import IdentityVerificationError, OAuthException
from headless_oauth.core.cache import Cache, NullCache
from headless_oauth.core.oauth.http import fetch_json
from headless_oauth.core.oauth.jwt_utils import decode_header, decode_unverified_claims

LOG_PREFIX = "[JWKS]"

DEFAULT_JWKS_TTL = 3600

# Asymmetric algorithms only; "none" and HMAC are never accepted
ALLOWED_ALGORITHMS: Dict[str, str] = {
    "RS256": "RSA",
    "RS384": "RSA",
    "RS512": "RSA",
    "PS256": "RSA",
    "PS384": "RSA",
    "PS512": "RSA",
    "ES256": "EC",
    "ES384": "EC",
    "ES512": "EC",
}


def jwks_cache_key(jwks_url: str) -> str:
    return "jwks_" + hashlib.md5(jwks_url.encode("utf-8")).hexdigest()


def _check_required_claims(claims: Dict[str, Any], required: Sequence[str]) -> None:
    for claim in required:
        value = claims.get(claim)
        if not isinstance(value, str) or not value:
            raise IdentityVerificationError(f"id_token is missing the {claim} claim")


class BaseJwksVerifier(ABC):
    """id_token verification contract."""

    @abstractmethod
    async def verify(self, id_token: str) -> Dict[str, Any]:
        """
        Verify `id_token` and return its claims.

        Raises:
            IdentityVerificationError: on any verification failure
        """

    async def clear_cache(self) -> None:
        return None


class JwksVerifier(BaseJwksVerifier):
    """Verifies id_tokens signed with keys from a JWKS endpoint."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        jwks_url: str,
        issuer: str,
        client_id: str,
        *,
        cache: Optional[Cache] = None,
        cache_ttl: int = DEFAULT_JWKS_TTL,
        required_claims: Sequence[str] = ("sub",),
    ):
        self.http_client = http_client
        self.jwks_url = jwks_url
        self.issuer = issuer
        self.client_id = client_id
        self.cache = NullCache() if cache is None else cache
        self.cache_ttl = cache_ttl
        self.required_claims = tuple(required_claims)

    @property
    def cache_key(self) -> str:
        return jwks_cache_key(self.jwks_url)

    async def clear_cache(self) -> None:
        await self.cache.delete(self.cache_key)

    async def _fetch_keys(self) -> List[Dict[str, Any]]:
        try:
            payload = await fetch_json(self.http_client, "GET", self.jwks_url, action="fetch JWKS")
        except OAuthException as e:
            raise IdentityVerificationError(f"Failed to fetch JWKS: {e.message}", 500) from e

        keys = payload.get("keys") if isinstance(payload, dict) else None
        if not isinstance(keys, list):
            raise IdentityVerificationError("Invalid JWKS format", 500)
        # An empty set is never cached so the next attempt refetches
        if not keys:
            raise IdentityVerificationError("JWKS contains no keys", 500)

        logger.debug(f"{LOG_PREFIX} Fetched {len(keys)} keys from {self.jwks_url}")
        return [key for key in keys if isinstance(key, dict)]

    async def get_keys(self) -> List[Dict[str, Any]]:
        return await self.cache.get_or_set(self.cache_key, self.cache_ttl, self._fetch_keys)

    def _select_keys(self, keys: List[Dict[str, Any]], kid: Optional[str], alg: str) -> List[Dict[str, Any]]:
        kty = ALLOWED_ALGORITHMS[alg]
        candidates = [key for key in keys if key.get("kty") == kty]
        if kid is not None:
            candidates = [key for key in candidates if key.get("kid") == kid]
        return candidates

    async def verify(self, id_token: str) -> Dict[str, Any]:
        header = decode_header(id_token)

        keys = await self.get_keys()
        if not keys:
            raise IdentityVerificationError("JWKS contains no keys", 500)

        alg = header.get("alg")
        if alg not in ALLOWED_ALGORITHMS:
            raise IdentityVerificationError(f"Unsupported id_token algorithm: {alg}")

        candidates = self._select_keys(keys, header.get("kid"), alg)
        if not candidates:
            raise IdentityVerificationError("No JWKS key matches the id_token key id")

        try:
            claims = jwt.decode(
                id_token,
                {"keys": candidates},
                algorithms=[alg],
                options={"verify_aud": False, "verify_iss": False, "verify_at_hash": False},
            )
        except JOSEError as e:
            raise IdentityVerificationError(f"Invalid id_token: {e}") from e

        issuer = claims.get("iss")
        if not isinstance(issuer, str) or issuer.rstrip("/") != self.issuer.rstrip("/"):
            raise IdentityVerificationError("Invalid id_token issuer")

        audience = claims.get("aud")
        if isinstance(audience, list):
            audience_ok = self.client_id in audience
        else:
            audience_ok = audience == self.client_id
        if not audience_ok:
            raise IdentityVerificationError("Invalid id_token audience")

        _check_required_claims(claims, self.required_claims)
        return claims


class UnverifiedJwksVerifier(BaseJwksVerifier):
    """Decodes claims without any signature check; selected only when verify_jwt is off."""

    def __init__(self, required_claims: Sequence[str] = ("sub",)):
        self.required_claims = tuple(required_claims)

    async def verify(self, id_token: str) -> Dict[str, Any]:
        claims = decode_unverified_claims(id_token)
        _check_required_claims(claims, self.required_claims)
        return claims
