"""
Sign in with Apple.

Apple has no userinfo endpoint: the identity comes from the id_token, which
is verified against Apple's JWKS unless verification is switched off. The
client_secret is a short-lived ES256 JWT signed with the team's `.p8` key.
"""

import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import httpx
from jose import jwt
from jose.exceptions import JOSEError
from loguru import logger

from headless_oauth.common.exceptions import (
    IdentityVerificationError,
    MissingFieldError,
    OAuthException,
    UnsupportedOperationError,
)
from headless_oauth.core.oauth.audit import BaseSecurityLogger, NullSecurityLogger
from headless_oauth.core.oauth.credentials import CredentialValidator
from headless_oauth.core.oauth.jwks import BaseJwksVerifier
from headless_oauth.core.oauth.models import OAuthTokenData, OAuthUserData
from headless_oauth.core.oauth.providers.base import RefreshableOAuthProvider, require_fields

LOG_PREFIX = "[AppleProvider]"

TOKEN_URL = "https://appleid.apple.com/auth/token"
JWKS_URL = "https://appleid.apple.com/auth/keys"
ISSUER = "https://appleid.apple.com"
JWKS_CACHE_TTL = 86400

APPLE_AUDIENCE = "https://appleid.apple.com"
DEFAULT_SECRET_TTL = 3600
MAX_SECRET_TTL = 15777000  # ~6 months, Apple's upper bound


class AppleClientSecretGenerator:
    """Builds the ES256 client_secret JWT Apple expects on token requests."""

    def __init__(
        self,
        client_id: Optional[str],
        team_id: Optional[str],
        key_id: Optional[str],
        private_key_path: Optional[str],
        clock: Callable[[], float] = time.time,
    ):
        self.client_id = client_id or ""
        self.team_id = team_id or ""
        self.key_id = key_id or ""
        self.private_key_path = private_key_path or ""
        self._clock = clock

        CredentialValidator().validate_many(
            [
                {"value": self.client_id, "env": "APPLE_CLIENT_ID", "name": "client ID"},
                {"value": self.team_id, "env": "APPLE_TEAM_ID", "name": "team ID"},
                {"value": self.key_id, "env": "APPLE_KEY_ID", "name": "key ID"},
                {"value": self.private_key_path, "env": "APPLE_PRIVATE_KEY_PATH", "name": "private key path"},
            ],
            "Apple",
        )

    def generate(self, expiry_seconds: int = DEFAULT_SECRET_TTL) -> str:
        """
        Args:
            expiry_seconds: Lifetime of the secret, capped at MAX_SECRET_TTL

        Raises:
            OAuthException: the private key cannot be read or used
        """
        private_key = self._load_private_key()
        now = int(self._clock())
        claims = {
            "iss": self.team_id,
            "iat": now,
            "exp": now + min(expiry_seconds, MAX_SECRET_TTL),
            "aud": APPLE_AUDIENCE,
            "sub": self.client_id,
        }
        try:
            return jwt.encode(claims, private_key, algorithm="ES256", headers={"kid": self.key_id})
        except JOSEError as e:
            raise OAuthException(f"Failed to sign Apple client secret: {e}", 500) from e

    def _load_private_key(self) -> str:
        path = Path(self.private_key_path)
        if not path.is_file():
            raise OAuthException(f"Apple private key file not found at: {self.private_key_path}", 500)
        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            raise OAuthException(f"Failed to read Apple private key file: {self.private_key_path}", 500) from e


class AppleProvider(RefreshableOAuthProvider):
    """Apple: id_token identity, rotating refresh tokens."""

    name = "apple"
    display_name = "Apple"

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        secret_generator: AppleClientSecretGenerator,
        verifier: BaseJwksVerifier,
        *,
        enabled: bool = True,
        audit_logger: Optional[BaseSecurityLogger] = None,
    ):
        super().__init__(http_client, enabled=enabled)
        self.secret_generator = secret_generator
        self.client_id = secret_generator.client_id
        self.verifier = verifier
        self.audit_logger = audit_logger or NullSecurityLogger()
        self.validate_credentials()

    def _credentials(self) -> List[Dict[str, Optional[str]]]:
        return [
            {"key": "client_id", "value": self.client_id, "env": "APPLE_CLIENT_ID", "name": "client ID"},
            {"key": "team_id", "value": self.secret_generator.team_id, "env": "APPLE_TEAM_ID", "name": "team ID"},
            {"key": "key_id", "value": self.secret_generator.key_id, "env": "APPLE_KEY_ID", "name": "key ID"},
            {
                "key": "private_key_path",
                "value": self.secret_generator.private_key_path,
                "env": "APPLE_PRIVATE_KEY_PATH",
                "name": "private key path",
            },
        ]

    async def get_user_data(self, code: str, redirect_uri: str) -> OAuthUserData:
        tokens = await self._post_form(
            TOKEN_URL,
            {
                "code": code,
                "client_id": self.client_id,
                "client_secret": self.secret_generator.generate(),
                "redirect_uri": redirect_uri,
                "grant_type": "authorization_code",
            },
            action="exchange Apple authorization code",
        )
        require_fields(tokens, ["access_token", "id_token"], "Apple token response")

        user_data = await self.get_user_data_from_id_token(tokens["id_token"])
        return user_data.with_refresh_token(tokens.get("refresh_token"))

    async def get_user_data_from_access_token(self, access_token: str) -> OAuthUserData:
        raise UnsupportedOperationError(
            "Apple does not support fetching user data from an access token. "
            "Use the id_token from the refresh response instead."
        )

    async def get_user_data_from_id_token(self, id_token: str) -> OAuthUserData:
        claims = await self._decode_id_token(id_token)
        return OAuthUserData(
            provider=self.name,
            provider_id=claims["sub"],
            email=claims["email"],
            # Name claims are only present on the first authorization
            first_name=claims.get("firstName") or claims.get("given_name"),
            last_name=claims.get("lastName") or claims.get("family_name"),
        )

    async def get_user_data_from_token_data(self, token_data: OAuthTokenData) -> OAuthUserData:
        if not token_data.id_token:
            raise MissingFieldError("Apple refresh response did not include id_token. Cannot identify user.")
        user_data = await self.get_user_data_from_id_token(token_data.id_token)
        return user_data.with_refresh_token(token_data.refresh_token)

    async def refresh_tokens(self, refresh_token: str) -> OAuthTokenData:
        data = await self._post_form(
            TOKEN_URL,
            {
                "client_id": self.client_id,
                "client_secret": self.secret_generator.generate(),
                "refresh_token": refresh_token,
                "grant_type": "refresh_token",
            },
            action="refresh Apple tokens",
        )
        require_fields(data, ["access_token"], "Apple refresh token response")
        logger.debug(f"{LOG_PREFIX} Refreshed tokens (rotated={bool(data.get('refresh_token'))})")
        # Apple rotates refresh tokens: hand back whatever came with the response
        return self._token_data(data, data.get("refresh_token"))

    async def _decode_id_token(self, id_token: str) -> Dict[str, Any]:
        try:
            return await self.verifier.verify(id_token)
        except IdentityVerificationError as e:
            self.audit_logger.log_jwt_verification_failure(self.name, e.message)
            raise
