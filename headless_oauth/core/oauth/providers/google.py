"""
Google OAuth provider.
"""

from typing import Any, Dict, List, Optional

import httpx
from loguru import logger

from headless_oauth.core.oauth.models import OAuthTokenData, OAuthUserData
from headless_oauth.core.oauth.providers.base import RefreshableOAuthProvider, require_fields

LOG_PREFIX = "[GoogleProvider]"

TOKEN_URL = "https://oauth2.googleapis.com/token"
USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"


class GoogleProvider(RefreshableOAuthProvider):
    """Google: userinfo identity, non-rotating refresh tokens."""

    name = "google"
    display_name = "Google"

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        client_id: Optional[str],
        client_secret: Optional[str],
        *,
        enabled: bool = True,
    ):
        super().__init__(http_client, enabled=enabled)
        self.client_id = client_id or ""
        self.client_secret = client_secret or ""
        self.validate_credentials()

    def _credentials(self) -> List[Dict[str, Optional[str]]]:
        return [
            {"key": "client_id", "value": self.client_id, "env": "GOOGLE_CLIENT_ID", "name": "client ID"},
            {"key": "client_secret", "value": self.client_secret, "env": "GOOGLE_CLIENT_SECRET", "name": "client secret"},
        ]

    async def get_user_data(self, code: str, redirect_uri: str) -> OAuthUserData:
        tokens = await self._post_form(
            TOKEN_URL,
            {
                "code": code,
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "redirect_uri": redirect_uri,
                "grant_type": "authorization_code",
            },
            action="exchange Google authorization code",
        )
        require_fields(tokens, ["access_token"], "Google token response")

        user_data = await self.get_user_data_from_access_token(tokens["access_token"])
        return user_data.with_refresh_token(tokens.get("refresh_token"))

    async def get_user_data_from_access_token(self, access_token: str) -> OAuthUserData:
        user_info = await self._fetch_user_info(access_token)
        return OAuthUserData(
            provider=self.name,
            provider_id=str(user_info["id"]),
            email=user_info["email"],
            first_name=user_info.get("given_name"),
            last_name=user_info.get("family_name"),
        )

    async def refresh_tokens(self, refresh_token: str) -> OAuthTokenData:
        data = await self._post_form(
            TOKEN_URL,
            {
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "refresh_token": refresh_token,
                "grant_type": "refresh_token",
            },
            action="refresh Google tokens",
        )
        require_fields(data, ["access_token"], "Google refresh token response")
        logger.debug(f"{LOG_PREFIX} Refreshed access token")
        # Google does not rotate refresh tokens
        return self._token_data(data, refresh_token)

    async def _fetch_user_info(self, access_token: str) -> Dict[str, Any]:
        action = "fetch Google user info"
        user_info = await self._get_json(USERINFO_URL, action, access_token=access_token)
        if not isinstance(user_info, dict):
            user_info = {}
        require_fields(user_info, ["id", "email"], "Google user info response")
        return user_info
