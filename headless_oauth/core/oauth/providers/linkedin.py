"""
Sign In with LinkedIn (OpenID Connect userinfo).
"""

from typing import Any, Dict, List, Optional

import httpx

from headless_oauth.core.oauth.models import OAuthTokenData, OAuthUserData
from headless_oauth.core.oauth.providers.base import RefreshableOAuthProvider, require_fields

LOG_PREFIX = "[LinkedInProvider]"

TOKEN_URL = "https://www.linkedin.com/oauth/v2/accessToken"
USERINFO_URL = "https://api.linkedin.com/v2/userinfo"


class LinkedInProvider(RefreshableOAuthProvider):
    """LinkedIn: errors arrive as `error` / `error_description` body fields."""

    name = "linkedin"
    display_name = "LinkedIn"

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

    def _credentials(self) -> List[Dict[str, Optional[str]]]:
        return [
            {"key": "client_id", "value": self.client_id, "env": "LINKEDIN_CLIENT_ID", "name": "client ID"},
            {"key": "client_secret", "value": self.client_secret, "env": "LINKEDIN_CLIENT_SECRET", "name": "client secret"},
        ]

    async def get_user_data(self, code: str, redirect_uri: str) -> OAuthUserData:
        self.validate_credentials()

        tokens = await self._post_form(
            TOKEN_URL,
            {
                "code": code,
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "redirect_uri": redirect_uri,
                "grant_type": "authorization_code",
            },
            action="exchange LinkedIn authorization code",
            error_in_body=True,
        )
        require_fields(tokens, ["access_token"], "LinkedIn token response")

        user_data = await self.get_user_data_from_access_token(tokens["access_token"])
        return user_data.with_refresh_token(tokens.get("refresh_token"))

    async def get_user_data_from_access_token(self, access_token: str) -> OAuthUserData:
        user_info = await self._fetch_user_info(access_token)
        return OAuthUserData(
            provider=self.name,
            provider_id=str(user_info["sub"]),
            email=user_info["email"],
            first_name=user_info.get("given_name"),
            last_name=user_info.get("family_name"),
        )

    async def refresh_tokens(self, refresh_token: str) -> OAuthTokenData:
        self.validate_credentials()

        data = await self._post_form(
            TOKEN_URL,
            {
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "refresh_token": refresh_token,
                "grant_type": "refresh_token",
            },
            action="refresh LinkedIn tokens",
            error_in_body=True,
        )
        require_fields(data, ["access_token"], "LinkedIn refresh token response")
        return self._token_data(data, data.get("refresh_token") or refresh_token)

    async def _fetch_user_info(self, access_token: str) -> Dict[str, Any]:
        user_info = await self._get_json(
            USERINFO_URL, "fetch LinkedIn user info", access_token=access_token, error_in_body=True
        )
        if not isinstance(user_info, dict):
            user_info = {}
        require_fields(user_info, ["sub", "email"], "LinkedIn user info response")
        return user_info
