"""
GitHub OAuth provider.

GitHub reports token-exchange failures as HTTP 200 with `error` /
`error_description` fields, and omits the email from `/user` when it is
private; `/user/emails` is consulted in that case.
"""

from typing import Any, Dict, List, Optional

import httpx
from loguru import logger

from headless_oauth.common.exceptions import OAuthException, ProviderError, UnsupportedOperationError
from headless_oauth.core.oauth.models import OAuthTokenData, OAuthUserData, split_full_name
from headless_oauth.core.oauth.providers.base import RefreshableOAuthProvider, require_fields

LOG_PREFIX = "[GitHubProvider]"

TOKEN_URL = "https://github.com/login/oauth/access_token"
USER_URL = "https://api.github.com/user"
USER_EMAILS_URL = "https://api.github.com/user/emails"

API_HEADERS = {
    "Accept": "application/vnd.github+json",
    "X-GitHub-Api-Version": "2022-11-28",
}


def pick_verified_email(emails: Any) -> Optional[str]:
    """Primary verified address first, then any verified one."""
    if not isinstance(emails, list):
        return None
    entries = [entry for entry in emails if isinstance(entry, dict) and entry.get("email")]
    for entry in entries:
        if entry.get("primary") and entry.get("verified"):
            return entry["email"]
    for entry in entries:
        if entry.get("verified"):
            return entry["email"]
    return None


class GitHubProvider(RefreshableOAuthProvider):
    """GitHub: access tokens do not expire, so refresh is never supported."""

    name = "github"
    display_name = "GitHub"

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
            {"key": "client_id", "value": self.client_id, "env": "GITHUB_CLIENT_ID", "name": "client ID"},
            {"key": "client_secret", "value": self.client_secret, "env": "GITHUB_CLIENT_SECRET", "name": "client secret"},
        ]

    def supports_refresh(self) -> bool:
        return False

    async def get_user_data(self, code: str, redirect_uri: str) -> OAuthUserData:
        self.validate_credentials()

        tokens = await self._post_form(
            TOKEN_URL,
            {
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "code": code,
                "redirect_uri": redirect_uri,
            },
            action="exchange GitHub authorization code",
            headers={"Accept": "application/json"},
            error_in_body=True,
        )
        require_fields(tokens, ["access_token"], "GitHub token response")

        # GitHub issues no refresh token
        return await self.get_user_data_from_access_token(tokens["access_token"])

    async def get_user_data_from_access_token(self, access_token: str) -> OAuthUserData:
        user_info = await self._get_json(
            USER_URL, "fetch GitHub user info", access_token=access_token, headers=API_HEADERS
        )
        if not isinstance(user_info, dict):
            user_info = {}
        require_fields(user_info, ["id"], "GitHub user info response")

        email = user_info.get("email") or await self._fetch_primary_email(access_token)
        if not email:
            raise ProviderError("GitHub account does not have a verified email address")

        first_name, last_name = split_full_name(user_info.get("name"))
        return OAuthUserData(
            provider=self.name,
            provider_id=str(user_info["id"]),
            email=email,
            first_name=first_name,
            last_name=last_name,
        )

    async def refresh_tokens(self, refresh_token: str) -> OAuthTokenData:
        raise UnsupportedOperationError("GitHub does not support token refresh. Access tokens do not expire.")

    async def _fetch_primary_email(self, access_token: str) -> Optional[str]:
        try:
            emails = await self._get_json(
                USER_EMAILS_URL, "fetch GitHub user emails", access_token=access_token, headers=API_HEADERS
            )
        except OAuthException as e:
            # Treated as "no verified email"; the caller fails with that message
            logger.warning(f"{LOG_PREFIX} Could not fetch user emails: {e.message}")
            return None
        return pick_verified_email(emails)
