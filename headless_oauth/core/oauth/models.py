"""
OAuth value records.

Both are immutable, per-request and never persisted.
"""

from dataclasses import dataclass, replace
from typing import Optional


@dataclass(frozen=True)
class OAuthUserData:
    """
    A verified external identity.

    (provider, provider_id) identifies the user at the provider; the email is
    trusted as verified by the provider.
    """

    provider: str
    provider_id: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    refresh_token: Optional[str] = None

    def with_refresh_token(self, refresh_token: Optional[str]) -> "OAuthUserData":
        """Copy carrying `refresh_token` (unchanged when None)."""
        if refresh_token is None:
            return self
        return replace(self, refresh_token=refresh_token)


@dataclass(frozen=True)
class OAuthTokenData:
    """Token data returned by a refresh grant."""

    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None
    token_type: Optional[str] = None
    id_token: Optional[str] = None


def split_full_name(name: Optional[str]) -> tuple[Optional[str], Optional[str]]:
    """Split a display name on the first space into (first, last)."""
    if not name:
        return None, None
    first, _, last = str(name).partition(" ")
    return first, (last or None)
