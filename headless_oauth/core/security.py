"""
Security helpers - session JWT issuing and random credentials
"""

import hashlib
import secrets
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any, Dict, Optional

from jose import JWTError, jwt
from pydantic import BaseModel

from .settings import settings

if TYPE_CHECKING:
    from headless_oauth.models.account import ShopUser  # pragma: no cover


def generate_unusable_password() -> str:
    """Random password for OAuth-only accounts (never shown to anyone)."""
    return secrets.token_hex(16)


def get_password_hash(password: str) -> str:
    """SHA-256 hex digest, the stored password format."""
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


class TokenPayload(BaseModel):
    """Session token payload"""

    sub: str  # shop user id
    username: str
    exp: datetime
    iat: datetime
    type: str = "access"


class TokenIssuer:
    """Mints the opaque bearer token returned to the storefront after OAuth login."""

    def __init__(
        self,
        secret_key: Optional[str] = None,
        algorithm: Optional[str] = None,
        expire_minutes: Optional[int] = None,
    ):
        self.secret_key = secret_key or settings.secret_key
        self.algorithm = algorithm or settings.algorithm
        self.expire_minutes = expire_minutes or settings.access_token_expire_minutes

    def create(self, shop_user: "ShopUser", expires_delta: Optional[timedelta] = None) -> str:
        """Create an access token for `shop_user`."""
        now = datetime.now(timezone.utc)
        expire = now + (expires_delta or timedelta(minutes=self.expire_minutes))

        to_encode: Dict[str, Any] = {
            "sub": str(shop_user.id),
            "username": shop_user.username,
            "exp": expire,
            "iat": now,
            "type": "access",
        }
        return str(jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm))

    def decode(self, token: str) -> Optional[TokenPayload]:
        """Decode a token minted by `create`; None when invalid or expired."""
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
            return TokenPayload(**payload)
        except (JWTError, ValueError):
            return None
