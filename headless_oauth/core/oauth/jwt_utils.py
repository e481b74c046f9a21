"""
Unverified JWT inspection on top of python-jose.

Nothing here checks a signature; `jwks.JwksVerifier` does.
"""

from typing import Any, Dict

from jose import jwt
from jose.exceptions import JOSEError

from headless_oauth.common.exceptions import IdentityVerificationError


def _require_compact(token: str) -> None:
    if not isinstance(token, str) or token.count(".") != 2:
        raise IdentityVerificationError("Invalid id_token format")


def decode_header(token: str) -> Dict[str, Any]:
    """JOSE header of a compact JWT."""
    _require_compact(token)
    try:
        return jwt.get_unverified_header(token)
    except JOSEError as e:
        raise IdentityVerificationError(f"Invalid id_token header: {e}") from e


def decode_unverified_claims(token: str) -> Dict[str, Any]:
    """Payload of a compact JWT, signature unchecked."""
    _require_compact(token)
    try:
        return jwt.get_unverified_claims(token)
    except JOSEError as e:
        raise IdentityVerificationError(f"Invalid id_token payload: {e}") from e
