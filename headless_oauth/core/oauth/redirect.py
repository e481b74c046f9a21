"""
Redirect URI allowlist.

Blocks open redirects before an authorization code is sent to a provider.
"""

from abc import ABC, abstractmethod
from typing import Iterable, List

from headless_oauth.common.exceptions import RedirectUriRejectedError


class BaseRedirectUriValidator(ABC):
    """Redirect URI validation contract."""

    @abstractmethod
    def validate(self, redirect_uri: str) -> None:
        """
        Raises:
            RedirectUriRejectedError: `redirect_uri` is not allowed
        """

    def is_valid(self, redirect_uri: str) -> bool:
        try:
            self.validate(redirect_uri)
            return True
        except RedirectUriRejectedError:
            return False


class RedirectUriValidator(BaseRedirectUriValidator):
    """
    Validates redirect URIs against an allowlist.

    An entry matches exactly, with a trailing slash added or removed, or as
    the parent of a path (`allowed + "/"` prefix). A shared prefix without a
    path boundary (`/app` vs `/app-evil`) never matches. An empty allowlist
    disables validation (development only).
    """

    def __init__(self, allowed_uris: Iterable[str] = ()):
        self._allowed_uris: List[str] = [uri for uri in allowed_uris if uri]

    @property
    def allowed_uris(self) -> List[str]:
        return list(self._allowed_uris)

    @property
    def enabled(self) -> bool:
        return len(self._allowed_uris) > 0

    def validate(self, redirect_uri: str) -> None:
        if not self.enabled:
            return

        if redirect_uri in self._allowed_uris:
            return

        for allowed in self._allowed_uris:
            normalized = allowed.rstrip("/")
            if redirect_uri in (normalized, normalized + "/"):
                return
            if redirect_uri.startswith(normalized + "/"):
                return

        raise RedirectUriRejectedError(redirect_uri)


class NullRedirectUriValidator(BaseRedirectUriValidator):
    """Allow-all variant, selected explicitly by configuration."""

    enabled = False

    def validate(self, redirect_uri: str) -> None:
        return None
