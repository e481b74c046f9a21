"""
OAuth/OIDC authentication module.

Module layout:
- config.py: YAML config loader (OAuthProviderConfig, OAuthConfigLoader)
- factory.py: provider registry and builders
- providers/: provider implementations (google, apple, facebook, github, linkedin, oidc)
- jwks.py / discovery.py: id_token verification and OIDC discovery
- redirect.py / credentials.py / audit.py: request guards and audit logging
- events.py: login-flow hooks (OAuthEventDispatcher)
"""

from headless_oauth.core.oauth.config import (
    OAuthConfigLoader,
    OAuthProviderConfig,
    OAuthSettings,
    get_oauth_config,
    reload_oauth_config,
)
from headless_oauth.core.oauth.events import OAuthEventDispatcher, OAuthEventType
from headless_oauth.core.oauth.factory import ProviderRegistry, build_providers, default_registry
from headless_oauth.core.oauth.models import OAuthTokenData, OAuthUserData

__all__ = [
    "OAuthConfigLoader",
    "OAuthProviderConfig",
    "OAuthSettings",
    "get_oauth_config",
    "reload_oauth_config",
    "OAuthEventDispatcher",
    "OAuthEventType",
    "ProviderRegistry",
    "build_providers",
    "default_registry",
    "OAuthTokenData",
    "OAuthUserData",
]
