"""
OAuth provider config loader.

Loads provider configs from YAML with support for:
- built-in provider templates (google, apple, facebook, github, linkedin, oidc)
- several generic OIDC providers under their own names
- env var expansion ${VAR_NAME}
- global settings (redirect allowlist, id_token verification, cache backend)
"""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from loguru import logger

LOG_PREFIX = "[OAuthConfig]"

# ==================== Built-in Provider Templates ====================
# Defaults per template; users usually only set credentials

PROVIDER_TEMPLATES: Dict[str, Dict[str, Any]] = {
    "google": {
        "display_name": "Google",
        "scopes": "openid email profile",
    },
    "apple": {
        "display_name": "Apple",
        "scopes": "name email",
    },
    "facebook": {
        "display_name": "Facebook",
        "scopes": "email public_profile",
    },
    "github": {
        "display_name": "GitHub",
        "scopes": "read:user user:email",
    },
    "linkedin": {
        "display_name": "LinkedIn",
        "scopes": "openid profile email",
    },
    "oidc": {
        "scopes": "openid email profile",
    },
}

_KNOWN_KEYS = {
    "enabled",
    "template",
    "display_name",
    "client_id",
    "client_secret",
    "team_id",
    "key_id",
    "private_key_path",
    "issuer_url",
    "scopes",
    "verify_jwt",
}

CACHE_KINDS = ("null", "memory", "redis")


@dataclass
class OAuthProviderConfig:
    """Single OAuth provider config."""

    name: str  # Provider key (e.g. "google", "keycloak")
    template: str  # Built-in implementation (e.g. "oidc")
    enabled: bool = False
    display_name: Optional[str] = None
    client_id: str = ""
    client_secret: str = ""
    # Apple
    team_id: str = ""
    key_id: str = ""
    private_key_path: str = ""
    # OIDC
    issuer_url: str = ""
    scopes: str = "openid email profile"
    # Per-provider override of OAuthSettings.verify_jwt
    verify_jwt: Optional[bool] = None
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass
class OAuthSettings:
    """OAuth global settings."""

    allowed_redirect_uris: List[str] = field(default_factory=list)
    # False selects the allow-all redirect validator
    validate_redirect_uris: bool = True
    verify_jwt: bool = True
    cache: str = "memory"
    audit_log: bool = True


def _as_bool(value: Any, default: bool) -> bool:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


class OAuthConfigLoader:
    """OAuth config loader."""

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize the config loader.

        Args:
            config_path: Config file path; use default when None
        """
        if config_path:
            self.config_path = Path(config_path)
        else:
            # Default path: <project root>/config/oauth_providers.yaml
            self.config_path = Path(__file__).parent.parent.parent.parent / "config" / "oauth_providers.yaml"

        self._providers: Dict[str, OAuthProviderConfig] = {}
        self._settings: OAuthSettings = OAuthSettings()
        self._loaded: bool = False

    def load(self, force_reload: bool = False) -> None:
        """
        Load config file.

        Args:
            force_reload: Force reload

        Raises:
            yaml.YAMLError: the file is not valid YAML
            ValueError: the file has an invalid structure
        """
        if self._loaded and not force_reload:
            return

        self._providers.clear()
        self._settings = OAuthSettings()

        if not self.config_path.exists():
            logger.warning(f"{LOG_PREFIX} Config file not found: {self.config_path}")
            self._loaded = True
            return

        try:
            with open(self.config_path, encoding="utf-8") as f:
                raw = yaml.safe_load(f)
        except yaml.YAMLError as e:
            logger.error(f"{LOG_PREFIX} Failed to parse {self.config_path}: {e}")
            raise

        self.load_dict(raw or {})
        logger.info(
            f"{LOG_PREFIX} Loaded {len(self._providers)} providers "
            f"({len(self.enabled_providers())} enabled) from {self.config_path}"
        )

    def load_dict(self, raw: Dict[str, Any]) -> None:
        """Load an already-parsed config mapping (also used by tests)."""
        if not isinstance(raw, dict):
            raise ValueError("OAuth config must be a mapping")

        raw = self._expand_env_vars(raw)
        self._providers.clear()
        self._settings = self._parse_settings(raw.get("settings") or {})

        for name, config in (raw.get("providers") or {}).items():
            if not isinstance(config, dict):
                raise ValueError(f"Provider '{name}' config must be a mapping")
            self._providers[name] = self._parse_provider(name, config)
            if not self._providers[name].enabled:
                logger.debug(f"{LOG_PREFIX} Provider '{name}' is disabled")

        self._loaded = True

    def _parse_settings(self, settings_raw: Dict[str, Any]) -> OAuthSettings:
        allowed = settings_raw.get("allowed_redirect_uris") or []
        if isinstance(allowed, str):
            allowed = [uri.strip() for uri in allowed.split(",")]

        cache = str(settings_raw.get("cache") or "memory").lower()
        if cache not in CACHE_KINDS:
            raise ValueError(f"Unknown cache '{cache}', expected one of {', '.join(CACHE_KINDS)}")

        return OAuthSettings(
            allowed_redirect_uris=[uri for uri in allowed if uri],
            validate_redirect_uris=_as_bool(settings_raw.get("validate_redirect_uris"), True),
            verify_jwt=_as_bool(settings_raw.get("verify_jwt"), True),
            cache=cache,
            audit_log=_as_bool(settings_raw.get("audit_log"), True),
        )

    def _parse_provider(self, name: str, config: Dict[str, Any]) -> OAuthProviderConfig:
        """Parse a single provider config."""
        # A provider key that names a template uses it implicitly
        template_name = str(config.get("template") or name).lower()
        if template_name not in PROVIDER_TEMPLATES:
            raise ValueError(
                f"Provider '{name}' uses unknown template '{template_name}'. "
                f"Available templates: {', '.join(PROVIDER_TEMPLATES)}"
            )

        # Merge config (user overrides template)
        merged = {**PROVIDER_TEMPLATES[template_name], **config}

        verify_jwt = merged.get("verify_jwt")
        return OAuthProviderConfig(
            name=name,
            template=template_name,
            enabled=_as_bool(merged.get("enabled"), False),
            display_name=merged.get("display_name"),
            client_id=str(merged.get("client_id") or "").strip(),
            client_secret=str(merged.get("client_secret") or "").strip(),
            team_id=str(merged.get("team_id") or "").strip(),
            key_id=str(merged.get("key_id") or "").strip(),
            private_key_path=str(merged.get("private_key_path") or "").strip(),
            issuer_url=str(merged.get("issuer_url") or "").strip(),
            scopes=str(merged.get("scopes") or "openid email profile"),
            verify_jwt=None if verify_jwt is None else _as_bool(verify_jwt, True),
            extra={k: v for k, v in merged.items() if k not in _KNOWN_KEYS},
        )

    def _expand_env_vars(self, obj: Any) -> Any:
        """
        Recursively replace ${VAR_NAME} with env var values.

        Unset variables are left as the literal placeholder so the credential
        validator can name them.
        """
        if isinstance(obj, str):
            return re.sub(r"\$\{(\w+)\}", lambda m: os.environ.get(m.group(1), m.group(0)), obj)
        elif isinstance(obj, dict):
            return {k: self._expand_env_vars(v) for k, v in obj.items()}
        elif isinstance(obj, list):
            return [self._expand_env_vars(i) for i in obj]
        return obj

    def get_provider(self, name: str) -> Optional[OAuthProviderConfig]:
        """Get provider config by name."""
        self.load()
        return self._providers.get(name)

    def get_all_providers(self) -> Dict[str, OAuthProviderConfig]:
        """Get all provider configs, in file order."""
        self.load()
        return self._providers.copy()

    def enabled_providers(self) -> List[OAuthProviderConfig]:
        return [provider for provider in self._providers.values() if provider.enabled]

    @property
    def settings(self) -> OAuthSettings:
        """Get global settings."""
        self.load()
        return self._settings

    def is_provider_enabled(self, name: str) -> bool:
        """Check if provider is enabled."""
        self.load()
        provider = self._providers.get(name)
        return provider is not None and provider.enabled


# Global config loader (lazy init)
_oauth_config: Optional[OAuthConfigLoader] = None


def get_oauth_config() -> OAuthConfigLoader:
    """Get global OAuth config loader."""
    global _oauth_config
    if _oauth_config is None:
        from headless_oauth.core.settings import settings

        _oauth_config = OAuthConfigLoader(settings.oauth_config_path)
    return _oauth_config


def reload_oauth_config() -> None:
    """Reload OAuth config."""
    config = get_oauth_config()
    config.load(force_reload=True)
