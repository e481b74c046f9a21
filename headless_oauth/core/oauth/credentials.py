"""
Provider credential validation.

Guards provider construction against credentials that were never resolved
from the environment (empty values or leftover placeholders).
"""

import re
from typing import Iterable, Mapping, Optional

from headless_oauth.common.exceptions import CredentialNotConfiguredError

# ${VAR} left behind by config env expansion, or a %env(VAR)% container placeholder
_PLACEHOLDER_RE = re.compile(r"^(\$\{\w+\}|%env\(\w+\)%)$")


def is_configured(value: Optional[str]) -> bool:
    """True when `value` is a real credential rather than empty or a placeholder."""
    if value is None:
        return False
    value = str(value).strip()
    return bool(value) and not _PLACEHOLDER_RE.match(value)


class CredentialValidator:
    """Validates provider credentials with consistent error messages."""

    def validate(self, value: Optional[str], env_var: str, provider_name: str, credential_name: str) -> None:
        """
        Validate that a credential is configured.

        Args:
            value: The credential value
            env_var: Environment variable expected to hold it (e.g. GOOGLE_CLIENT_ID)
            provider_name: Provider display name (e.g. "Google")
            credential_name: Human-readable credential name (e.g. "client ID")

        Raises:
            CredentialNotConfiguredError: credential missing
        """
        if is_configured(value):
            return

        raise CredentialNotConfiguredError(
            f"{provider_name} OAuth is enabled but {credential_name} ({env_var}) is not configured. "
            f"Set the environment variable or disable the provider: "
            f"providers.{provider_name.lower()}.enabled: false"
        )

    def validate_many(self, credentials: Iterable[Mapping[str, Optional[str]]], provider_name: str) -> None:
        """Validate `{"value", "env", "name"}` items in order; the first failure raises."""
        for item in credentials:
            self.validate(item.get("value"), str(item.get("env")), provider_name, str(item.get("name")))
