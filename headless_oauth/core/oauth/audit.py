"""
OAuth security audit logging.

Structured, fire-and-forget events for authentication outcomes, token
refreshes and suspicious activity. Logging must never break a login: every
event is written through loguru and internal failures are swallowed.
"""

import sys
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional
from urllib.parse import urlsplit

from loguru import logger

LOG_PREFIX = "[OAuthAudit]"


def mask_email(email: Optional[str]) -> str:
    """user@example.com -> u***@example.com"""
    if not email or email.count("@") != 1:
        return "***"
    local, domain = email.split("@")
    if len(local) <= 1:
        return f"***@{domain}"
    return f"{local[0]}***@{domain}"


class BaseSecurityLogger(ABC):
    """Audit logger contract."""

    @abstractmethod
    def log_auth_success(
        self, provider: str, email: str, customer_id: Optional[str], is_new_user: bool = False
    ) -> None: ...

    @abstractmethod
    def log_auth_failure(self, provider: str, reason: str, **context: Any) -> None: ...

    @abstractmethod
    def log_refresh_success(self, provider: str, customer_id: Optional[str]) -> None: ...

    @abstractmethod
    def log_refresh_failure(self, provider: str, reason: str, **context: Any) -> None: ...

    @abstractmethod
    def log_suspicious_activity(self, activity_type: str, **context: Any) -> None: ...

    @abstractmethod
    def log_jwt_verification_failure(self, provider: str, reason: str, **context: Any) -> None: ...

    @abstractmethod
    def log_redirect_uri_rejected(self, redirect_uri: str, provider: str) -> None: ...

    @abstractmethod
    def log_provider_linked(self, provider: str, customer_id: Optional[str]) -> None: ...


class OAuthSecurityLogger(BaseSecurityLogger):
    """loguru-backed audit logger."""

    def _emit(self, level: str, message: str, event_type: str, fields: Dict[str, Any]) -> None:
        try:
            bound = logger.bind(event_type=event_type, **fields)
            details = " ".join(f"{key}={value}" for key, value in fields.items())
            bound.log(level, f"{LOG_PREFIX} {message} {details}".rstrip())
        except Exception as e:  # noqa: BLE001
            try:
                sys.stderr.write(f"{LOG_PREFIX} failed to write audit event {event_type}: {e}\n")
            except Exception:  # noqa: BLE001
                pass

    def log_auth_success(
        self, provider: str, email: str, customer_id: Optional[str], is_new_user: bool = False
    ) -> None:
        self._emit(
            "INFO",
            "OAuth authentication successful",
            "oauth_auth_success",
            {
                "provider": provider,
                "email": mask_email(email),
                "customer_id": customer_id,
                "is_new_user": is_new_user,
            },
        )

    def log_auth_failure(self, provider: str, reason: str, **context: Any) -> None:
        self._emit(
            "WARNING",
            "OAuth authentication failed",
            "oauth_auth_failure",
            {"provider": provider, "reason": reason, **context},
        )

    def log_refresh_success(self, provider: str, customer_id: Optional[str]) -> None:
        self._emit(
            "INFO",
            "OAuth token refresh successful",
            "oauth_refresh_success",
            {"provider": provider, "customer_id": customer_id},
        )

    def log_refresh_failure(self, provider: str, reason: str, **context: Any) -> None:
        self._emit(
            "WARNING",
            "OAuth token refresh failed",
            "oauth_refresh_failure",
            {"provider": provider, "reason": reason, **context},
        )

    def log_suspicious_activity(self, activity_type: str, **context: Any) -> None:
        self._emit(
            "WARNING",
            "Suspicious OAuth activity detected",
            "oauth_suspicious_activity",
            {"type": activity_type, **context},
        )

    def log_jwt_verification_failure(self, provider: str, reason: str, **context: Any) -> None:
        self._emit(
            "WARNING",
            "JWT verification failed",
            "oauth_jwt_verification_failure",
            {"provider": provider, "reason": reason, **context},
        )

    def log_redirect_uri_rejected(self, redirect_uri: str, provider: str) -> None:
        # Only the host is logged; the full URI may carry attacker-controlled data
        try:
            host = urlsplit(redirect_uri).hostname or "unknown"
        except ValueError:
            host = "unknown"
        self._emit(
            "WARNING",
            "Redirect URI rejected",
            "oauth_redirect_uri_rejected",
            {"redirect_host": host, "provider": provider},
        )

    def log_provider_linked(self, provider: str, customer_id: Optional[str]) -> None:
        self._emit(
            "INFO",
            "OAuth provider linked to existing customer",
            "oauth_provider_linked",
            {"provider": provider, "customer_id": customer_id},
        )


class NullSecurityLogger(BaseSecurityLogger):
    """No-op audit logger, selected explicitly by configuration."""

    def log_auth_success(
        self, provider: str, email: str, customer_id: Optional[str], is_new_user: bool = False
    ) -> None:
        pass

    def log_auth_failure(self, provider: str, reason: str, **context: Any) -> None:
        pass

    def log_refresh_success(self, provider: str, customer_id: Optional[str]) -> None:
        pass

    def log_refresh_failure(self, provider: str, reason: str, **context: Any) -> None:
        pass

    def log_suspicious_activity(self, activity_type: str, **context: Any) -> None:
        pass

    def log_jwt_verification_failure(self, provider: str, reason: str, **context: Any) -> None:
        pass

    def log_redirect_uri_rejected(self, redirect_uri: str, provider: str) -> None:
        pass

    def log_provider_linked(self, provider: str, customer_id: Optional[str]) -> None:
        pass
