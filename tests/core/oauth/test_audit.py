"""Security audit logger tests."""

import pytest
from loguru import logger

from headless_oauth.core.oauth.audit import NullSecurityLogger, OAuthSecurityLogger, mask_email


@pytest.fixture
def records():
    captured = []
    handler_id = logger.add(lambda message: captured.append(message.record), level="DEBUG")
    yield captured
    logger.remove(handler_id)


@pytest.mark.parametrize(
    "email,expected",
    [
        ("jane@example.com", "j***@example.com"),
        ("j@example.com", "***@example.com"),
        ("", "***"),
        (None, "***"),
        ("no-at-sign", "***"),
        ("a@b@c", "***"),
    ],
)
def test_mask_email(email, expected):
    assert mask_email(email) == expected


class TestOAuthSecurityLogger:
    def test_auth_success_masks_email(self, records):
        OAuthSecurityLogger().log_auth_success("google", "jane@example.com", "c-1", is_new_user=True)

        record = records[-1]
        assert record["level"].name == "INFO"
        assert record["extra"]["event_type"] == "oauth_auth_success"
        assert record["extra"]["email"] == "j***@example.com"
        assert record["extra"]["is_new_user"] is True
        assert "jane@example.com" not in record["message"]

    def test_failure_events_are_warnings(self, records):
        audit = OAuthSecurityLogger()
        audit.log_auth_failure("github", "bad code", ip="10.0.0.1")
        audit.log_refresh_failure("apple", "revoked")
        audit.log_jwt_verification_failure("apple", "bad signature")
        audit.log_suspicious_activity("account_link_conflict", customer_id="c-1")

        assert [r["level"].name for r in records[-4:]] == ["WARNING"] * 4
        assert [r["extra"]["event_type"] for r in records[-4:]] == [
            "oauth_auth_failure",
            "oauth_refresh_failure",
            "oauth_jwt_verification_failure",
            "oauth_suspicious_activity",
        ]
        assert records[-4]["extra"]["ip"] == "10.0.0.1"

    def test_redirect_rejection_logs_host_only(self, records):
        OAuthSecurityLogger().log_redirect_uri_rejected("https://evil.example.com/steal?code=secret", "google")

        record = records[-1]
        assert record["extra"]["redirect_host"] == "evil.example.com"
        assert "code=secret" not in record["message"]

    def test_success_events(self, records):
        audit = OAuthSecurityLogger()
        audit.log_refresh_success("google", "c-1")
        audit.log_provider_linked("github", "c-1")

        assert [r["extra"]["event_type"] for r in records[-2:]] == ["oauth_refresh_success", "oauth_provider_linked"]

    def test_never_raises(self):
        class Unprintable:
            def __str__(self):
                raise RuntimeError("cannot render")

        OAuthSecurityLogger().log_auth_failure("google", "anything", detail=Unprintable())


def test_null_logger_is_silent(records):
    audit = NullSecurityLogger()
    audit.log_auth_success("google", "a@b.com", "c-1")
    audit.log_auth_failure("google", "x")
    audit.log_redirect_uri_rejected("https://x", "google")
    assert records == []
