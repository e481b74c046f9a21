"""OAuth provider config loader tests."""

import textwrap

import pytest
import yaml

from headless_oauth.core.oauth.config import OAuthConfigLoader


def _write(tmp_path, content: str) -> str:
    path = tmp_path / "oauth_providers.yaml"
    path.write_text(textwrap.dedent(content), encoding="utf-8")
    return str(path)


class TestOAuthConfigLoader:
    def test_loads_providers_in_order(self, tmp_path, monkeypatch):
        monkeypatch.setenv("GOOGLE_CLIENT_ID", "google-id")
        monkeypatch.delenv("GOOGLE_CLIENT_SECRET", raising=False)
        path = _write(
            tmp_path,
            """
            settings:
              allowed_redirect_uris:
                - https://shop.example.com/callback
              cache: null
            providers:
              google:
                enabled: true
                client_id: ${GOOGLE_CLIENT_ID}
                client_secret: ${GOOGLE_CLIENT_SECRET}
              keycloak:
                enabled: "false"
                template: oidc
                issuer_url: https://sso.example.com
            """,
        )

        loader = OAuthConfigLoader(path)
        providers = loader.get_all_providers()

        assert list(providers) == ["google", "keycloak"]
        google = providers["google"]
        assert google.template == "google"
        assert google.display_name == "Google"
        assert google.client_id == "google-id"
        assert google.client_secret == "${GOOGLE_CLIENT_SECRET}"
        assert google.scopes == "openid email profile"

        keycloak = providers["keycloak"]
        assert keycloak.template == "oidc"
        assert keycloak.enabled is False
        assert keycloak.display_name is None

        assert [p.name for p in loader.enabled_providers()] == ["google"]
        assert loader.is_provider_enabled("google")
        assert not loader.is_provider_enabled("keycloak")
        assert not loader.is_provider_enabled("missing")
        assert loader.get_provider("missing") is None

    def test_settings(self):
        loader = OAuthConfigLoader("/nonexistent.yaml")
        loader.load_dict(
            {
                "settings": {
                    "allowed_redirect_uris": "https://a.example.com, https://b.example.com",
                    "validate_redirect_uris": "no",
                    "verify_jwt": False,
                    "cache": "REDIS",
                    "audit_log": "0",
                },
                "providers": {},
            }
        )

        settings = loader.settings
        assert settings.allowed_redirect_uris == ["https://a.example.com", "https://b.example.com"]
        assert settings.validate_redirect_uris is False
        assert settings.verify_jwt is False
        assert settings.cache == "redis"
        assert settings.audit_log is False

    def test_defaults_when_file_missing(self, tmp_path):
        loader = OAuthConfigLoader(str(tmp_path / "absent.yaml"))

        assert loader.get_all_providers() == {}
        assert loader.settings.validate_redirect_uris is True
        assert loader.settings.verify_jwt is True
        assert loader.settings.cache == "memory"

    def test_unknown_template(self):
        loader = OAuthConfigLoader("/nonexistent.yaml")
        with pytest.raises(ValueError, match="unknown template 'okta'"):
            loader.load_dict({"providers": {"okta": {"enabled": True}}})

    def test_unknown_cache(self):
        loader = OAuthConfigLoader("/nonexistent.yaml")
        with pytest.raises(ValueError, match="Unknown cache"):
            loader.load_dict({"settings": {"cache": "memcached"}})

    def test_provider_must_be_mapping(self):
        loader = OAuthConfigLoader("/nonexistent.yaml")
        with pytest.raises(ValueError, match="must be a mapping"):
            loader.load_dict({"providers": {"google": "yes"}})

    def test_verify_jwt_override_and_extra_keys(self):
        loader = OAuthConfigLoader("/nonexistent.yaml")
        loader.load_dict(
            {
                "providers": {
                    "apple": {"enabled": True, "verify_jwt": False, "button_color": "black"},
                    "google": {"enabled": True},
                }
            }
        )

        assert loader.get_provider("apple").verify_jwt is False
        assert loader.get_provider("apple").extra == {"button_color": "black"}
        assert loader.get_provider("google").verify_jwt is None

    def test_invalid_yaml(self, tmp_path):
        loader = OAuthConfigLoader(_write(tmp_path, "providers: [unclosed\n"))
        with pytest.raises(yaml.YAMLError):
            loader.load()

    def test_reload(self, tmp_path):
        path = _write(tmp_path, "providers:\n  google:\n    enabled: false\n")
        loader = OAuthConfigLoader(path)
        assert not loader.is_provider_enabled("google")

        _write(tmp_path, "providers:\n  google:\n    enabled: true\n")
        assert not loader.is_provider_enabled("google")

        loader.load(force_reload=True)
        assert loader.is_provider_enabled("google")

    def test_shipped_config_parses(self):
        loader = OAuthConfigLoader()
        providers = loader.get_all_providers()

        assert {"google", "apple", "facebook", "github", "linkedin", "keycloak"} <= set(providers)
        assert providers["keycloak"].template == "oidc"
        assert loader.enabled_providers() == []
