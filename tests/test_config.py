"""Tests for settings loading."""
import textwrap

import pytest

from config.settings import DEFAULT_ENDPOINTS, Settings, get_settings, load_settings


@pytest.fixture(autouse=True)
def restore_cached_settings(monkeypatch):
    # load_settings() replaces the process-wide cache
    monkeypatch.setattr("config.settings._settings", None)


class TestLoadSettings:

    def test_get_settings_caches(self):
        assert get_settings() is get_settings()

    def test_missing_file_gives_defaults(self, tmp_path):
        settings = load_settings(str(tmp_path / "absent.yaml"))
        assert settings.api.base_url == "http://localhost:3000"
        assert settings.api.retry_attempts == 1
        assert settings.phone.default_country_code == "1"
        assert 31486 in settings.calling.hangup_error_codes

    def test_yaml_overrides_and_env_substitution(self, tmp_path, monkeypatch):
        monkeypatch.setenv("CALL_CONSOLE_API_URL", "https://api.example.com")
        path = tmp_path / "settings.yaml"
        path.write_text(textwrap.dedent("""
            app_name: TestConsole
            api:
              base_url: ${CALL_CONSOLE_API_URL}
              retry_attempts: 3
              endpoints:
                my_numbers: /v2/numbers
            phone:
              default_country_code: "+44"
              national_number_length: 10
              strict: true
            calling:
              tick_interval: 0.5
              hangup_error_codes: ["31486"]
        """))

        settings = load_settings(str(path))

        assert settings.app_name == "TestConsole"
        assert settings.api.base_url == "https://api.example.com"
        assert settings.api.retry_attempts == 3
        assert settings.api.endpoints["my_numbers"] == "/v2/numbers"
        assert settings.api.endpoints["recordings"] == DEFAULT_ENDPOINTS["recordings"]
        assert settings.phone.default_country_code == "44"
        assert settings.phone.strict is True
        assert settings.calling.tick_interval == 0.5
        assert settings.calling.hangup_error_codes == [31486]
        assert settings.calling.identity_prefix == "user_"

    def test_unset_env_var_left_verbatim(self, tmp_path, monkeypatch):
        monkeypatch.delenv("CALL_CONSOLE_UNSET", raising=False)
        path = tmp_path / "settings.yaml"
        path.write_text("api:\n  base_url: ${CALL_CONSOLE_UNSET}\n")
        assert load_settings(str(path)).api.base_url == "${CALL_CONSOLE_UNSET}"

    def test_bundled_settings_file(self):
        settings = load_settings()
        assert isinstance(settings, Settings)
        assert settings.api.endpoints["access_token"] == "/api/twilio/access-token"
