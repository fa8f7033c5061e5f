"""Tests for YAML configuration loading."""
import pytest

from config.settings import Settings, load_settings


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text(
        "app_name: Shortly Test\n"
        "email:\n"
        "  smtp:\n"
        "    host: ${TEST_SMTP_HOST}\n"
        "    port: 2525\n"
        "    password: ${TEST_SMTP_PASSWORD}\n"
        "  general:\n"
        "    enable_email_sending: false\n"
        "    max_retry_attempts: 5\n"
        "    retry_delay_milliseconds: 200\n"
        "    bulk_email_batch_size: 10\n"
        "    allowed_domains: [Example.com, shortly.io]\n"
        "    blocked_domains: 'spam.io, junk.net'\n"
        "geolocation:\n"
        "  timeout: 2\n"
    )
    return path


class TestLoadSettings:
    def test_values_loaded(self, config_file, monkeypatch):
        monkeypatch.setenv("TEST_SMTP_HOST", "smtp.internal")
        settings = load_settings(str(config_file))

        assert settings.app_name == "Shortly Test"
        assert settings.email.smtp.host == "smtp.internal"
        assert settings.email.smtp.port == 2525
        general = settings.email.general
        assert general.enable_email_sending is False
        assert general.max_retry_attempts == 5
        assert general.retry_delay_milliseconds == 200
        assert general.bulk_email_batch_size == 10
        assert general.bulk_email_delay_between_batches == 100
        assert general.allowed_domains == ["example.com", "shortly.io"]
        assert general.blocked_domains == ["spam.io", "junk.net"]
        assert settings.geolocation.timeout == 2.0
        assert settings.geolocation.base_url == "https://ipapi.co"

    def test_unset_env_var_left_as_is(self, config_file, monkeypatch):
        monkeypatch.delenv("TEST_SMTP_PASSWORD", raising=False)
        settings = load_settings(str(config_file))
        assert settings.email.smtp.password == "${TEST_SMTP_PASSWORD}"

    def test_missing_file_gives_defaults(self, tmp_path):
        settings = load_settings(str(tmp_path / "absent.yaml"))
        assert settings == Settings()
        assert settings.email.general.max_retry_attempts == 3
        assert settings.email.general.bulk_email_batch_size == 50

    def test_path_from_environment(self, config_file, monkeypatch):
        monkeypatch.setenv("SHORTLY_CONFIG", str(config_file))
        assert load_settings().app_name == "Shortly Test"
