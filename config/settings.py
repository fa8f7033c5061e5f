"""
Configuration loader for the Shortly background job subsystem.
Reads settings from YAML file with environment variable substitution.
"""
from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml


@dataclass
class SmtpConfig:
    host: str = "localhost"
    port: int = 587
    username: str = ""
    password: str = ""
    from_email: str = "no-reply@example.com"
    from_name: str = "Shortly"
    use_tls: bool = False               # implicit TLS (port 465)
    start_tls: bool = True              # STARTTLS upgrade (port 587)
    timeout: float = 30.0               # seconds


@dataclass
class EmailGeneralConfig:
    enable_email_sending: bool = True
    max_retry_attempts: int = 3
    retry_delay_milliseconds: int = 1000        # fixed, not exponential
    bulk_email_batch_size: int = 50
    bulk_email_delay_between_batches: int = 100  # milliseconds
    log_email_content: bool = False
    allowed_domains: list[str] = field(default_factory=list)
    blocked_domains: list[str] = field(default_factory=list)


@dataclass
class EmailConfig:
    provider: str = "smtp"
    smtp: SmtpConfig = field(default_factory=SmtpConfig)
    general: EmailGeneralConfig = field(default_factory=EmailGeneralConfig)


@dataclass
class GeoLocationConfig:
    base_url: str = "https://ipapi.co"
    timeout: float = 5.0


@dataclass
class Settings:
    app_name: str = "Shortly"
    debug: bool = False
    email: EmailConfig = field(default_factory=EmailConfig)
    geolocation: GeoLocationConfig = field(default_factory=GeoLocationConfig)


_settings: Optional[Settings] = None


def _substitute_env_vars(value: str) -> str:
    """Replace ${VAR_NAME} patterns with environment variable values."""
    pattern = re.compile(r'\$\{(\w+)\}')
    def replacer(match):
        var_name = match.group(1)
        return os.environ.get(var_name, match.group(0))
    return pattern.sub(replacer, value)


def _process_values(obj: Any) -> Any:
    """Recursively substitute env vars in all string values."""
    if isinstance(obj, str):
        return _substitute_env_vars(obj)
    elif isinstance(obj, dict):
        return {k: _process_values(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_process_values(v) for v in obj]
    return obj


def _domain_list(values: Any) -> list[str]:
    if not values:
        return []
    if isinstance(values, str):
        values = values.split(",")
    return [str(v).strip().lower() for v in values if str(v).strip()]


def _load_email(raw: dict[str, Any]) -> EmailConfig:
    defaults = EmailConfig()
    smtp_raw = raw.get("smtp", {}) or {}
    general_raw = raw.get("general", {}) or {}

    smtp = SmtpConfig(
        host=smtp_raw.get("host", defaults.smtp.host),
        port=int(smtp_raw.get("port", defaults.smtp.port)),
        username=smtp_raw.get("username", defaults.smtp.username),
        password=smtp_raw.get("password", defaults.smtp.password),
        from_email=smtp_raw.get("from_email", defaults.smtp.from_email),
        from_name=smtp_raw.get("from_name", defaults.smtp.from_name),
        use_tls=smtp_raw.get("use_tls", defaults.smtp.use_tls),
        start_tls=smtp_raw.get("start_tls", defaults.smtp.start_tls),
        timeout=float(smtp_raw.get("timeout", defaults.smtp.timeout)),
    )

    g = defaults.general
    general = EmailGeneralConfig(
        enable_email_sending=general_raw.get("enable_email_sending", g.enable_email_sending),
        max_retry_attempts=int(general_raw.get("max_retry_attempts", g.max_retry_attempts)),
        retry_delay_milliseconds=int(general_raw.get("retry_delay_milliseconds", g.retry_delay_milliseconds)),
        bulk_email_batch_size=int(general_raw.get("bulk_email_batch_size", g.bulk_email_batch_size)),
        bulk_email_delay_between_batches=int(
            general_raw.get("bulk_email_delay_between_batches", g.bulk_email_delay_between_batches)
        ),
        log_email_content=general_raw.get("log_email_content", g.log_email_content),
        allowed_domains=_domain_list(general_raw.get("allowed_domains")),
        blocked_domains=_domain_list(general_raw.get("blocked_domains")),
    )

    return EmailConfig(
        provider=raw.get("provider", defaults.provider),
        smtp=smtp,
        general=general,
    )


def load_settings(config_path: str = None) -> Settings:
    """Load settings from YAML file."""
    global _settings

    if config_path is None:
        config_path = os.environ.get(
            "SHORTLY_CONFIG",
            str(Path(__file__).parent / "settings.yaml"),
        )

    settings = Settings()

    if Path(config_path).exists():
        with open(config_path) as f:
            raw = yaml.safe_load(f) or {}
        raw = _process_values(raw)

        settings.app_name = raw.get("app_name", settings.app_name)
        settings.debug = raw.get("debug", settings.debug)

        if "email" in raw:
            settings.email = _load_email(raw["email"] or {})

        if "geolocation" in raw:
            geo = raw["geolocation"] or {}
            settings.geolocation = GeoLocationConfig(
                base_url=geo.get("base_url", settings.geolocation.base_url),
                timeout=float(geo.get("timeout", settings.geolocation.timeout)),
            )

    _settings = settings
    return settings


def get_settings() -> Settings:
    """Return cached settings or load from default path."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings
