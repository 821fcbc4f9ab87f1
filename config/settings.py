"""
Configuration loader for the call console.
Reads settings from YAML file with environment variable substitution.
"""
from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml


DEFAULT_ENDPOINTS: dict[str, str] = {
    "access_token": "/api/twilio/access-token",
    "my_numbers": "/api/twilio/my-numbers",
    "release_number": "/api/twilio/my-numbers/{number_id}",
    "available_numbers": "/api/twilio/available-numbers",
    "buy_number": "/api/twilio/buy-number",
    "call_logs": "/api/twilio/call-logs",
    "call_log": "/api/twilio/call-logs/{call_sid}",
    "recordings": "/api/twilio/recordings",
    "recording": "/api/twilio/recordings/{recording_sid}",
    "call_forwarding": "/api/call-forwarding",
    "call_forwarding_item": "/api/call-forwarding/{forwarding_id}",
}


@dataclass
class ApiConfig:
    base_url: str = "http://localhost:3000"
    timeout: float = 30.0
    connect_timeout: float = 10.0
    retry_attempts: int = 1             # 1 = no retry; callers opt in
    retry_max_wait: float = 5.0
    endpoints: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_ENDPOINTS))


@dataclass
class PhoneConfig:
    default_country_code: str = "1"
    national_number_length: int = 10
    strict: bool = False                # reject numbers outside the known shapes


@dataclass
class CallingConfig:
    tick_interval: float = 1.0          # seconds between duration ticks
    ready_timeout: float = 15.0         # wait_until_ready() default
    identity_prefix: str = "user_"
    # SDK codes that mean "the call simply ended" (busy, declined, hung up)
    hangup_error_codes: list[int] = field(
        default_factory=lambda: [31005, 31480, 31486, 31603]
    )
    hangup_message_substrings: list[str] = field(
        default_factory=lambda: ["hangup", "hung up", "call ended", "busy", "declined"]
    )


@dataclass
class Settings:
    app_name: str = "CallConsole"
    debug: bool = False
    api: ApiConfig = field(default_factory=ApiConfig)
    phone: PhoneConfig = field(default_factory=PhoneConfig)
    calling: CallingConfig = field(default_factory=CallingConfig)


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


def load_settings(config_path: str = None) -> Settings:
    """Load settings from YAML file."""
    global _settings

    if config_path is None:
        config_path = os.environ.get(
            "CALL_CONSOLE_CONFIG",
            str(Path(__file__).parent / "settings.yaml"),
        )

    settings = Settings()

    if Path(config_path).exists():
        with open(config_path) as f:
            raw = yaml.safe_load(f) or {}
        raw = _process_values(raw)

        settings.app_name = raw.get("app_name", settings.app_name)
        settings.debug = raw.get("debug", settings.debug)

        if "api" in raw:
            api = raw["api"]
            settings.api = ApiConfig(
                base_url=api.get("base_url", settings.api.base_url),
                timeout=float(api.get("timeout", settings.api.timeout)),
                connect_timeout=float(api.get("connect_timeout", settings.api.connect_timeout)),
                retry_attempts=int(api.get("retry_attempts", settings.api.retry_attempts)),
                retry_max_wait=float(api.get("retry_max_wait", settings.api.retry_max_wait)),
                # Partial overrides keep the default paths for unnamed endpoints
                endpoints={**DEFAULT_ENDPOINTS, **api.get("endpoints", {})},
            )

        if "phone" in raw:
            ph = raw["phone"]
            settings.phone = PhoneConfig(
                default_country_code=str(ph.get("default_country_code", "1")).lstrip("+"),
                national_number_length=int(ph.get("national_number_length", 10)),
                strict=bool(ph.get("strict", False)),
            )

        if "calling" in raw:
            c = raw["calling"]
            defaults = CallingConfig()
            settings.calling = CallingConfig(
                tick_interval=float(c.get("tick_interval", defaults.tick_interval)),
                ready_timeout=float(c.get("ready_timeout", defaults.ready_timeout)),
                identity_prefix=c.get("identity_prefix", defaults.identity_prefix),
                hangup_error_codes=[
                    int(code) for code in c.get("hangup_error_codes", defaults.hangup_error_codes)
                ],
                hangup_message_substrings=c.get(
                    "hangup_message_substrings", defaults.hangup_message_substrings
                ),
            )

    _settings = settings
    return settings


def get_settings() -> Settings:
    """Return cached settings or load from default path."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings
