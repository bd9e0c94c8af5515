# core/config.py
"""Runtime configuration read from the environment.

Values are passed through as opaque strings/numbers; nothing here talks to
the network or the database.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

# ──────────────────────────────────────────────────────────────────────────────
# Env helpers (strip quotes/whitespace so .env "KEY=value " doesn’t break things)
# ──────────────────────────────────────────────────────────────────────────────

def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    v = os.getenv(name)
    if v is None:
        return default
    v = v.strip()
    if (v.startswith('"') and v.endswith('"')) or (v.startswith("'") and v.endswith("'")):
        v = v[1:-1].strip()
    return v or default


def _env_int(name: str, default: int) -> int:
    return int(_env(name, str(default)) or default)


def _env_float(name: str, default: float) -> float:
    return float(_env(name, str(default)) or default)


@dataclass(frozen=True)
class Settings:
    fmp_base_url: str = "https://financialmodelingprep.com/api/v3"
    fmp_api_key: Optional[str] = None
    fmp_timeout_secs: float = 30.0
    database_url: str = "sqlite:///./notifications.db"
    smtp_host: str = "localhost"
    smtp_port: int = 1025
    smtp_sender: str = "noreply@stock.analysis"
    sms_webhook_url: Optional[str] = None
    sweep_interval_secs: int = 86400
    sweep_lookback_days: int = 120
    starting_cash: float = 10000.0
    log_level: str = "INFO"


def load_settings() -> Settings:
    return Settings(
        fmp_base_url=(_env("FMP_BASE_URL", Settings.fmp_base_url) or "").rstrip("/"),
        fmp_api_key=_env("FMP_API_KEY"),
        fmp_timeout_secs=_env_float("FMP_TIMEOUT_SECS", Settings.fmp_timeout_secs),
        database_url=_env("DATABASE_URL", Settings.database_url) or Settings.database_url,
        smtp_host=_env("SMTP_HOST", Settings.smtp_host) or Settings.smtp_host,
        smtp_port=_env_int("SMTP_PORT", Settings.smtp_port),
        smtp_sender=_env("SMTP_SENDER", Settings.smtp_sender) or Settings.smtp_sender,
        sms_webhook_url=_env("SMS_WEBHOOK_URL"),
        sweep_interval_secs=_env_int("SWEEP_INTERVAL_SECS", Settings.sweep_interval_secs),
        sweep_lookback_days=_env_int("SWEEP_LOOKBACK_DAYS", Settings.sweep_lookback_days),
        starting_cash=_env_float("STARTING_CASH", Settings.starting_cash),
        log_level=(_env("LOG_LEVEL", Settings.log_level) or "INFO").upper(),
    )
