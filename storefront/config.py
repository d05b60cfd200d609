from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

STATUS_POLICIES = {"permissive", "strict"}
PAYMENT_POLICIES = {"allow", "reject_closed"}


@dataclass
class Settings:
    site_name: str
    database_url: str
    session_secret: str
    admin_user: str
    # Plaintext or bcrypt hash (starts with $2b$...)
    admin_password: str
    log_level: str
    max_upload_mb: int
    upload_rate_limit: int
    upload_rate_window_ms: int
    order_status_policy: str
    payment_update_policy: str
    quote_expiry_days: int
    mail_enabled: bool

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024


def _policy(name: str, default: str, allowed: set) -> str:
    value = (os.getenv(name) or default).strip().lower()
    if value not in allowed:
        raise ValueError(f"{name} must be one of {sorted(allowed)}, got {value!r}")
    return value


def load_settings() -> Settings:
    return Settings(
        site_name=os.getenv("SITE_NAME", "Print Storefront"),
        database_url=os.getenv("DATABASE_URL", "sqlite:///data/storefront.db"),
        session_secret=os.getenv("SESSION_SECRET", "change_me_to_a_long_random_string"),
        admin_user=os.getenv("ADMIN_USER", "admin"),
        admin_password=os.getenv("ADMIN_PASSWORD", "change_me"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        max_upload_mb=int(os.getenv("MAX_UPLOAD_MB", "10")),
        upload_rate_limit=int(os.getenv("UPLOAD_RATE_LIMIT", "5")),
        upload_rate_window_ms=int(os.getenv("UPLOAD_RATE_WINDOW_MS", "60000")),
        order_status_policy=_policy("ORDER_STATUS_POLICY", "permissive", STATUS_POLICIES),
        payment_update_policy=_policy("PAYMENT_UPDATE_POLICY", "allow", PAYMENT_POLICIES),
        quote_expiry_days=int(os.getenv("QUOTE_EXPIRY_DAYS", "30")),
        mail_enabled=os.getenv("MAIL_ENABLED", "False") == "True",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()
