from __future__ import annotations

import argparse
import logging
import os
from dataclasses import dataclass

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)

DEFAULT_PORT = 5000
DEFAULT_SMTP_PORT = 587


class ConfigurationError(RuntimeError):
    pass


@dataclass(frozen=True)
class AppConfig:
    database_url: str
    notify_recipients: tuple[str, ...] = ()
    smtp_host: str | None = None
    smtp_port: int = DEFAULT_SMTP_PORT
    smtp_user: str | None = None
    smtp_password: str | None = None
    smtp_sender: str | None = None
    smtp_starttls: bool = True
    port: int = DEFAULT_PORT
    sync_interval_minutes: int = 30
    notify_interval_minutes: int = 1
    notify_tolerance_minutes: int = 5
    lookahead_days: int = 14
    fetch_timeout_seconds: float = 12.0
    auto_sync_enabled: bool = True

    @property
    def notifications_enabled(self) -> bool:
        return bool(self.notify_recipients)

    @property
    def smtp_configured(self) -> bool:
        return bool(self.smtp_host)


def _env(name: str) -> str:
    return (os.getenv(name) or "").strip()


def _env_int(name: str, default: int, *, minimum: int) -> int:
    raw = _env(name)
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from exc
    if value < minimum:
        raise ConfigurationError(f"{name} must be >= {minimum}, got {value}")
    return value


def _env_float(name: str, default: float) -> float:
    raw = _env(name)
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from exc
    if value <= 0:
        raise ConfigurationError(f"{name} must be > 0, got {value}")
    return value


def _env_bool(name: str, default: bool) -> bool:
    raw = _env(name).lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "on"}


def _parse_recipients(raw: str) -> tuple[str, ...]:
    return tuple(item.strip() for item in raw.split(",") if item.strip())


def _resolve_smtp_password() -> str | None:
    plain = _env("SMTP_PASSWORD")
    if plain:
        return plain
    encrypted = _env("SMTP_PASSWORD_ENC")
    if not encrypted:
        return None
    return decrypt_secret(encrypted)


def load_config() -> AppConfig:
    """Read and validate the environment.

    Required values raise ConfigurationError. Missing notification settings
    only disable sending.
    """
    database_url = _env("DATABASE_URL")
    if not database_url:
        raise ConfigurationError("DATABASE_URL is required")

    notify_interval = _env_int("NOTIFY_INTERVAL_MINUTES", 1, minimum=1)
    tolerance = _env_int("NOTIFY_TOLERANCE_MINUTES", 5, minimum=0)
    if tolerance < notify_interval:
        raise ConfigurationError(
            "NOTIFY_TOLERANCE_MINUTES must be >= NOTIFY_INTERVAL_MINUTES "
            f"(got tolerance={tolerance} interval={notify_interval}); "
            "threshold crossings would be missed"
        )

    smtp_user = _env("SMTP_USER") or None
    config = AppConfig(
        database_url=database_url,
        notify_recipients=_parse_recipients(_env("NOTIFY_RECIPIENTS")),
        smtp_host=_env("SMTP_HOST") or None,
        smtp_port=_env_int("SMTP_PORT", DEFAULT_SMTP_PORT, minimum=1),
        smtp_user=smtp_user,
        smtp_password=_resolve_smtp_password(),
        smtp_sender=_env("SMTP_SENDER") or smtp_user,
        smtp_starttls=_env_bool("SMTP_STARTTLS", True),
        port=_env_int("PORT", DEFAULT_PORT, minimum=1),
        sync_interval_minutes=_env_int("SYNC_INTERVAL_MINUTES", 30, minimum=1),
        notify_interval_minutes=notify_interval,
        notify_tolerance_minutes=tolerance,
        lookahead_days=_env_int("CONTEST_LOOKAHEAD_DAYS", 14, minimum=1),
        fetch_timeout_seconds=_env_float("FETCH_TIMEOUT_SECONDS", 12.0),
        auto_sync_enabled=_env_bool("AUTO_SYNC_ENABLED", True),
    )

    if not config.notifications_enabled:
        logger.warning("NOTIFY_RECIPIENTS is empty. Contest notifications are disabled.")
    if not config.smtp_configured:
        logger.warning("SMTP_HOST is not set. Notifications will only be logged.")
    return config


def get_fernet() -> Fernet:
    secret = _env("APP_SECRET_KEY")
    if not secret:
        raise ConfigurationError("APP_SECRET_KEY is required to handle encrypted secrets")
    try:
        return Fernet(secret.encode("utf-8"))
    except ValueError as exc:
        raise ConfigurationError("APP_SECRET_KEY is not a valid Fernet key") from exc


def encrypt_secret(value: str) -> str:
    return get_fernet().encrypt(value.encode("utf-8")).decode("utf-8")


def decrypt_secret(encrypted: str) -> str | None:
    try:
        fernet = get_fernet()
    except ConfigurationError as exc:
        logger.error("Cannot decrypt SMTP_PASSWORD_ENC: %s", exc)
        return None
    try:
        return fernet.decrypt(encrypted.encode("utf-8")).decode("utf-8")
    except InvalidToken:
        logger.error("Failed to decrypt SMTP_PASSWORD_ENC. Check APP_SECRET_KEY.")
        return None


def main() -> None:
    parser = argparse.ArgumentParser(description="Helpers for contest-reminder secrets.")
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--generate-key", action="store_true", help="Print a new APP_SECRET_KEY.")
    group.add_argument("--encrypt", metavar="VALUE", help="Encrypt VALUE with APP_SECRET_KEY.")
    args = parser.parse_args()

    if args.generate_key:
        print(Fernet.generate_key().decode("utf-8"))
        return
    try:
        print(encrypt_secret(args.encrypt))
    except ConfigurationError as exc:
        raise SystemExit(str(exc)) from exc


if __name__ == "__main__":
    main()
