"""
Application Configuration.

Centralized configuration for the laundry operations service.
"""

import os
from dataclasses import dataclass, field, replace
from datetime import timedelta, timezone
from pathlib import Path

from ..domain.value_objects import TimeWindow

DEFAULT_TIME_WINDOWS: tuple[TimeWindow, ...] = (
    TimeWindow.from_string("morning", "Morning", "8a-12p"),
    TimeWindow.from_string("afternoon", "Afternoon", "12p-4p"),
    TimeWindow.from_string("evening", "Evening", "4p-8p"),
)

ENV_PREFIX = "LAUNDRY_OPS_"

# Only used when LAUNDRY_OPS_DEV_MODE is switched on.
DEV_SESSION_SECRET = "dev-only-session-secret"


def _env(name: str, default: str | None = None) -> str | None:
    return os.getenv(f"{ENV_PREFIX}{name}", default)


def _env_bool(name: str, default: bool) -> bool:
    value = _env(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class ApplicationConfig:
    """
    Central configuration for the application.

    All paths and settings are configurable through this object.
    """
    # Storage
    database_path: Path
    log_dir: Path
    log_level: str = "INFO"

    # HTTP
    base_url: str = "http://localhost:8000"
    host: str = "127.0.0.1"
    port: int = 8000

    # Money
    currency: str = "usd"
    minimum_order_cents: int = 3500

    # Access
    token_ttl_days: int = 14
    session_secret: str = ""
    session_ttl_hours: int = 12

    # Scheduling
    time_windows: tuple[TimeWindow, ...] = field(default=DEFAULT_TIME_WINDOWS)
    utc_offset_hours: int = -5

    # Notifications
    notify_async: bool = False
    notification_workers: int = 4
    notification_max_attempts: int = 5

    def __post_init__(self):
        """Validate configuration after initialization."""
        if not 0 < self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}")
        if self.minimum_order_cents < 0:
            raise ValueError("minimum_order_cents cannot be negative")
        if self.token_ttl_days <= 0:
            raise ValueError("token_ttl_days must be positive")
        if self.notification_workers < 1:
            raise ValueError("notification_workers must be at least 1")
        if not self.time_windows:
            raise ValueError("At least one time window is required")

    @classmethod
    def from_defaults(cls) -> "ApplicationConfig":
        """
        Create configuration with default values.

        Returns:
            ApplicationConfig with standard defaults
        """
        base_path = Path.cwd()

        return cls(
            database_path=base_path / "data" / "laundry_ops.db",
            log_dir=base_path / "data" / "logs",
        )

    @classmethod
    def from_env(cls) -> "ApplicationConfig":
        """
        Create configuration from LAUNDRY_OPS_* environment variables.

        Unset variables fall back to the defaults. LAUNDRY_OPS_SESSION_SECRET
        is required unless LAUNDRY_OPS_DEV_MODE is on, in which case a fixed
        development secret is used.

        Returns:
            ApplicationConfig

        Raises:
            ValueError: No session secret and dev mode is off
        """
        defaults = cls.from_defaults()

        session_secret = _env("SESSION_SECRET")
        if not session_secret:
            if not _env_bool("DEV_MODE", False):
                raise ValueError(
                    f"{ENV_PREFIX}SESSION_SECRET must be set "
                    f"(or set {ENV_PREFIX}DEV_MODE=1 for local development)"
                )
            session_secret = DEV_SESSION_SECRET

        return replace(
            defaults,
            database_path=Path(_env("DB_PATH", str(defaults.database_path))),
            log_dir=Path(_env("LOG_DIR", str(defaults.log_dir))),
            log_level=_env("LOG_LEVEL", defaults.log_level).upper(),
            base_url=_env("BASE_URL", defaults.base_url),
            host=_env("HOST", defaults.host),
            port=int(_env("PORT", str(defaults.port))),
            currency=_env("CURRENCY", defaults.currency).lower(),
            minimum_order_cents=int(_env("MINIMUM_ORDER_CENTS", str(defaults.minimum_order_cents))),
            token_ttl_days=int(_env("TOKEN_TTL_DAYS", str(defaults.token_ttl_days))),
            session_secret=session_secret,
            session_ttl_hours=int(_env("SESSION_TTL_HOURS", str(defaults.session_ttl_hours))),
            utc_offset_hours=int(_env("UTC_OFFSET_HOURS", str(defaults.utc_offset_hours))),
            notify_async=_env_bool("NOTIFY_ASYNC", defaults.notify_async),
            notification_workers=int(_env("NOTIFICATION_WORKERS", str(defaults.notification_workers))),
            notification_max_attempts=int(
                _env("NOTIFICATION_MAX_ATTEMPTS", str(defaults.notification_max_attempts))
            ),
        )

    @classmethod
    def for_testing(cls, base_path: Path) -> "ApplicationConfig":
        """
        Create configuration for testing environment.

        Args:
            base_path: Scratch directory (usually pytest's tmp_path)

        Returns:
            ApplicationConfig with testing defaults
        """
        return cls(
            database_path=base_path / "laundry_ops_test.db",
            log_dir=base_path / "logs",
            log_level="DEBUG",
            base_url="http://testserver",
            session_secret="test-session-secret",
            utc_offset_hours=0,
            notify_async=False,
            notification_workers=1,
        )

    @property
    def local_timezone(self) -> timezone:
        return timezone(timedelta(hours=self.utc_offset_hours))

    def window_map(self) -> dict[str, TimeWindow]:
        """Time windows keyed by id."""
        return {window.window_id: window for window in self.time_windows}

    def ensure_directories(self) -> None:
        """Create all required directories if they don't exist."""
        self.database_path.parent.mkdir(parents=True, exist_ok=True)
        self.log_dir.mkdir(parents=True, exist_ok=True)
