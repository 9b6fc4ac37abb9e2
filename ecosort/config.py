"""
EcoSort - Configuration Management
==================================
Centralized configuration with environment variable support and validation.

Usage:
    from ecosort.config import settings

    db_path = settings.db_path
    page_size = settings.rewards_page_size
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass
class Settings:
    """Application settings with environment variable overrides."""

    # Paths
    db_path: Path = field(default_factory=lambda: Path("data/ecosort.db"))
    rate_limit_db_path: Path = field(default_factory=lambda: Path("data/.rate_limits.db"))

    # Accounts provisioned with the admin role on first sight
    admin_user_ids: set[str] = field(default_factory=set)

    # Listing sizes
    leaderboard_size: int = 10
    rewards_page_size: int = 12
    # Upper bound for the `limit` query parameter on every listing route
    max_page_size: int = 500
    notifications_limit: int = 50

    # Redemption codes
    redemption_code_length: int = 8

    # Free text limits
    max_description_chars: int = 2000
    max_comment_chars: int = 500
    max_notes_chars: int = 2000

    # Rate limiting (write endpoints)
    rate_limit_requests: int = 30
    rate_limit_window_seconds: int = 60

    # Reverse proxy / client IP extraction
    # When running behind a reverse proxy, set TRUST_PROXY_HEADERS=true and TRUSTED_PROXY_IPS
    # to correctly derive client IPs from X-Forwarded-For.
    trust_proxy_headers: bool = False
    trusted_proxy_ips: set[str] = field(default_factory=set)

    # CORS configuration
    # Set CORS_ALLOW_ORIGINS environment variable to comma-separated list of allowed origins
    # Use "*" for development only (allows all origins)
    cors_allow_origins: set[str] = field(
        default_factory=lambda: {
            "http://localhost",
            "http://localhost:3000",
            "http://127.0.0.1",
            "http://127.0.0.1:3000",
        }
    )
    cors_allow_credentials: bool = False
    cors_max_age: int = 600  # 10 minutes

    csp_use_nonce: bool = True

    # Feature flags
    enable_rate_limit: bool = True
    debug_mode: bool = False

    def __post_init__(self):
        """Load overrides from environment variables."""
        self._load_env_overrides()

    def _load_env_overrides(self):
        """Load configuration from environment variables."""
        # Paths
        if db_path := os.environ.get("ECOSORT_DB_PATH"):
            self.db_path = Path(db_path)
        if rl_path := os.environ.get("RATE_LIMIT_DB_PATH"):
            self.rate_limit_db_path = Path(rl_path)

        # Admin bootstrap
        if admins := os.environ.get("ECOSORT_ADMIN_USER_IDS", "").strip():
            self.admin_user_ids = {uid.strip() for uid in admins.split(",") if uid.strip()}

        # Listing sizes
        if size := os.environ.get("LEADERBOARD_SIZE"):
            self.leaderboard_size = int(size)
        if size := os.environ.get("REWARDS_PAGE_SIZE"):
            self.rewards_page_size = int(size)
        if size := os.environ.get("MAX_PAGE_SIZE"):
            self.max_page_size = int(size)

        # Rate limiting
        if rate_limit := os.environ.get("RATE_LIMIT_REQUESTS"):
            self.rate_limit_requests = int(rate_limit)
        if window := os.environ.get("RATE_LIMIT_WINDOW"):
            self.rate_limit_window_seconds = int(window)
        if os.environ.get("DISABLE_RATE_LIMIT", "").lower() in ("1", "true", "yes"):
            self.enable_rate_limit = False

        # Reverse proxy / headers
        if os.environ.get("TRUST_PROXY_HEADERS", "").lower() in ("1", "true", "yes"):
            self.trust_proxy_headers = True
        if trusted := os.environ.get("TRUSTED_PROXY_IPS", "").strip():
            self.trusted_proxy_ips = {ip.strip() for ip in trusted.split(",") if ip.strip()}

        # CORS configuration - security: requires explicit configuration
        if cors_origins := os.environ.get("CORS_ALLOW_ORIGINS", "").strip():
            if cors_origins == "*":
                logger.warning(
                    "CORS_ALLOW_ORIGINS set to '*' - allowing all origins. " "This should only be used in development."
                )
                self.cors_allow_origins = {"*"}
            else:
                self.cors_allow_origins = {origin.strip() for origin in cors_origins.split(",") if origin.strip()}
        if cors_max_age := os.environ.get("CORS_MAX_AGE"):
            self.cors_max_age = int(cors_max_age)

        if os.environ.get("CSP_USE_NONCE", "").lower() in ("0", "false", "no"):
            self.csp_use_nonce = False

        if os.environ.get("DEBUG", "").lower() in ("1", "true"):
            self.debug_mode = True


# Singleton instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
        if _settings.debug_mode:
            logger.info("Settings loaded with debug mode enabled")
    return _settings


def reload_settings() -> Settings:
    """Force reload settings from environment."""
    global _settings
    _settings = Settings()
    return _settings


# Convenience alias
settings = get_settings()


# Domain constants
ROLES = frozenset({"resident", "admin"})

SUBMISSION_STATUSES = frozenset({"pending", "confirmed", "rejected"})

REDEMPTION_STATUSES = frozenset({"pending", "claimed", "cancelled"})

REPORT_STATUSES = frozenset({"pending", "in_progress", "resolved", "rejected"})

TRANSACTION_TYPES = frozenset({"points_awarded", "points_redeemed", "points_refunded"})

# Ledger types that count as spending in the "redeemed" view
SPENT_TRANSACTION_TYPES = frozenset({"points_redeemed"})

FREQUENCIES = frozenset({"weekly", "biweekly", "monthly"})

WEEKDAYS = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)

DEFAULT_SEVERITY_LEVELS = (
    {"value": "low", "label": "Low"},
    {"value": "medium", "label": "Medium"},
    {"value": "high", "label": "High"},
)

ALL_REPORTS_CATEGORY = {"id": "all", "label": "All Reports", "icon": "📋"}
DEFAULT_CATEGORY_ICON = "❓"
DEFAULT_REWARD_CATEGORY = "Uncategorized"
