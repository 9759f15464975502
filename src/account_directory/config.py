"""
Server configuration management.

This module handles loading and accessing server configuration from multiple sources
with a clear priority order:

    1. Environment variables (highest priority) - for containerized deployments
    2. Config file (config/server.ini) - for static deployments
    3. Built-in defaults (lowest priority) - sensible fallbacks

Configuration is loaded once at module import time and cached. The ServerConfig
dataclass provides typed access to all settings.

Usage:
    from account_directory.config import config

    print(config.server.port)
    print(config.directory.max_limit)
    print(config.auth.challenge_max_attempts)

Environment Variable Mapping:
    DIRECTORY_HOST                     -> server.host
    DIRECTORY_PORT                     -> server.port
    DIRECTORY_PRODUCTION               -> security.production
    DIRECTORY_CORS_ORIGINS             -> security.cors_origins
    DIRECTORY_DB_PATH                  -> database.path
    DIRECTORY_LOG_LEVEL                -> logging.level
    DIRECTORY_LOG_FORMAT               -> logging.format
    DIRECTORY_MAX_LIMIT                -> directory.max_limit
    DIRECTORY_SESSION_LIFETIME_MINUTES -> auth.session_lifetime_minutes
    DIRECTORY_CHALLENGE_TTL_SECONDS    -> auth.challenge_ttl_seconds
    DIRECTORY_CHALLENGE_MAX_ATTEMPTS   -> auth.challenge_max_attempts
    DIRECTORY_TOKEN_TTL_MINUTES        -> auth.verification_token_ttl_minutes
    DIRECTORY_RESEND_COOLDOWN_SECONDS  -> auth.resend_cooldown_seconds
    DIRECTORY_REJECTION_COOLDOWN_SECONDS -> auth.rejection_cooldown_seconds
    DIRECTORY_SECOND_FACTOR_GATE       -> auth.second_factor_gate
    DIRECTORY_EMAIL_GATE               -> auth.email_gate
    DIRECTORY_SMTP_HOST                -> email.smtp_host
    DIRECTORY_SMTP_PORT                -> email.smtp_port
    DIRECTORY_SMTP_USERNAME            -> email.smtp_username
    DIRECTORY_SMTP_PASSWORD            -> email.smtp_password
    DIRECTORY_SMTP_SENDER              -> email.sender
    DIRECTORY_VERIFICATION_URL         -> email.verification_url
"""

import configparser
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

# =============================================================================
# PATH CONFIGURATION
# =============================================================================

# Project root directory (contains src/, config/, data/)
PROJECT_ROOT = Path(__file__).parent.parent.parent

# Config file paths
CONFIG_DIR = PROJECT_ROOT / "config"
CONFIG_FILE = CONFIG_DIR / "server.ini"
CONFIG_EXAMPLE = CONFIG_DIR / "server.example.ini"

GatePolicy = Literal["account", "always", "never"]
GATE_POLICIES = ("account", "always", "never")


# =============================================================================
# CONFIGURATION DATACLASSES
# =============================================================================


@dataclass
class ServerSettings:
    """Network server configuration."""

    host: str = "0.0.0.0"  # nosec B104 - intentional for server binding
    port: int = 8080


@dataclass
class SecuritySettings:
    """Security-related configuration."""

    production: bool = False
    docs_enabled: Literal["auto", "enabled", "disabled"] = "auto"
    cors_origins: list[str] = field(default_factory=lambda: ["http://localhost:5173"])
    cors_allow_credentials: bool = True
    cors_allow_methods: list[str] = field(default_factory=lambda: ["*"])
    cors_allow_headers: list[str] = field(default_factory=lambda: ["*"])


@dataclass
class DatabaseSettings:
    """Database configuration."""

    path: str = "data/directory.db"

    @property
    def absolute_path(self) -> Path:
        """Get absolute path to database file."""
        p = Path(self.path)
        if p.is_absolute():
            return p
        return PROJECT_ROOT / p


@dataclass
class LoggingSettings:
    """Logging configuration."""

    level: str = "INFO"
    format: Literal["simple", "detailed", "json"] = "detailed"


@dataclass
class DirectorySettings:
    """Directory query limits."""

    default_limit: int = 10
    max_limit: int = 100


@dataclass
class AuthSettings:
    """
    Authentication flow configuration.

    Gate policies decide whether a gate applies to a visitor:
        account: follow the account's own setting (2FA enabled / email verified)
        always:  every visitor must pass the gate
        never:   the gate is skipped for everyone

    Expired verification tokens are kept for
    ``verification_token_retention_hours`` so a late click still reports the
    expiry. After a flow is rejected for too many wrong codes, the account
    cannot open a new flow for ``rejection_cooldown_seconds`` (0 disables).
    """

    session_lifetime_minutes: int = 30
    challenge_ttl_seconds: int = 300
    challenge_max_attempts: int = 3
    verification_token_ttl_minutes: int = 60
    verification_token_retention_hours: int = 24
    resend_cooldown_seconds: int = 60
    rejection_cooldown_seconds: int = 300
    sweep_interval_seconds: int = 60
    second_factor_gate: GatePolicy = "account"
    email_gate: GatePolicy = "account"
    totp_issuer: str = "AccountDirectory"


@dataclass
class EmailSettings:
    """Outbound mail configuration for verification messages.

    An empty ``smtp_host`` selects the logging mailer (development mode).
    """

    smtp_host: str = ""
    smtp_port: int = 587
    smtp_username: str = ""
    smtp_password: str = ""
    sender: str = "no-reply@localhost"
    starttls: bool = True
    timeout_seconds: float = 10.0
    verification_url: str = "http://localhost:8080/verify-email"


@dataclass
class ServerConfig:
    """
    Complete server configuration.

    This is the main configuration object that aggregates all settings sections.
    Access via the module-level `config` singleton.
    """

    server: ServerSettings = field(default_factory=ServerSettings)
    security: SecuritySettings = field(default_factory=SecuritySettings)
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    directory: DirectorySettings = field(default_factory=DirectorySettings)
    auth: AuthSettings = field(default_factory=AuthSettings)
    email: EmailSettings = field(default_factory=EmailSettings)

    @property
    def is_production(self) -> bool:
        """Convenience property for production mode check."""
        return self.security.production

    @property
    def docs_should_be_enabled(self) -> bool:
        """Determine if API docs should be enabled based on settings."""
        if self.security.docs_enabled == "enabled":
            return True
        if self.security.docs_enabled == "disabled":
            return False
        # "auto" - follow production setting
        return not self.is_production


# =============================================================================
# CONFIGURATION LOADING
# =============================================================================


def _parse_bool(value: str) -> bool:
    """Parse a string value to boolean."""
    return value.lower() in ("true", "yes", "1", "on", "enabled")


def _parse_list(value: str) -> list[str]:
    """Parse a comma-separated string to list, stripping whitespace."""
    if not value or value.strip() == "":
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def _parse_gate(value: str, current: GatePolicy) -> GatePolicy:
    """Parse a gate policy, keeping ``current`` for unknown values."""
    val = value.strip().lower()
    if val in GATE_POLICIES:
        return val  # type: ignore[return-value]
    return current


def _load_from_ini(parser: configparser.ConfigParser, cfg: ServerConfig) -> None:
    """Load configuration from parsed INI file into ServerConfig."""
    # Server section
    if parser.has_section("server"):
        if parser.has_option("server", "host"):
            cfg.server.host = parser.get("server", "host")
        if parser.has_option("server", "port"):
            cfg.server.port = parser.getint("server", "port")

    # Security section
    if parser.has_section("security"):
        if parser.has_option("security", "production"):
            cfg.security.production = _parse_bool(parser.get("security", "production"))
        if parser.has_option("security", "cors_origins"):
            cfg.security.cors_origins = _parse_list(parser.get("security", "cors_origins"))
        if parser.has_option("security", "cors_allow_credentials"):
            cfg.security.cors_allow_credentials = _parse_bool(
                parser.get("security", "cors_allow_credentials")
            )
        if parser.has_option("security", "docs_enabled"):
            val = parser.get("security", "docs_enabled").lower()
            if val in ("auto", "enabled", "disabled"):
                cfg.security.docs_enabled = val  # type: ignore[assignment]

    # Database section
    if parser.has_section("database"):
        if parser.has_option("database", "path"):
            cfg.database.path = parser.get("database", "path")

    # Logging section
    if parser.has_section("logging"):
        if parser.has_option("logging", "level"):
            cfg.logging.level = parser.get("logging", "level").upper()
        if parser.has_option("logging", "format"):
            val = parser.get("logging", "format").lower()
            if val in ("simple", "detailed", "json"):
                cfg.logging.format = val  # type: ignore[assignment]

    # Directory section
    if parser.has_section("directory"):
        if parser.has_option("directory", "default_limit"):
            cfg.directory.default_limit = parser.getint("directory", "default_limit")
        if parser.has_option("directory", "max_limit"):
            cfg.directory.max_limit = parser.getint("directory", "max_limit")

    # Auth section
    if parser.has_section("auth"):
        for name in (
            "session_lifetime_minutes",
            "challenge_ttl_seconds",
            "challenge_max_attempts",
            "verification_token_ttl_minutes",
            "verification_token_retention_hours",
            "resend_cooldown_seconds",
            "rejection_cooldown_seconds",
            "sweep_interval_seconds",
        ):
            if parser.has_option("auth", name):
                setattr(cfg.auth, name, parser.getint("auth", name))
        if parser.has_option("auth", "second_factor_gate"):
            cfg.auth.second_factor_gate = _parse_gate(
                parser.get("auth", "second_factor_gate"), cfg.auth.second_factor_gate
            )
        if parser.has_option("auth", "email_gate"):
            cfg.auth.email_gate = _parse_gate(parser.get("auth", "email_gate"), cfg.auth.email_gate)
        if parser.has_option("auth", "totp_issuer"):
            cfg.auth.totp_issuer = parser.get("auth", "totp_issuer")

    # Email section
    if parser.has_section("email"):
        for name in ("smtp_host", "smtp_username", "smtp_password", "sender", "verification_url"):
            if parser.has_option("email", name):
                setattr(cfg.email, name, parser.get("email", name))
        if parser.has_option("email", "smtp_port"):
            cfg.email.smtp_port = parser.getint("email", "smtp_port")
        if parser.has_option("email", "starttls"):
            cfg.email.starttls = _parse_bool(parser.get("email", "starttls"))
        if parser.has_option("email", "timeout_seconds"):
            cfg.email.timeout_seconds = parser.getfloat("email", "timeout_seconds")


def _apply_env_overrides(cfg: ServerConfig) -> None:
    """Apply environment variable overrides to configuration."""
    # Server settings
    if env_host := os.getenv("DIRECTORY_HOST"):
        cfg.server.host = env_host
    if env_port := os.getenv("DIRECTORY_PORT"):
        cfg.server.port = int(env_port)

    # Security settings
    if env_production := os.getenv("DIRECTORY_PRODUCTION"):
        cfg.security.production = _parse_bool(env_production)
    if env_cors := os.getenv("DIRECTORY_CORS_ORIGINS"):
        cfg.security.cors_origins = _parse_list(env_cors)

    # Database settings
    if env_db := os.getenv("DIRECTORY_DB_PATH"):
        cfg.database.path = env_db

    # Logging settings
    if env_log := os.getenv("DIRECTORY_LOG_LEVEL"):
        cfg.logging.level = env_log.upper()
    if env_log_format := os.getenv("DIRECTORY_LOG_FORMAT"):
        if env_log_format.lower() in ("simple", "detailed", "json"):
            cfg.logging.format = env_log_format.lower()  # type: ignore[assignment]

    # Directory settings
    if env_max_limit := os.getenv("DIRECTORY_MAX_LIMIT"):
        cfg.directory.max_limit = int(env_max_limit)

    # Auth settings
    if env_lifetime := os.getenv("DIRECTORY_SESSION_LIFETIME_MINUTES"):
        cfg.auth.session_lifetime_minutes = int(env_lifetime)
    if env_challenge_ttl := os.getenv("DIRECTORY_CHALLENGE_TTL_SECONDS"):
        cfg.auth.challenge_ttl_seconds = int(env_challenge_ttl)
    if env_attempts := os.getenv("DIRECTORY_CHALLENGE_MAX_ATTEMPTS"):
        cfg.auth.challenge_max_attempts = int(env_attempts)
    if env_token_ttl := os.getenv("DIRECTORY_TOKEN_TTL_MINUTES"):
        cfg.auth.verification_token_ttl_minutes = int(env_token_ttl)
    if env_cooldown := os.getenv("DIRECTORY_RESEND_COOLDOWN_SECONDS"):
        cfg.auth.resend_cooldown_seconds = int(env_cooldown)
    if env_rejection := os.getenv("DIRECTORY_REJECTION_COOLDOWN_SECONDS"):
        cfg.auth.rejection_cooldown_seconds = int(env_rejection)
    if env_second_factor := os.getenv("DIRECTORY_SECOND_FACTOR_GATE"):
        cfg.auth.second_factor_gate = _parse_gate(env_second_factor, cfg.auth.second_factor_gate)
    if env_email_gate := os.getenv("DIRECTORY_EMAIL_GATE"):
        cfg.auth.email_gate = _parse_gate(env_email_gate, cfg.auth.email_gate)

    # Email settings
    if env_smtp_host := os.getenv("DIRECTORY_SMTP_HOST"):
        cfg.email.smtp_host = env_smtp_host
    if env_smtp_port := os.getenv("DIRECTORY_SMTP_PORT"):
        cfg.email.smtp_port = int(env_smtp_port)
    if env_smtp_user := os.getenv("DIRECTORY_SMTP_USERNAME"):
        cfg.email.smtp_username = env_smtp_user
    if env_smtp_password := os.getenv("DIRECTORY_SMTP_PASSWORD"):
        cfg.email.smtp_password = env_smtp_password
    if env_sender := os.getenv("DIRECTORY_SMTP_SENDER"):
        cfg.email.sender = env_sender
    if env_verification_url := os.getenv("DIRECTORY_VERIFICATION_URL"):
        cfg.email.verification_url = env_verification_url


def load_config() -> ServerConfig:
    """
    Load configuration from all sources with proper priority.

    Priority (highest wins):
        1. Environment variables
        2. config/server.ini
        3. config/server.example.ini (fallback for development)
        4. Built-in defaults

    Returns:
        ServerConfig: Fully populated configuration object.
    """
    cfg = ServerConfig()

    config_file = None
    if CONFIG_FILE.exists():
        config_file = CONFIG_FILE
    elif CONFIG_EXAMPLE.exists():
        config_file = CONFIG_EXAMPLE

    if config_file:
        parser = configparser.ConfigParser()
        parser.read(config_file)
        _load_from_ini(parser, cfg)

    _apply_env_overrides(cfg)

    return cfg


def reload_config() -> "ServerConfig":
    """
    Reload configuration from disk and environment.

    This updates the module-level `config` singleton. Use sparingly as it
    doesn't update already-running server middleware.

    Returns:
        ServerConfig: The newly loaded configuration.
    """
    global config
    config = load_config()
    return config


# =============================================================================
# MODULE-LEVEL SINGLETON
# =============================================================================

config = load_config()


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def get_config_status() -> dict:
    """
    Get configuration status for diagnostics.

    Returns a dictionary with configuration source information.
    """
    return {
        "config_file_exists": CONFIG_FILE.exists(),
        "config_file_path": str(CONFIG_FILE),
        "using_example": not CONFIG_FILE.exists() and CONFIG_EXAMPLE.exists(),
        "production_mode": config.is_production,
        "docs_enabled": config.docs_should_be_enabled,
        "second_factor_gate": config.auth.second_factor_gate,
        "email_gate": config.auth.email_gate,
    }


def print_config_summary() -> None:
    """Print a summary of current configuration to stdout."""
    status = get_config_status()
    print("\n" + "=" * 60)
    print("SERVER CONFIGURATION")
    print("=" * 60)
    print(f"Config file: {status['config_file_path']}")
    print(f"File exists: {status['config_file_exists']}")
    if status["using_example"]:
        print("WARNING: Using example config (copy to server.ini for production)")
    print("-" * 60)
    print(f"Server:      {config.server.host}:{config.server.port}")
    print(f"Production:  {config.is_production}")
    print(f"Docs enabled: {config.docs_should_be_enabled}")
    print(f"Database:    {config.database.absolute_path}")
    print(f"Log level:   {config.logging.level}")
    print(f"2FA gate:    {config.auth.second_factor_gate}")
    print(f"Email gate:  {config.auth.email_gate}")
    print("=" * 60 + "\n")


# =============================================================================
# TEST HELPERS
# =============================================================================


class use_test_database:
    """
    Context manager for using a temporary test database.

    Usage:
        from account_directory.config import use_test_database

        def test_something(tmp_path):
            with use_test_database(tmp_path / "test.db"):
                schema.init_database()

    Args:
        db_path: Path to the test database file
    """

    def __init__(self, db_path: Path | str):
        self.db_path = Path(db_path)
        self.original_path: str | None = None

    def __enter__(self) -> Path:
        """Set up test database path."""
        self.original_path = config.database.path
        config.database.path = str(self.db_path)
        return self.db_path

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Restore original database path."""
        if self.original_path is not None:
            config.database.path = self.original_path
        return None
