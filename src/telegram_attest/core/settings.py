"""Application settings and configuration.

This module defines all configuration options for the Telegram attestation
service. Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Telegram Attestation", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Database configuration
    database_url: str = Field(default="sqlite:///./attestation.db", alias="DATABASE_URL")
    test_database_url: str | None = Field(default=None, alias="TEST_DATABASE_URL")
    use_testing_database: bool = Field(default=False, alias="USE_TEST_DATABASE")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Session bridge (ephemeral pairing token -> wallet address)
    redis_url: str | None = Field(default=None, alias="REDIS_URL")
    session_ttl_seconds: int = Field(default=3600, alias="SESSION_TTL_SECONDS")

    # Telegram bot
    telegram_bot_token: str | None = Field(default=None, alias="TELEGRAM_BOT_TOKEN")
    telegram_bot_username: str = Field(default="attestation_bot", alias="TELEGRAM_BOT_USERNAME")
    telegram_api_base_url: str = Field(
        default="https://api.telegram.org",
        alias="TELEGRAM_API_BASE_URL",
    )
    telegram_base_url: str = Field(default="https://t.me/", alias="TELEGRAM_BASE_URL")
    telegram_webhook_secret: str | None = Field(default=None, alias="TELEGRAM_WEBHOOK_SECRET")

    # Public address of this service, used to build verify links
    public_base_url: str = Field(default="http://localhost:5005", alias="PUBLIC_BASE_URL")
    webserver_host: str = Field(default="0.0.0.0", alias="WEBSERVER_HOST")
    webserver_port: int = Field(default=5005, alias="WEBSERVER_PORT")

    # Attestation publisher
    publisher_base_url: str = Field(default="http://localhost:6611", alias="PUBLISHER_BASE_URL")
    publisher_shared_secret: str | None = Field(default=None, alias="PUBLISHER_SHARED_SECRET")
    publisher_audience: str = Field(default="attestation-publisher", alias="PUBLISHER_JWT_AUD")
    publisher_token_ttl_seconds: int = Field(default=300, alias="PUBLISHER_TOKEN_TTL_SECONDS")
    publisher_timeout_seconds: float = Field(default=30.0, alias="PUBLISHER_TIMEOUT_SECONDS")

    # Wallet device channel
    device_relay_url: str = Field(default="http://localhost:6612", alias="DEVICE_RELAY_URL")
    device_relay_timeout_seconds: float = Field(
        default=10.0,
        alias="DEVICE_RELAY_TIMEOUT_SECONDS",
    )
    device_pubkey: str = Field(default="", alias="DEVICE_PUBKEY")
    hub: str = Field(default="obyte.org/bb", alias="HUB")
    permanent_pairing_secret: str = Field(default="*", alias="PERMANENT_PAIRING_SECRET")
    testnet: bool = Field(default=False, alias="TESTNET")

    # CORS configuration
    cors_origins: list[str] = Field(default=["*"], alias="CORS_ORIGINS")

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @property
    def database_url_sync(self) -> str:
        """Return a sync-compatible database URL for tooling such as Alembic."""
        url = self.effective_database_url
        if url.startswith("postgresql+asyncpg"):
            return url.replace("postgresql+asyncpg", "postgresql+psycopg", 1)
        return url

    @property
    def effective_database_url(self) -> str:
        """Return the database URL respecting testing overrides."""
        if self.use_testing_database and self.test_database_url:
            return self.test_database_url
        return self.database_url

    @property
    def pairing_protocol(self) -> str:
        return "obyte-tn" if self.testnet else "obyte"

    @property
    def explorer_base_url(self) -> str:
        """Return the block explorer root matching the configured network."""
        return f"https://{'testnet' if self.testnet else ''}explorer.obyte.org/"


settings = Settings()
