"""Application settings and configuration.

This module defines all configuration options for the open letter service.
Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Open Letter", alias="APP_NAME")
    app_version: str = Field(default="1.0.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Security and authentication
    secret_key: str = Field(alias="SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    admin_password: str | None = Field(default=None, alias="ADMIN_PASSWORD")
    admin_session_ttl_minutes: int = Field(default=60 * 8, alias="ADMIN_SESSION_TTL_MINUTES")
    admin_cookie_secure: bool = Field(default=True, alias="ADMIN_COOKIE_SECURE")

    # Database configuration
    database_url: str = Field(default="sqlite:///./open_letter.db", alias="DATABASE_URL")
    test_database_url: str | None = Field(default=None, alias="TEST_DATABASE_URL")
    use_testing_database: bool = Field(default=False, alias="USE_TEST_DATABASE")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")
    auto_create_tables: bool = Field(default=True, alias="AUTO_CREATE_TABLES")

    # NationStates API
    ns_verify_token_secret: str | None = Field(default=None, alias="NS_VERIFY_TOKEN_SECRET")
    ns_api_base_url: str = Field(
        default="https://www.nationstates.net/cgi-bin/api.cgi",
        alias="NS_API_BASE_URL",
    )
    ns_user_agent: str = Field(default="OpenLetterNSVerify/1.0", alias="NS_USER_AGENT")
    ns_http_timeout_seconds: float = Field(default=15.0, alias="NS_HTTP_TIMEOUT_SECONDS")
    # 50 requests per 30 seconds upstream; one every 0.6s plus a margin.
    ns_min_request_interval_seconds: float = Field(
        default=0.7,
        alias="NS_MIN_REQUEST_INTERVAL_SECONDS",
    )
    ns_backoff_multiplier: float = Field(default=5.0, alias="NS_BACKOFF_MULTIPLIER")
    ns_flag_url_template: str = Field(
        default="https://www.nationstates.net/images/flags/{code}.jpg",
        alias="NS_FLAG_URL_TEMPLATE",
    )
    ns_verify_login_url: str = Field(
        default="https://www.nationstates.net/page=verify_login",
        alias="NS_VERIFY_LOGIN_URL",
    )

    # Nation display data cache
    nation_lookup_live_fallback: bool = Field(default=True, alias="NATION_LOOKUP_LIVE_FALLBACK")
    nation_cache_max_age_hours: float = Field(default=24.0, alias="NATION_CACHE_MAX_AGE_HOURS")

    # Daily dump ingestion
    dump_url: str = Field(
        default="https://www.nationstates.net/pages/nations.xml.gz",
        alias="DUMP_URL",
    )
    dump_download_dir: str | None = Field(default=None, alias="DUMP_DOWNLOAD_DIR")
    dump_batch_size: int = Field(default=500, alias="DUMP_BATCH_SIZE")
    dump_chunk_size: int = Field(default=64 * 1024, alias="DUMP_CHUNK_SIZE")
    dump_timeout_seconds: float = Field(default=3600.0, alias="DUMP_TIMEOUT_SECONDS")
    dump_refresh_enabled: bool = Field(default=False, alias="DUMP_REFRESH_ENABLED")
    dump_refresh_interval_hours: float = Field(default=24.0, alias="DUMP_REFRESH_INTERVAL_HOURS")
    # None waits one full interval before the first scheduled run.
    dump_refresh_initial_delay_seconds: float | None = Field(
        default=None, alias="DUMP_REFRESH_INITIAL_DELAY_SECONDS"
    )
    dump_trigger_secret: str | None = Field(default=None, alias="DUMP_TRIGGER_SECRET")

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(default=["*"], alias="CORS_ORIGINS")
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "DELETE", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(default=["*"], alias="CORS_ALLOW_HEADERS")

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @property
    def database_url_sync(self) -> str:
        """Return a sync-compatible database URL for tooling.

        Converts asyncpg URLs to psycopg for synchronous database operations
        like Alembic migrations.
        """
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


settings = Settings()  # type: ignore[call-arg]
