from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

PLACEHOLDER_SESSION_SECRETS = frozenset({"", "change-me"})


def parse_bool(raw: object) -> bool:
    """Interpret env-style truthy strings ("1", "true", "yes", "on")."""
    if isinstance(raw, bool):
        return raw
    return str(raw or "").strip().lower() in ("1", "true", "yes", "on")


class Settings(BaseSettings):
    """contentgate configuration.

    Every field maps to an upper-case environment variable of the same name
    (DB_HOST, REDIS_URL, ...); a local .env file is read as well.
    """

    # development | production
    app_env: str = "development"

    # Exposes exception details in 500 responses
    debug: bool = False

    # PostgreSQL connection parts, used when DATABASE_URL is unset
    db_host: str = "localhost"
    db_port: int = 5432
    db_user: str = "contentgate"
    db_password: str = "contentgate"
    db_name: str = "contentgate"

    db_pool_size: int = 20
    db_max_overflow: int = 10
    db_pool_timeout: int = 30
    db_pool_recycle: int = 300
    db_pool_pre_ping: bool = True

    # A full URL wins over the db_* parts; tests use sqlite+aiosqlite here
    database_url_override: str = Field(default="", validation_alias="DATABASE_URL")

    @property
    def database_url(self) -> str:
        """SQLAlchemy async URL: DATABASE_URL if set, else assembled for asyncpg.

        SQLite is refused in production.
        """
        if self.database_url_override:
            if "sqlite" in self.database_url_override.lower() and self.is_production:
                raise ValueError("DATABASE_URL must use PostgreSQL in production")
            return self.database_url_override
        return (
            f"postgresql+asyncpg://{self.db_user}:{self.db_password}@"
            f"{self.db_host}:{self.db_port}/{self.db_name}"
        )

    # Redis settings - an empty URL selects the in-memory store
    redis_url: str = ""
    redis_socket_timeout: float = 5.0

    # View metering
    enforce_view_limits: bool | None = None  # None -> on in production only
    view_limit_free: int = 15
    view_limit_anonymous: int = 3

    # Sessions (signed cookie); production refuses the placeholder key
    session_secret_key: str = "change-me"
    session_max_age: int = 14 * 24 * 60 * 60

    # Cloudflare Turnstile captcha (empty secret disables verification)
    turnstile_site_key: str = ""
    turnstile_secret_key: str = ""
    turnstile_verify_url: str = (
        "https://challenges.cloudflare.com/turnstile/v0/siteverify"
    )

    # SMTP settings (empty host skips delivery and logs a masked notice)
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_username: str = ""
    smtp_password: str = ""
    smtp_from_email: str = "no-reply@localhost"
    smtp_use_tls: bool = True

    # HTTP client connection pool settings
    httpx_connect_timeout: float = 5.0
    httpx_read_timeout: float = 10.0
    httpx_write_timeout: float = 5.0
    httpx_pool_timeout: float = 5.0
    httpx_keepalive_expiry: float = 30.0
    httpx_max_connections: int = 50
    httpx_max_keepalive_connections: int = 10

    # Logging
    log_level: str = "INFO"
    log_format: str = "text"  # text | structured | json

    @property
    def is_production(self) -> bool:
        return self.app_env.strip().lower() == "production"

    @property
    def redis_configured(self) -> bool:
        return bool(self.redis_url.strip())

    @property
    def view_limits_enforced(self) -> bool:
        """Whether monthly view limits apply.

        Defaults to on in production and off elsewhere unless
        ENFORCE_VIEW_LIMITS says otherwise.
        """
        if self.enforce_view_limits is None:
            return self.is_production
        return self.enforce_view_limits

    @property
    def captcha_enabled(self) -> bool:
        return bool(self.turnstile_secret_key)

    @property
    def smtp_enabled(self) -> bool:
        return bool(self.smtp_host)

    @property
    def secure_cookies(self) -> bool:
        return self.is_production

    @field_validator("enforce_view_limits", mode="before")
    @classmethod
    def decode_enforce_view_limits(cls, v: object) -> bool | None:
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        return parse_bool(v)

    @field_validator("view_limit_free", "view_limit_anonymous")
    @classmethod
    def check_view_limit(cls, v: int) -> int:
        if v < 1:
            raise ValueError("view limits must be at least 1")
        return v

    @field_validator("redis_socket_timeout", "httpx_connect_timeout", "httpx_read_timeout")
    @classmethod
    def check_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeouts must be greater than zero")
        return v

    @field_validator("db_pool_size", "db_max_overflow")
    @classmethod
    def check_pool_size(cls, v: int) -> int:
        if v < 1:
            raise ValueError("pool size values must be at least 1")
        return v

    @model_validator(mode="after")
    def check_session_secret(self) -> "Settings":
        if self.is_production and self.session_secret_key.strip() in PLACEHOLDER_SESSION_SECRETS:
            raise ValueError("SESSION_SECRET_KEY must be set to a private value in production")
        return self

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()

