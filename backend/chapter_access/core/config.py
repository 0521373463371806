# backend/chapter_access/core/config.py

from __future__ import annotations

from urllib.parse import urlsplit, urlunsplit, parse_qsl, urlencode

from pydantic_settings import BaseSettings, SettingsConfigDict


def _strip_asyncpg_unsupported_params(url: str) -> str:
    """
    Drop libpq-only query params (sslmode, channel_binding) from a hosted
    Postgres url; asyncpg.connect() rejects them as unknown kwargs.
    """
    parts = urlsplit(url)
    if not parts.query:
        return url

    params = parse_qsl(parts.query, keep_blank_values=True)
    filtered = [(k, v) for (k, v) in params if k not in {"sslmode", "channel_binding"}]
    new_query = urlencode(filtered, doseq=True)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, new_query, parts.fragment))


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # development | test | staging | production
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # members, zones, chapters and role assignments
    DATABASE_URL_ASYNC: str

    # Tokens come from the login service; the secret must match its signing key.
    JWT_SECRET: str = "dev-secret-change-me"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # -----------------------------
    # Access control
    # -----------------------------
    # Raw principal role tags that short-circuit to unrestricted access.
    # Comma-separated, compared case-insensitively.
    ADMIN_ROLES: str = "admin,super_admin"

    # Zone officers only see chapters they hold a chapter role in unless this is on.
    ZONE_ACCESS_INCLUDES_CHAPTERS: bool = False

    MEMBERSHIP_EXPIRY_ENFORCED: bool = True

    @property
    def DATABASE_URL_ASYNC_CLEAN(self) -> str:
        return _strip_asyncpg_unsupported_params(self.DATABASE_URL_ASYNC)

    @property
    def admin_role_tags(self) -> frozenset[str]:
        return frozenset(r.strip().lower() for r in self.ADMIN_ROLES.split(",") if r.strip())

    @property
    def is_deployed(self) -> bool:
        return (self.ENVIRONMENT or "").strip().lower() in {"staging", "production"}

    def model_post_init(self, __context) -> None:
        secret = (self.JWT_SECRET or "").strip()
        if self.is_deployed and (secret == "dev-secret-change-me" or len(secret) < 32):
            raise ValueError(
                "JWT_SECRET must be the login service signing key (32+ chars) outside development."
            )

        if self.JWT_ALGORITHM != "HS256":
            raise ValueError(f"Unsupported JWT_ALGORITHM={self.JWT_ALGORITHM!r}. Allowed: HS256")


# imported everywhere as `from chapter_access.core.config import settings`
settings = Settings()
