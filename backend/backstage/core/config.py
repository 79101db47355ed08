from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Database
    database_url: str

    # JWT (cookie-based auth)
    JWT_SECRET: str
    JWT_ISS: str = "backstage-api"
    JWT_AUD: str = "backstage-web"

    # Cookie
    COOKIE_DOMAIN: str | None = None
    COOKIE_SECURE: bool = True
    ACCESS_TOKEN_TTL_SECONDS: int = 60 * 60 * 24 * 7  # 7 days

    # Invitations
    INVITATION_TTL_DAYS: int = 7
    PUBLIC_APP_URL: str = "http://localhost:5173"

    # comma-separated
    CORS_ORIGINS: str = "http://localhost:5173"

    # Entity whose team grants platform-wide backstage access
    PLATFORM_ENTITY_SLUG: str = "platform"

    SUPER_ADMIN_EMAILS: str = ""

    LOG_LEVEL: str = "INFO"

    # Outbound mail (best-effort)
    MAILER_SERVICE_URL: str | None = None
    MAILER_SERVICE_SECRET: str | None = None

    def cors_origins(self) -> list[str]:
        return [x.strip() for x in (self.CORS_ORIGINS or "").split(",") if x.strip()]

    def super_admin_emails(self) -> set[str]:
        raw = (self.SUPER_ADMIN_EMAILS or "").strip()
        if not raw:
            return set()
        return {x.strip().lower() for x in raw.split(",") if x.strip()}


settings = Settings()
