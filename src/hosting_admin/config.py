"""Hosting Admin — configuration loaded from environment."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application-wide settings, loaded from .env or environment variables."""

    # ── Database ──────────────────────────────────────────
    database_url: str = "sqlite+aiosqlite:///./hosting_admin.db"

    # ── Admin access ──────────────────────────────────────
    admin_emails: str = ""
    cookie_secure: bool = True

    # ── SMTP ──────────────────────────────────────────────
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_username: str = ""
    smtp_password: str = ""
    smtp_start_tls: bool = True
    email_from: str = "admin@localhost"

    # ── Stripe ────────────────────────────────────────────
    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""

    # ── App ───────────────────────────────────────────────
    app_name: str = "Hosting Admin"
    app_base_url: str = "http://localhost:3000"
    debug: bool = False

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @property
    def admin_email_list(self) -> frozenset[str]:
        """Allow-listed admin emails, normalised to lower case."""
        return frozenset(
            e.strip().lower() for e in self.admin_emails.split(",") if e.strip()
        )


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide default settings (read once)."""
    return Settings()
