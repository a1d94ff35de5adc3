from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "autoship-portal-api"
    env: str = "dev"
    log_level: str = "INFO"

    # Hosted backend (auth, REST tables, storage)
    supabase_url: str = "http://localhost:54321"
    supabase_anon_key: str = ""
    supabase_service_role_key: str = ""
    # If set, access tokens are verified locally; otherwise the auth API resolves them.
    supabase_jwt_secret: str | None = None
    supabase_jwt_audience: str = "authenticated"
    documents_bucket: str = "documents"

    # Stripe
    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""
    stripe_currency: str = "usd"

    # Vehicle data (NHTSA vPIC)
    nhtsa_api_url: str = "https://vpic.nhtsa.dot.gov/api"
    vin_debounce_seconds: float = 0.5

    # Maps web services
    google_maps_api_key: str | None = None
    maps_api_url: str = "https://maps.googleapis.com/maps/api"
    maps_max_attempts: int = 10
    maps_retry_interval_seconds: float = 0.2

    # Admin console
    admin_stats_refresh_seconds: float = 30.0
    # When set, POST /api/admin/setup requires a matching X-Setup-Token header.
    admin_setup_token: str | None = None

    # Attachments
    attachment_max_files: int = 5
    attachment_max_size_mb: int = 10
    attachment_accepted_types: str = "image/*,.pdf,.doc,.docx,.txt"

    # None keeps the provider default.
    http_timeout_seconds: float | None = None

    cors_allow_origins: str = "http://localhost:3000,http://127.0.0.1:3000"

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    @field_validator("supabase_url", "nhtsa_api_url", "maps_api_url", mode="before")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        if isinstance(v, str):
            return v.rstrip("/")
        return v


settings = Settings()
