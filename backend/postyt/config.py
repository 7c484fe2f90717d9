from pydantic_settings import BaseSettings, SettingsConfigDict
from pathlib import Path


PROJECT_ROOT = Path(__file__).resolve().parents[2]
BACKEND_ROOT = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="POSTYT_",
        env_file=(PROJECT_ROOT / ".env", BACKEND_ROOT / ".env"),
        env_file_encoding="utf-8",
    )

    # Paths
    data_dir: Path = Path(__file__).parent.parent / "data"
    uploads_dir: Path = Path(__file__).parent.parent / "data" / "uploads"

    # CORS
    cors_origins: list[str] = ["http://localhost:5173", "http://127.0.0.1:5173"]

    # Where OAuth callbacks send the browser back to
    frontend_url: str = "http://localhost:5173"
    # Public URL of this server, used to build OAuth redirect URIs
    public_base_url: str = "http://localhost:3000"

    # Bearer token verification
    jwt_secret: str = "change-me"
    jwt_algorithm: str = "HS256"

    # Upload handling
    max_upload_size_bytes: int = 500 * 1024 * 1024
    upload_max_parallel: int = 3
    http_timeout_seconds: int = 60
    upload_timeout_seconds: int = 1800
    publish_poll_interval_seconds: int = 5
    publish_timeout_seconds: int = 15 * 60

    # YouTube (Google OAuth)
    youtube_client_id: str | None = None
    youtube_client_secret: str | None = None
    google_token_uri: str = "https://oauth2.googleapis.com/token"
    youtube_category_id: str = "22"

    # TikTok
    tiktok_client_key: str | None = None
    tiktok_client_secret: str | None = None

    # Meta (Facebook pages + Instagram Login)
    meta_graph_api_version: str = "v21.0"
    facebook_app_id: str | None = None
    facebook_app_secret: str | None = None
    instagram_app_id: str | None = None
    instagram_app_secret: str | None = None

    # Twitter / X
    twitter_client_id: str | None = None
    twitter_client_secret: str | None = None

    def redirect_uri(self, platform: str) -> str:
        return f"{self.public_base_url.rstrip('/')}/oauth/{platform}/callback"

    @property
    def credentials_state_path(self) -> Path:
        return self.data_dir / "accounts.json"

    @property
    def auth_success_url(self) -> str:
        return f"{self.frontend_url.rstrip('/')}/auth-success"

    @property
    def auth_error_url(self) -> str:
        return f"{self.frontend_url.rstrip('/')}/auth-error"


settings = Settings()

# Ensure directories exist
settings.data_dir.mkdir(parents=True, exist_ok=True)
settings.uploads_dir.mkdir(parents=True, exist_ok=True)
