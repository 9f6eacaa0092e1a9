from pydantic_settings import BaseSettings


class Config(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str
    host: str
    port: int
    debug: bool
    content_path: str  # Directory path for live and archived document content
    cors_origins: list[str] = []
    forwarded_allow_ips: str = "127.0.0.1"  # Proxies trusted to set X-Forwarded-For
    store_timeout_ms: int = 5000  # Upper bound for every MongoDB and blob store call
    edit_max_retries: int = 5  # Compare-and-swap attempts before an edit surfaces a conflict
    edit_retry_backoff_ms: int = 20  # Linear backoff step between edit attempts
    edit_claim_lease_ms: int = 60_000  # Edit claims older than this are abandoned; keep well above store_timeout_ms
    max_content_bytes: int = 200 * 1024
    comment_rate_limit_per_hour: int = 10  # Per client address, 0 disables the check
    publish_rate_limit_per_hour: int = 30  # Per client address, 0 disables the check

    model_config = {
        "env_file": [".env"],
        "env_prefix": "MARGINALIA_",
        "extra": "ignore",
    }
