"""
Configuration management using Pydantic BaseSettings.
All values can be overridden via INKWELL_* environment variables or a .env file.
"""
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── Database (MySQL / TiDB by default) ─────────────────────────────────
    # A full SQLAlchemy URL wins over the host/port fields below.
    database_url: Optional[str] = None
    db_host: str = "db"
    db_port: int = 3306
    db_user: str = "root"
    db_password: str = ""
    db_name: str = "inkwell"
    db_pool_size: int = 10
    db_max_overflow: int = 10
    db_echo: bool = False

    @property
    def sqlalchemy_url(self) -> str:
        if self.database_url:
            return self.database_url
        return (
            f"mysql+aiomysql://{self.db_user}:{self.db_password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )

    # ── Sessions ───────────────────────────────────────────────────────────
    session_backend: str = "memory"        # 'memory' | 'redis'
    session_ttl_seconds: int = 86400       # 24h sliding expiry
    session_cookie_name: str = "inkwell_session"
    session_cookie_secure: bool = False
    redis_host: str = "redis"
    redis_port: int = 6379
    redis_db: int = 0

    # ── Uploads ────────────────────────────────────────────────────────────
    upload_backend: str = "local"          # 'local' | 's3'
    upload_dir: str = "uploads"
    upload_url_prefix: str = "/uploads"
    upload_max_bytes: int = 5 * 1024 * 1024
    upload_allowed_extensions: list[str] = [".jpg", ".jpeg", ".png", ".gif", ".webp"]

    # ── MinIO (S3-compatible), used when upload_backend == 's3' ────────────
    minio_endpoint: str = "minio:9000"
    minio_access_key: str = "minioadmin"
    minio_secret_key: str = "minioadmin"
    minio_bucket: str = "inkwell-media"
    minio_use_ssl: bool = False

    # ── HTTP ───────────────────────────────────────────────────────────────
    cors_origins: list[str] = ["http://localhost:3000"]

    # ── Observability ──────────────────────────────────────────────────────
    tracing_enabled: bool = False
    otel_exporter_otlp_endpoint: str = "http://jaeger:4317"
    service_name: str = "inkwell-api"
    environment: str = "development"
    log_level: str = "INFO"

    class Config:
        env_prefix = "INKWELL_"
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
