import os


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Settings:
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./fileshare.db")
    SQL_ECHO: bool = _env_bool("SQL_ECHO")

    SECRET_KEY: str = os.getenv("SECRET_KEY", "your-secret-key")
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "30"))

    STORAGE_BACKEND: str = os.getenv("STORAGE_BACKEND", "local")
    LOCAL_STORAGE_PATH: str = os.getenv("LOCAL_STORAGE_PATH", "./uploads")
    MINIO_ENDPOINT: str = os.getenv("MINIO_ENDPOINT", "minio:9000")
    MINIO_ACCESS_KEY: str = os.getenv("MINIO_ACCESS_KEY", "minioadmin")
    MINIO_SECRET_KEY: str = os.getenv("MINIO_SECRET_KEY", "minioadmin")
    MINIO_SECURE: bool = _env_bool("MINIO_SECURE")
    MINIO_PUBLIC_BUCKET: str = os.getenv("MINIO_PUBLIC_BUCKET", "fileshare-public")
    MINIO_PRIVATE_BUCKET: str = os.getenv("MINIO_PRIVATE_BUCKET", "fileshare-private")

    PUBLIC_BASE_URL: str = os.getenv("PUBLIC_BASE_URL", "")
    CORS_ORIGINS: list = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

    CLEANUP_SECRET: str = os.getenv("CLEANUP_SECRET", "")
    CLEANUP_INTERVAL_SECONDS: int = int(os.getenv("CLEANUP_INTERVAL_SECONDS", "0"))
    CLEANUP_RATE_LIMIT: int = int(os.getenv("CLEANUP_RATE_LIMIT", "5"))
    CLEANUP_RATE_WINDOW_SECONDS: float = float(os.getenv("CLEANUP_RATE_WINDOW_SECONDS", "60"))

    ADMIN_TOKEN_ROTATE_SECONDS: int = int(os.getenv("ADMIN_TOKEN_ROTATE_SECONDS", "300"))

    STATS_QUEUE_SIZE: int = int(os.getenv("STATS_QUEUE_SIZE", "10000"))

    METRICS_ENABLED: bool = _env_bool("METRICS_ENABLED", "true")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")


settings = Settings()
