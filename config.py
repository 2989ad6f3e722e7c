import os
from typing import List

from pydantic import BaseModel, Field


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):
    database_url: str = "mongodb://localhost:27017"
    database_name: str = "storefront-pos"
    upload_dir: str = "uploads"
    upload_url_prefix: str = "/uploads"
    cors_origins: List[str] = Field(default_factory=lambda: ["http://localhost:3000"])
    host: str = "0.0.0.0"
    port: int = 5000
    log_level: str = "INFO"
    # surface 404 on update/delete of a missing id instead of a no-op success
    strict_not_found: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        origins = os.getenv("CORS_ORIGINS", "http://localhost:3000")
        return cls(
            database_url=os.getenv("DATABASE_URL", "mongodb://localhost:27017"),
            database_name=os.getenv("DATABASE_NAME", "storefront-pos"),
            upload_dir=os.getenv("UPLOAD_DIR", "uploads"),
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", 5000)),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            strict_not_found=_env_bool("STRICT_NOT_FOUND"),
        )
