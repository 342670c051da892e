import os
from typing import Optional

DEFAULT_CHUNK_SIZE = 1024 * 1024  # 1MB chunks


class Settings:
    """Client settings"""
    def __init__(self):
        self.api_base_url: str = os.getenv("CORPUS_API_BASE_URL", "http://localhost:8000").rstrip("/")
        self.api_v1_prefix: str = os.getenv("CORPUS_API_V1_PREFIX", "/api/v1")

        # Upload settings
        self.chunk_size: int = int(os.getenv("CORPUS_CHUNK_SIZE", str(DEFAULT_CHUNK_SIZE)))
        self.request_timeout: float = float(os.getenv("CORPUS_REQUEST_TIMEOUT", "30"))

        # Credential issued by the auth service, passed explicitly to clients
        self.access_token: Optional[str] = os.getenv("CORPUS_ACCESS_TOKEN") or None

        # Logging settings
        self.log_level: str = os.getenv("LOG_LEVEL", "INFO")

    @property
    def api_url(self) -> str:
        return f"{self.api_base_url}{self.api_v1_prefix}"


# Global settings instance
settings = Settings()
