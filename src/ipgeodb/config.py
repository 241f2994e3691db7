import os
from dataclasses import dataclass, field
from typing import Tuple

from .constants import DEFAULT_SOURCE_URLS, FETCH_TIMEOUT


def _env_flag(name: str, default: str = "False") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


def _env_urls() -> Tuple[str, ...]:
    raw = os.getenv("IPGEODB_SOURCE_URLS", "")
    urls = tuple(url.strip() for url in raw.split(",") if url.strip())
    return urls or DEFAULT_SOURCE_URLS


@dataclass
class AppSettings:
    """Centralized configuration, read from the environment at construction time"""

    # Artifacts
    DATA_DIR: str = field(default_factory=lambda: os.getenv("IPGEODB_DATA_DIR", "data/ipgeodb"))
    ARTIFACT_FORMAT: str = field(
        default_factory=lambda: os.getenv("IPGEODB_ARTIFACT_FORMAT", "bin").lower()
    )
    WRITE_EMPTY_CHUNKS: bool = field(
        default_factory=lambda: _env_flag("IPGEODB_WRITE_EMPTY_CHUNKS")
    )
    # Reject chunk versions the decoder does not know instead of reading them anyway
    STRICT_CHUNK_VERSION: bool = field(
        default_factory=lambda: _env_flag("IPGEODB_STRICT_CHUNK_VERSION")
    )

    # Upstream dataset
    SOURCE_URLS: Tuple[str, ...] = field(default_factory=_env_urls)
    FETCH_TIMEOUT: int = field(
        default_factory=lambda: int(os.getenv("FETCH_TIMEOUT", str(FETCH_TIMEOUT)))
    )
    FETCH_MAX_RETRIES: int = field(default_factory=lambda: int(os.getenv("FETCH_MAX_RETRIES", "3")))
    FETCH_RETRY_DELAY: float = field(
        default_factory=lambda: float(os.getenv("FETCH_RETRY_DELAY", "1.0"))
    )

    # Logging
    LOG_LEVEL: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    LOG_FILE: str = field(default_factory=lambda: os.getenv("IPGEODB_LOG_FILE", ""))
