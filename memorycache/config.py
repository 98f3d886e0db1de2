"""
Configuration module for MemoryCacheAI.

Loads application settings from config.yaml and secrets from environment variables.
"""

import logging
import os
import contextvars
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

import yaml
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Context variable for request/task ID logging
request_context = contextvars.ContextVar("request_id", default=None)


class RequestLogFilter(logging.Filter):
    """Filter to inject the current request ID into log records."""
    def filter(self, record):
        request_id = request_context.get()
        if request_id is not None:
            record.request_info = f" [{request_id}]"
        else:
            record.request_info = ""
        return True


# Default config file path
CONFIG_FILE = Path(__file__).parent.parent / "config.yaml"


def _load_yaml_config() -> dict:
    """Load configuration from YAML file."""
    if CONFIG_FILE.exists():
        with open(CONFIG_FILE) as f:
            return yaml.safe_load(f) or {}
    return {}


# Load YAML config once at module import
_yaml_config = _load_yaml_config()


def _get_yaml(section: str, key: str, default=None):
    """Get a value from the YAML config."""
    return _yaml_config.get(section, {}).get(key, default)


def _get_yaml_section(section: str, default=None):
    """Get an entire section from the YAML config."""
    return _yaml_config.get(section, default or {})


@dataclass
class SessionStoreConfig:
    """Upstash Redis (REST) settings for short-term session state."""
    # Secrets from .env
    url: str = field(default_factory=lambda: os.getenv("UPSTASH_REDIS_URL", ""))
    token: str = field(default_factory=lambda: os.getenv("UPSTASH_REDIS_TOKEN", ""))

    # Settings from YAML
    ttl_seconds: int = field(
        default_factory=lambda: _get_yaml("session_store", "ttl_seconds", 86400)
    )
    timeout: float = field(
        default_factory=lambda: _get_yaml("session_store", "timeout", 10.0)
    )


@dataclass
class VectorStoreConfig:
    """Upstash Vector settings for long-term memories."""
    # Secrets from .env
    url: str = field(default_factory=lambda: os.getenv("UPSTASH_VECTOR_URL", ""))
    token: str = field(default_factory=lambda: os.getenv("UPSTASH_VECTOR_TOKEN", ""))

    # Settings from YAML
    memory_ttl_seconds: int = field(
        default_factory=lambda: _get_yaml("vector_store", "memory_ttl_seconds", 30 * 24 * 60 * 60)
    )
    # Page size for the expiration sweep over the whole index
    scan_page_size: int = field(
        default_factory=lambda: _get_yaml("vector_store", "scan_page_size", 1000)
    )
    # topK used by each round of the per-user delete loop
    owner_cleanup_batch: int = field(
        default_factory=lambda: _get_yaml("vector_store", "owner_cleanup_batch", 1000)
    )
    timeout: float = field(
        default_factory=lambda: _get_yaml("vector_store", "timeout", 30.0)
    )


@dataclass
class TaskConfig:
    """QStash settings for scheduled and delayed cleanup."""
    # Secret from .env
    token: str = field(default_factory=lambda: os.getenv("QSTASH_TOKEN", ""))
    url: str = field(
        default_factory=lambda: os.getenv("QSTASH_URL", "") or _get_yaml("tasks", "url", "https://qstash.upstash.io")
    )

    # Settings from YAML
    callback_url: str = field(
        default_factory=lambda: os.getenv("CLEANUP_CALLBACK_URL", "") or _get_yaml("tasks", "callback_url", "")
    )
    retries: int = field(default_factory=lambda: _get_yaml("tasks", "retries", 3))
    cleanup_cron: str = field(
        default_factory=lambda: _get_yaml("tasks", "cleanup_cron", "0 2 * * *")
    )
    default_delay_seconds: int = field(
        default_factory=lambda: _get_yaml("tasks", "default_delay_seconds", 3600)
    )
    timeout: float = field(default_factory=lambda: _get_yaml("tasks", "timeout", 30.0))


@dataclass
class EmbeddingConfig:
    """Embedding provider configuration."""
    provider: Literal["jina", "openai"] = field(
        default_factory=lambda: os.getenv("EMBEDDING_PROVIDER", "") or _get_yaml("embedding", "provider", "jina")
    )

    # Secrets from .env
    jina_api_key: str = field(default_factory=lambda: os.getenv("JINA_API_KEY", ""))
    openai_api_key: str = field(default_factory=lambda: os.getenv("OPENAI_API_KEY", ""))

    # Settings from YAML
    jina_model: str = field(
        default_factory=lambda: _get_yaml("embedding", "jina_model", "jina-embeddings-v3")
    )
    # "text-embedding-3-small" (1536d), "text-embedding-3-large" (3072d) or "text-embedding-ada-002" (1536d)
    openai_model: str = field(
        default_factory=lambda: os.getenv("OPENAI_EMBEDDING_MODEL", "")
        or _get_yaml("embedding", "openai_model", "text-embedding-3-small")
    )
    # Override OpenAI output dimensions; None = model default
    dimensions: int | None = field(
        default_factory=lambda: _get_yaml("embedding", "dimensions", None)
    )
    timeout: float = field(default_factory=lambda: _get_yaml("embedding", "timeout", 30.0))


@dataclass
class AppConfig:
    """Application settings from YAML."""
    # "upstash" talks to the hosted services, "memory" keeps everything in-process
    backend: Literal["upstash", "memory"] = field(
        default_factory=lambda: _get_yaml("app", "backend", "upstash")
    )

    # Logging
    log_level: str = field(
        default_factory=lambda: _get_yaml("logging", "level", "INFO")
    )


@dataclass
class Config:
    """Main configuration container."""
    session_store: SessionStoreConfig = field(default_factory=SessionStoreConfig)
    vector_store: VectorStoreConfig = field(default_factory=VectorStoreConfig)
    tasks: TaskConfig = field(default_factory=TaskConfig)
    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    app: AppConfig = field(default_factory=AppConfig)

    def setup_logging(self) -> logging.Logger:
        """Configure and return the application logger."""
        # Reset existing handlers to ensure clean configuration
        root = logging.getLogger()
        if root.handlers:
            for handler in root.handlers:
                root.removeHandler(handler)

        logging.basicConfig(
            level=getattr(logging, self.app.log_level.upper()),
            format="%(asctime)s - %(name)s - %(levelname)s%(request_info)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

        # Add filter to the handler created by basicConfig
        for handler in logging.getLogger().handlers:
            handler.addFilter(RequestLogFilter())

        return logging.getLogger("memorycache")

    def validate(self) -> list[str]:
        """
        Validate configuration and return list of missing/invalid settings.

        Returns:
            List of validation error messages, empty if all valid.
        """
        errors = []

        if self.app.backend not in ("upstash", "memory"):
            errors.append(f"Invalid backend '{self.app.backend}'. Must be 'upstash' or 'memory'")

        if self.app.backend == "upstash":
            if not self.session_store.url or not self.session_store.token:
                errors.append("UPSTASH_REDIS_URL and UPSTASH_REDIS_TOKEN are required")
            if not self.vector_store.url or not self.vector_store.token:
                errors.append("UPSTASH_VECTOR_URL and UPSTASH_VECTOR_TOKEN are required")

        # Check embedding provider configuration
        if self.embedding.provider == "jina":
            if not self.embedding.jina_api_key:
                errors.append("JINA_API_KEY is required when using Jina provider")
        elif self.embedding.provider == "openai":
            if not self.embedding.openai_api_key:
                errors.append("OPENAI_API_KEY is required when using OpenAI provider")
        else:
            errors.append(
                f"Invalid embedding provider '{self.embedding.provider}'. Must be 'jina' or 'openai'"
            )

        return errors


# Global configuration instance
config = Config()
