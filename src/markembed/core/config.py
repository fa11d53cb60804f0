from pathlib import Path
from typing import Any, Dict, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Database (files, file_sections, usage_counters)
    MARKEMBED_DB_URL: Optional[str] = None

    # Embedding configuration
    EMBED_PROVIDER: str = "openai"  # openai|dummy
    EMBED_MODEL: str = "text-embedding-3-small"
    EMBED_DIMENSIONS: int = 1536
    EMBED_DUMMY_DIM: int = 384
    OPENAI_API_KEY: Optional[str] = None

    # Token budget: chunks stay under 80% of this estimated token count
    CONTEXT_TOKENS_CUTOFF: int = 5000
    # Chunks shorter than this (in characters) are not embedded
    MIN_CONTENT_LENGTH: int = 20

    # Provider retry policy (exponential backoff)
    EMBED_RETRY_ATTEMPTS: int = 10
    EMBED_RETRY_INITIAL_DELAY: float = 10.0  # seconds
    EMBED_RETRY_MULTIPLIER: float = 2.0
    EMBED_RETRY_MAX_DELAY: Optional[float] = None

    # Observability
    LOG_FORMAT: str = "auto"  # json|plain|auto
    LOG_LEVEL: str = "info"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @classmethod
    def load_config(cls, config_file: Optional[str] = None) -> "Settings":
        """Load settings with config file -> env -> CLI precedence."""
        config_data: Dict[str, Any] = {}

        config_path: Optional[Path]
        if config_file:
            config_path = Path(config_file)
        else:
            # Auto-discover .markembed.{yaml,yml,toml}
            for ext in ["yaml", "yml", "toml"]:
                config_path = Path(f".markembed.{ext}")
                if config_path.exists():
                    break
            else:
                config_path = None

        if config_path and config_path.exists():
            if config_path.suffix in [".yaml", ".yml"]:
                import yaml  # type: ignore[import-untyped]

                with open(config_path) as f:
                    config_data = yaml.safe_load(f) or {}
            elif config_path.suffix == ".toml":
                import tomllib

                with open(config_path, "rb") as f:
                    config_data = tomllib.load(f)

        # Values from the config file take precedence over the environment
        return cls(**config_data)


# Default settings - replaced by load_config() during CLI startup
SETTINGS = Settings()
