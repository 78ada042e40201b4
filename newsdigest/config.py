"""Configuration management using Pydantic Settings."""

from pathlib import Path
from typing import Literal, Self

import yaml
from pydantic import BaseModel, Field, HttpUrl, ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from newsdigest.llm import PROVIDER_DEFAULTS

# XDG config directory for user configuration
XDG_CONFIG_PATH = Path.home() / ".config" / "newsdigest"


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_file=[
            XDG_CONFIG_PATH / "config.env",  # User config (lower priority)
            ".env",  # Project .env (higher priority)
        ],
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # LLM
    llm_provider: Literal["gemini", "openai", "anthropic"] = Field(
        default="openai",
        description="LLM provider used for item summaries",
    )
    llm_api_key: str | None = Field(
        default=None,
        description="API key for configured LLM provider; summaries fall back to truncation without it",
    )
    llm_model: str | None = Field(default=None, description="Model name for configured LLM provider")
    llm_retries: int = Field(default=2, ge=0, description="Retries for transient LLM failures")

    # Email
    resend_api_key: str | None = Field(
        default=None,
        description="Resend API key; delivery is logged instead of sent without it",
    )
    email_from: str = Field(default="AI Daily Digest <digest@localhost>", min_length=1)
    app_base_url: str = Field(default="http://localhost:5173", description="Base URL for email links")

    # Timeouts (seconds)
    feed_timeout_seconds: float = Field(default=10.0, gt=0, description="Per-feed HTTP timeout")
    summary_timeout_seconds: float = Field(default=30.0, gt=0, description="Per-item summarizer timeout")
    delivery_timeout_seconds: float = Field(default=30.0, gt=0, description="Email delivery timeout")

    # Concurrency
    fetch_workers: int = Field(default=10, ge=1, description="Concurrent feed fetches per user")
    summary_workers: int = Field(default=4, ge=1, description="Concurrent summaries per digest")

    # Caching
    cache_ttl_days: int = Field(default=7, ge=0, description="Summary cache lifetime")

    # Paths
    config_dir: Path = Field(default=Path("config"), description="Config directory")
    data_dir: Path = Field(default=Path("data"), description="Data directory")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")

    @property
    def db_path(self) -> Path:
        return self.data_dir / "newsdigest.db"

    @model_validator(mode="after")
    def apply_llm_defaults(self) -> Self:
        """Fill provider-specific model defaults when omitted."""
        if self.llm_model is None:
            self.llm_model = PROVIDER_DEFAULTS[self.llm_provider]
        return self

    @model_validator(mode="after")
    def ensure_directories(self) -> Self:
        """Create necessary directories if they don't exist."""
        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        return self


class CatalogEntry(BaseModel):
    """Validated catalog source entry from sources.yaml."""

    url: HttpUrl = Field(..., description="RSS/Atom feed URL")
    category: str = Field(default="Uncategorized")

    model_config = {"extra": "allow"}


class SourceCatalog:
    """Curated catalog of feeds users can opt into."""

    def __init__(self, config_path: Path):
        self.config_path = config_path
        self._sources: dict[str, dict] = {}
        self._load()

    def _load(self) -> None:
        """Load catalog sources from YAML file."""
        if not self.config_path.exists():
            self._sources = {}
            return

        with open(self.config_path) as file_handle:
            data = yaml.safe_load(file_handle) or {}

        if not isinstance(data, dict):
            raise ValueError("Invalid sources.yaml: top-level structure must be a mapping")

        raw_sources = data.get("sources", {})
        if raw_sources is None:
            self._sources = {}
            return
        if not isinstance(raw_sources, dict):
            raise ValueError("Invalid sources.yaml: 'sources' must be a mapping")

        validated: dict[str, dict] = {}
        validation_errors: list[str] = []
        url_to_names: dict[str, list[str]] = {}

        for raw_name, raw_source in raw_sources.items():
            name = str(raw_name).strip()
            if not name:
                validation_errors.append("Source name cannot be empty")
                continue
            if not isinstance(raw_source, dict):
                validation_errors.append(f"{name}: source configuration must be a mapping")
                continue

            try:
                parsed = CatalogEntry.model_validate(raw_source)
            except ValidationError as exc:
                details = "; ".join(
                    f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
                    for err in exc.errors()
                )
                validation_errors.append(f"{name}: {details}")
                continue

            entry = parsed.model_dump(mode="python")
            entry["url"] = str(parsed.url)
            validated[name] = entry
            url_to_names.setdefault(entry["url"], []).append(name)

        validation_errors.extend(
            f"Duplicate source URL {url}: {', '.join(names)}"
            for url, names in url_to_names.items()
            if len(names) > 1
        )

        if validation_errors:
            rendered = "\n  - ".join(validation_errors)
            raise ValueError(f"Invalid sources.yaml entries:\n  - {rendered}")

        self._sources = validated

    @property
    def sources(self) -> dict[str, dict]:
        """Get all catalog sources keyed by display name."""
        return self._sources


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get application settings (singleton)."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
