"""Configuration management with Pydantic models."""

import tomllib
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)


class FetcherConfig(BaseModel):
    """Configuration for page fetching."""

    timeout_ms: int = Field(default=30000, ge=1000, le=120000)
    user_agent: str = DEFAULT_USER_AGENT
    wait_until: Literal["load", "domcontentloaded", "networkidle", "commit"] = "load"
    wait_after_load_ms: int = Field(default=0, ge=0, le=10000)
    page_pool_size: int = Field(default=5, ge=1, le=20)
    headless: bool = True


class RateLimitConfig(BaseModel):
    """Configuration for concurrency and per-host rate limiting."""

    requests_per_second: float = Field(default=2.0, gt=0.0, le=100.0)
    pool_size: int = Field(default=100, ge=1, le=1000)
    schedule_timeout: float | None = Field(default=None, gt=0.0)


class RetryConfig(BaseModel):
    """Configuration for lightweight-fetch retries."""

    max_attempts: int = Field(default=3, ge=1, le=10)
    backoff_interval: float = Field(default=10.0, ge=0.0, le=300.0)
    backoff_max: float = Field(default=60.0, ge=0.0, le=600.0)
    jitter: bool = True
    retryable_statuses: list[int] = Field(default_factory=lambda: [403, 503])


class LanguageConfig(BaseModel):
    """Configuration for language tagging."""

    confidence_threshold: float = Field(default=0.95, ge=0.0, le=1.0)
    default: str = "en"


class ExtractorConfig(BaseModel):
    """Configuration for article extraction."""

    excerpt_length: int = Field(default=300, ge=0)
    include_tables: bool = True
    include_links: bool = False


class StoreConfig(BaseModel):
    """Configuration for the bookmark store."""

    path: Path = Path("./db")
    map_size: int = Field(default=1 << 30, ge=1 << 20)


class SourceConfig(BaseModel):
    """Where bookmarks and user agents come from."""

    bookmarks_file: Path = Path("bookmarks.json")
    urls_file: Path | None = None
    user_agents_file: Path | None = None


class AppConfig(BaseModel):
    """Main application configuration."""

    fetcher: FetcherConfig = Field(default_factory=FetcherConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    language: LanguageConfig = Field(default_factory=LanguageConfig)
    extractor: ExtractorConfig = Field(default_factory=ExtractorConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    source: SourceConfig = Field(default_factory=SourceConfig)
    log_dir: Path = Path("./log")
    verbose: bool = False

    @classmethod
    def from_toml(cls, path: Path) -> "AppConfig":
        """Load config from a TOML file."""
        with open(path, "rb") as f:
            data = tomllib.load(f)
        return cls.model_validate(data)

    def to_toml(self) -> str:
        """Render the non-default settings as a TOML document."""
        data = self.model_dump(mode="json", exclude_defaults=True, exclude_none=True)
        scalars = {k: v for k, v in data.items() if not isinstance(v, dict)}
        tables = {k: v for k, v in data.items() if isinstance(v, dict) and v}

        lines = [f"{key} = {_toml_literal(value)}" for key, value in scalars.items()]
        for name, table in tables.items():
            if lines:
                lines.append("")
            lines.append(f"[{name}]")
            lines.extend(f"{key} = {_toml_literal(value)}" for key, value in table.items())
        return "\n".join(lines) + "\n"


def _toml_literal(value: object) -> str:
    """Format a JSON-mode value as a TOML literal."""
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, list):
        return "[" + ", ".join(_toml_literal(item) for item in value) + "]"
    text = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{text}"'
