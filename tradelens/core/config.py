"""Application settings with Pydantic validation and environment loading."""

from __future__ import annotations

from functools import lru_cache
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Application
    app_name: str = "TradeLens Signal Engine"
    debug: bool = Field(
        default=False, description="Enable debug mode (adds source locations to logs)"
    )

    # History windows (calendar days requested from the provider)
    history_days: int = Field(
        default=400, ge=30, description="Minimum lookback requested for backtests"
    )
    recommendation_history_days: int = Field(
        default=365, ge=30, description="Lookback for the recommendation batch"
    )
    detail_history_days: int = Field(
        default=365, ge=30, description="Lookback for single-asset drill-down"
    )

    # Data provider
    history_cache_ttl: int = Field(
        default=300, ge=0, description="History cache TTL in seconds (0 disables)"
    )
    external_api_timeout: int = Field(
        default=30, ge=5, le=120, description="External API timeout in seconds"
    )
    max_concurrent_fetches: int = Field(
        default=4, ge=1, le=32, description="Concurrent history fetches per run"
    )

    # Default universes for the recommendation batch
    default_stock_tickers: List[str] = Field(
        default_factory=lambda: [
            "AAPL",
            "MSFT",
            "GOOGL",
            "AMZN",
            "TSLA",
            "META",
            "NVDA",
            "JPM",
            "V",
            "JNJ",
        ]
    )
    default_crypto_tickers: List[str] = Field(
        default_factory=lambda: ["BTC-USD", "ETH-USD", "SOL-USD", "BNB-USD", "ADA-USD"]
    )
    default_forex_tickers: List[str] = Field(
        default_factory=lambda: ["EURUSD=X", "GBPUSD=X", "USDJPY=X"]
    )

    # Logging
    log_level: str = Field(
        default="INFO", description="Log level: DEBUG, INFO, WARNING, ERROR"
    )
    log_format: str = Field(default="json", description="Log format: json or text")

    @field_validator(
        "default_stock_tickers",
        "default_crypto_tickers",
        "default_forex_tickers",
        mode="before",
    )
    @classmethod
    def parse_tickers(cls, v):
        if isinstance(v, str):
            return [s.strip().upper() for s in v.split(",") if s.strip()]
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid:
            raise ValueError(f"log_level must be one of {valid}")
        return upper

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        lower = v.lower()
        if lower not in {"json", "text"}:
            raise ValueError("log_format must be 'json' or 'text'")
        return lower

    def default_tickers(self, asset_class: str | None = None) -> list[str]:
        """Default universe for an asset class, or every class when None."""
        universes = {
            "stocks": self.default_stock_tickers,
            "crypto": self.default_crypto_tickers,
            "forex": self.default_forex_tickers,
        }
        if asset_class is None:
            return [t for tickers in universes.values() for t in tickers]
        return list(universes.get(str(asset_class), []))


@lru_cache
def get_settings() -> Settings:
    """Cached settings factory."""
    return Settings()


settings = get_settings()
