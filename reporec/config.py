"""Environment-driven settings for the recommender service."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field, ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .types import ConfigError


class Settings(BaseSettings):
    model_config = SettingsConfigDict(case_sensitive=False, extra="ignore")

    data_dir: Path = Path("data")
    factors_file: str = "item_factors.npy"
    items_file: str = "items.csv"

    confidence: float = Field(default=3.0, gt=0, allow_inf_nan=False)
    regularization: float = Field(default=0.001, gt=0, allow_inf_nan=False)

    default_n: int = Field(default=10, ge=0)
    max_n: int = Field(default=100, ge=1)

    max_concurrency: int = Field(default=16, ge=1)
    acquire_timeout_sec: float = Field(default=0.01, gt=0)

    service_name: str = "reporec-api"

    @model_validator(mode="after")
    def _default_within_cap(self) -> Settings:
        if self.default_n > self.max_n:
            raise ValueError(f"default_n ({self.default_n}) exceeds max_n ({self.max_n})")
        return self


def load_settings(**overrides) -> Settings:
    """Build ``Settings`` from the environment, reporting bad values as ``ConfigError``."""

    try:
        return Settings(**overrides)
    except ValidationError as exc:
        raise ConfigError(f"Invalid settings: {exc}") from exc


__all__ = ["Settings", "load_settings"]
