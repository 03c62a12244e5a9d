from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables when available."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    data_dir: Path = Field(default=Path("data"), validation_alias="PHYLOMAP_DATA_DIR")
    default_tree_path: Optional[Path] = Field(
        default=None,
        validation_alias="PHYLOMAP_TREE_PATH",
        description="Path to the Newick tree file to load on startup.",
    )
    default_samples_path: Optional[Path] = Field(
        default=None,
        validation_alias="PHYLOMAP_SAMPLES_PATH",
        description="Path to the CSV/TSV table with per-taxon sample coordinates.",
    )


@lru_cache()
def get_settings() -> Settings:
    settings = Settings()
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    return settings
