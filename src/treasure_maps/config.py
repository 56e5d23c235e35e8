"""Runtime configuration for Treasure Maps."""

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

MIN_SAMPLE_RESOLUTION = 1
MAX_SAMPLE_RESOLUTION = 16


class Settings(BaseSettings):
    """Environment-driven runtime settings."""

    model_config = SettingsConfigDict(env_prefix="TREASURE_MAPS_", env_file=".env", extra="ignore")

    app_name: str = "treasure-maps"
    log_level: str = "INFO"
    data_dir: str = Field(default="./data", description="Working folder; cached renders live in <data_dir>/cache.")
    poi_data_dir: str = Field(
        default="plugins/BetterStructures/structure_locations",
        description="Folder holding one structure location file per world.",
    )
    explorer_style_enabled: bool = True
    sample_resolution: int = Field(default=4, description="One biome probe per NxN pixel block.")
    water_biome_keywords: list[str] = Field(default_factory=list)
    water_biome_exact: list[str] = Field(default_factory=list)
    render_workers: int = Field(default=2, ge=1)
    raster_workers: int = Field(default=4, ge=1)
    skip_cleared_targets: bool = True
    debug_log_path: str | None = None
    startup_delay_seconds: float = Field(default=2.0, ge=0.0)

    @field_validator("sample_resolution", mode="before")
    @classmethod
    def _clamp_resolution(cls, value: object) -> int:
        return max(MIN_SAMPLE_RESOLUTION, min(MAX_SAMPLE_RESOLUTION, int(value)))

    @property
    def cache_dir(self) -> Path:
        return Path(self.data_dir) / "cache"


settings = Settings()
