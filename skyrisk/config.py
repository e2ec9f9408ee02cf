"""Engine defaults pulled from environment variables via pydantic."""
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from skyrisk.domain import SafetyWindowConfig
from utils.logging_utils import get_tagged_logger, setup_logging
logger = get_tagged_logger(__name__, tag="config")


class Settings(BaseSettings):
    """Environment-driven defaults for the flight-risk engine."""
    model_config = SettingsConfigDict(env_prefix="SKYRISK_", extra="ignore")

    cruise_speed_kmh: float = Field(default=69.0, gt=0)
    max_wind_speed: float = 15.0  # m/s, gust ceiling for a safe hour
    min_visibility_km: float = 3.0
    max_icing_risk: int = Field(default=2, ge=0, le=3)
    max_cape: float = 1500.0  # J/kg
    require_daylight: bool = True
    log_level: str = "INFO"
    job_name: str = "skyrisk"

    @field_validator("log_level", mode="after")
    @classmethod
    def upper_log_level(cls, v: str) -> str:
        """Normalize level names so "debug" and "DEBUG" behave the same."""
        return str(v).strip().upper()


settings = Settings()


def default_window_config(cfg: Settings | None = None) -> SafetyWindowConfig:
    """Build the immutable safety-window thresholds from settings."""
    cfg = cfg or settings
    return SafetyWindowConfig(
        max_wind_speed=cfg.max_wind_speed,
        min_visibility=cfg.min_visibility_km,
        max_icing_risk=cfg.max_icing_risk,
        max_cape=cfg.max_cape,
        require_daylight=cfg.require_daylight,
    )


def configure_logging(cfg: Settings | None = None, *, override_existing: bool = False) -> None:
    """Apply the shared logging setup using the configured level and job name."""
    cfg = cfg or settings
    setup_logging(level=cfg.log_level, job_name=cfg.job_name, override_existing=override_existing)
    logger.debug("Logging configured", extra={"level": cfg.log_level, "job": cfg.job_name})


if __name__ == "__main__":
    configure_logging()
    logger.info(f"Loaded settings: {settings.model_dump_json(indent=4)}")
