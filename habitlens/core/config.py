"""Configuration via environment variables."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Engine thresholds and app settings loaded from .env file."""

    # Metrics
    trend_threshold_points: float = 5.0
    default_lookback_days: int = 90

    # Difficulty
    difficulty_history_window: int = 30

    # Recovery
    recovery_streak_grace_days: int = 5
    decline_window_days: int = 30
    decline_min_samples: int = 10
    overcommitment_min_habits: int = 5
    overcommitment_struggling_ratio: float = 0.6

    # Badges
    recovery_success_window_days: int = 7

    # App
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    log_level: str = "INFO"
    api_key: str = ""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "env_prefix": "HABITLENS_"}


settings = Settings()
