from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "postgresql+asyncpg://localhost:5432/gainplan"
    default_tz: str = "UTC"
    engine_api_key: str | None = None
    log_level: str = "INFO"

    # Calorie log: a day meets its target when within this fraction of target_calories
    target_met_tolerance: float = 0.05

    # Analysis windows (days)
    stagnation_window_days: int = 14  # Weight trend window; stagnation needs >= 14
    overtraining_window_days: int = 7
    consistency_window_days: int = 30  # Calorie consistency / target-met window
    analysis_cadence_days: int = 7  # Scheduled review runs at most weekly

    # Adaptation lifecycle
    adaptation_effective_delay_hours: int = 24  # New records take effect tomorrow
    log_read_timeout_s: float = 10.0  # Fan-out read budget for one analysis
    apply_max_attempts: int = 3
    apply_retry_backoff_s: float = 0.5  # Linear: attempt * backoff

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
