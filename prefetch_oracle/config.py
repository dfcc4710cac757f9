"""Application configuration loaded from environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_name: str = "prefetch-oracle"
    debug: bool = False
    log_level: str = "INFO"

    # Behavior tracking
    retention_minutes: float = 30.0
    recent_window: int = 10
    primary_component_count: int = 5
    affinity_decay: float = 0.7
    max_history: int = 2000
    max_graph_nodes: int = 256
    idle_decay_factor: float = 0.95

    # Transition model
    learning_rate: float = 0.03
    default_strategy: str = "probabilistic"

    # Adaptive thresholds
    threshold_high: float = 0.75
    threshold_medium: float = 0.40
    threshold_low: float = 0.20
    warmup_predictions: int = 50

    # Session hosting
    session_ttl_minutes: int = 60

    model_config = {"env_prefix": "PREFETCH_"}


settings = Settings()
