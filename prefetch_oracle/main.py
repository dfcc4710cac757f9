"""prefetch-oracle — predictive component prefetching service.

This is the application entry point.  It builds per-session engines from
settings, owns the SessionStore lifecycle, and wires the HTTP and
WebSocket endpoints together.
"""

from __future__ import annotations

import logging
from datetime import timedelta

from fastapi import FastAPI

from prefetch_oracle.api.sessions import create_session_router
from prefetch_oracle.api.ws_interactions import create_interaction_stream_router
from prefetch_oracle.config import Settings, settings
from prefetch_oracle.core.engine import PrefetchEngine
from prefetch_oracle.core.strategies import get_strategy
from prefetch_oracle.core.thresholds import ThresholdConfig
from prefetch_oracle.core.tracker import TrackerConfig
from prefetch_oracle.domain.prediction import ThresholdState
from prefetch_oracle.store.session_store import EngineFactory, SessionStore

# ── Logging ──────────────────────────────────────────────────────────────────

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)


# ── Engine factory ───────────────────────────────────────────────────────────

def engine_factory_from(config: Settings) -> EngineFactory:
    """Translate settings into frozen core configs and return an engine factory.

    Raises:
        InputValidationError: If the configured default strategy is unknown.
    """
    default_strategy = get_strategy(config.default_strategy).name
    tracker_config = TrackerConfig(
        retention=timedelta(minutes=config.retention_minutes),
        recent_window=config.recent_window,
        primary_component_count=config.primary_component_count,
        affinity_decay=config.affinity_decay,
        max_history=config.max_history,
        max_graph_nodes=config.max_graph_nodes,
        decay_factor=config.idle_decay_factor,
    )
    threshold_config = ThresholdConfig(
        initial=ThresholdState(
            high=config.threshold_high,
            medium=config.threshold_medium,
            low=config.threshold_low,
        ),
        warmup=config.warmup_predictions,
    )

    def factory() -> PrefetchEngine:
        return PrefetchEngine(
            tracker_config=tracker_config,
            learning_rate=config.learning_rate,
            threshold_config=threshold_config,
            default_strategy=default_strategy,
        )

    return factory


# ── App ──────────────────────────────────────────────────────────────────────

def create_app(config: Settings = settings) -> FastAPI:
    store = SessionStore(
        engine_factory=engine_factory_from(config),
        ttl=timedelta(minutes=config.session_ttl_minutes),
    )

    app = FastAPI(
        title=config.app_name,
        description="Behavior tracking, transition modelling and adaptive prefetch predictions",
        version="0.1.0",
        debug=config.debug,
    )
    app.state.store = store

    # ── Routes ───────────────────────────────────────────────────────────
    app.include_router(create_session_router(store))
    app.include_router(create_interaction_stream_router(store))

    # ── Health ───────────────────────────────────────────────────────────
    @app.get("/health")
    async def health() -> dict:
        expired = await store.expire_stale()
        return {
            "status": "ok",
            "active_sessions": await store.active_count(),
            "expired_sessions": len(expired),
        }

    return app


app = create_app()
