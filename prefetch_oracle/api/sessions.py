"""REST endpoints for the four core operations, scoped per session.

    POST   /api/sessions/{id}/interactions   record an interaction
    GET    /api/sessions/{id}/patterns       current PatternSnapshot
    GET    /api/sessions/{id}/navigation     navigation shape report
    POST   /api/sessions/{id}/predictions    ranked PredictionSet
    POST   /api/sessions/{id}/outcomes       report a realized component use
    GET    /api/sessions/{id}/metrics        accuracy and thresholds
    DELETE /api/sessions/{id}                reset the session's engine
    GET    /api/sessions                     session summaries

InputValidationError becomes HTTP 422.  Degenerate states are ordinary
200 responses with empty results.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, HTTPException

from prefetch_oracle.domain.errors import InputValidationError
from prefetch_oracle.domain.interaction import InteractionEvent
from prefetch_oracle.models.requests import OutcomeRequest, PredictRequest
from prefetch_oracle.store.session_store import SessionStore

logger = logging.getLogger(__name__)


def create_session_router(store: SessionStore) -> APIRouter:
    """Factory that wires the session endpoints to a concrete SessionStore."""

    router = APIRouter(prefix="/api", tags=["sessions"])

    @router.get("/sessions")
    async def list_sessions() -> dict[str, Any]:
        sessions = await store.summaries()
        return {"sessions": sessions, "count": len(sessions)}

    @router.post("/sessions/{session_id}/interactions")
    async def record_interaction(session_id: str, event: InteractionEvent) -> dict[str, Any]:
        try:
            record = await store.record(session_id, event)
        except InputValidationError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        return {"status": "accepted", "record": record.model_dump(mode="json")}

    @router.get("/sessions/{session_id}/patterns")
    async def current_patterns(session_id: str) -> dict[str, Any]:
        snapshot = await store.patterns(session_id)
        return snapshot.model_dump(mode="json")

    @router.get("/sessions/{session_id}/navigation")
    async def navigation_shape(session_id: str) -> dict[str, Any]:
        report = await store.navigation_shape(session_id)
        return report.model_dump(mode="json")

    @router.post("/sessions/{session_id}/predictions")
    async def predict(session_id: str, request: PredictRequest) -> dict[str, Any]:
        try:
            predictions = await store.predict(session_id, request.candidates, request.strategy)
        except InputValidationError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        return predictions.model_dump(mode="json")

    @router.post("/sessions/{session_id}/outcomes")
    async def report_outcome(session_id: str, request: OutcomeRequest) -> dict[str, Any]:
        try:
            report = await store.report_outcome(
                session_id, request.component_id, request.was_predicted
            )
        except InputValidationError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        return report.model_dump(mode="json")

    @router.get("/sessions/{session_id}/metrics")
    async def metrics(session_id: str) -> dict[str, Any]:
        if not await store.contains(session_id):
            raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
        report = await store.metrics(session_id)
        return report.model_dump(mode="json")

    @router.delete("/sessions/{session_id}")
    async def reset_session(session_id: str) -> dict[str, Any]:
        if not await store.reset(session_id):
            raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
        return {"status": "reset", "session_id": session_id}

    return router
