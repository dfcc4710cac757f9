"""WebSocket endpoint for streaming interaction ingestion.

Path: /ws/interactions/{session_id}

Accepts JSON matching the InteractionEvent schema, validates it at the
boundary, records it in the session's engine and returns a minimal
acknowledgement.  A malformed event gets an error reply and the stream
keeps going; it never reaches the tracker.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from prefetch_oracle.core.engine import PrefetchEngine
from prefetch_oracle.domain.errors import InputValidationError
from prefetch_oracle.store.session_store import SessionStore

logger = logging.getLogger(__name__)


def create_interaction_stream_router(store: SessionStore) -> APIRouter:
    """Factory that wires the interaction stream to a concrete SessionStore."""

    router = APIRouter()

    @router.websocket("/ws/interactions/{session_id}")
    async def stream_interactions(websocket: WebSocket, session_id: str) -> None:
        await websocket.accept()
        logger.info("Interaction stream connected for session %s", session_id)

        try:
            while True:
                raw = await websocket.receive_json()

                # ── Validate at the boundary ─────────────────────────────
                try:
                    if not isinstance(raw, dict):
                        raise InputValidationError("event", "expected a JSON object")
                    event = PrefetchEngine.validate_event(raw)
                    record = await store.record(session_id, event)
                except InputValidationError as exc:
                    logger.debug("Rejected interaction for %s: %s", session_id, exc)
                    await websocket.send_json({
                        "status": "error",
                        "field": exc.field,
                        "detail": exc.reason,
                    })
                    continue

                # ── Acknowledge ──────────────────────────────────────────
                await websocket.send_json({
                    "status": "accepted",
                    "component_id": record.component_id,
                    "interaction_score": round(record.interaction_score, 4),
                })

        except WebSocketDisconnect:
            logger.info("Interaction stream disconnected for session %s", session_id)

    return router
