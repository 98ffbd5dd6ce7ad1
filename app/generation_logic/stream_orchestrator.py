import json
import logging
from collections.abc import AsyncGenerator
from typing import Any
from uuid import uuid4

from app.services.pipeline import PipelineService

__all__ = [
    "_create_stream_event",
    "_stream_document_generation",
]

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# NDJSON event helper
# ---------------------------------------------------------------------------


def _create_stream_event(
    event_type: str,
    message: str | None = None,
    payload: dict[str, Any] | None = None,
    **fields: Any,
) -> str:
    """Serialize a Server-Sent Event (SSE)-style dict to an NDJSON line."""
    event: dict[str, Any] = {"type": event_type}
    if message is not None:
        event["message"] = message
    if payload is not None:
        event["payload"] = payload
    event.update(fields)
    return json.dumps(event) + "\n"


# ---------------------------------------------------------------------------
# Main streaming generation orchestrator
# ---------------------------------------------------------------------------


async def _stream_document_generation(
    session_id: str,
    pipeline: PipelineService,
) -> AsyncGenerator[str, None]:
    """Drive ``pipeline.run`` and re-emit its events as NDJSON lines, prefixed by a session event."""
    request_id = str(uuid4())
    state = pipeline.state
    logger.info(
        "[%s] Streaming generation for session %s ('%s')",
        request_id,
        session_id,
        state.request.title,
    )
    yield _create_stream_event(
        "session",
        message="Document generation started.",
        session_id=session_id,
        sections=[s.name for s in state.sections],
        variants=len(pipeline.variant_configs),
    )

    async for pipeline_update_json_str in pipeline.run(request_id):
        try:
            update_data = json.loads(pipeline_update_json_str)
        except json.JSONDecodeError:
            logger.warning("[%s] Non-JSON message from pipeline: %s", request_id, pipeline_update_json_str)
            yield _create_stream_event("status", message="Processing sections (received non-JSON update)…")
            continue

        event_type = update_data.pop("type", "status")
        message = update_data.pop("message", None)
        if event_type == "error":
            logger.error("[%s] Error from pipeline stream: %s", request_id, message)
        yield _create_stream_event(event_type, message=message, session_id=session_id, **update_data)

    logger.info("[%s] Stream generation logic finished.", request_id)
