import logging
from collections.abc import Callable
from functools import wraps
from typing import Any
from uuid import uuid4

from fastapi import APIRouter
from fastapi import Depends
from fastapi import File
from fastapi import Form
from fastapi import HTTPException
from fastapi import UploadFile
from fastapi import status
from fastapi.responses import Response
from fastapi.responses import StreamingResponse

from app.core.config import settings
from app.core.exceptions import ConfigurationError
from app.core.exceptions import GenerationInProgressError
from app.core.exceptions import MissingInputError
from app.core.exceptions import OutOfRangeError
from app.core.exceptions import PipelineError
from app.core.exceptions import SelectionError
from app.core.exceptions import SessionNotFoundError
from app.core.exceptions import UpstreamUnresolvedError
from app.core.security import verify_api_key
from app.generation_logic.file_processing import _build_document_request
from app.generation_logic.report_finalization import _build_session_snapshot
from app.generation_logic.report_finalization import _generate_text_export
from app.generation_logic.stream_orchestrator import _stream_document_generation
from app.models.document_models import EditPayload
from app.models.document_models import NavigationPayload
from app.models.document_models import PipelineState
from app.models.document_models import SelectionPayload
from app.models.document_models import SessionSnapshot
from app.models.document_models import VariantResult
from app.models.document_models import Winner
from app.services import model_registry
from app.services.session_store import session_store
from app.services.winner_state import edit_winner
from app.services.winner_state import select_variant

# Configure module logger
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", dependencies=[Depends(verify_api_key)])

NDJSON_MEDIA_TYPE = "application/x-ndjson"

# Order matters: subclasses before PipelineError.
ERROR_STATUS: tuple[tuple[type[PipelineError], int], ...] = (
    (MissingInputError, status.HTTP_400_BAD_REQUEST),
    (SessionNotFoundError, status.HTTP_404_NOT_FOUND),
    (OutOfRangeError, 422),
    (SelectionError, status.HTTP_409_CONFLICT),
    (UpstreamUnresolvedError, status.HTTP_409_CONFLICT),
    (GenerationInProgressError, status.HTTP_409_CONFLICT),
    (PipelineError, status.HTTP_500_INTERNAL_SERVER_ERROR),
)


def status_for(exc: PipelineError) -> int:
    for exc_type, code in ERROR_STATUS:
        if isinstance(exc, exc_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


# --- Error Handling Decorator ---
def handle_pipeline_errors(func: Callable) -> Callable:
    """Translates pipeline exceptions raised by an endpoint into HTTP errors."""

    @wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return await func(*args, **kwargs)
        except PipelineError as e:
            status_code = status_for(e)
            logger.error(
                "%s in %s (status %d): %s",
                type(e).__name__,
                func.__name__,
                status_code,
                str(e),
                exc_info=status_code >= 500,
            )
            raise HTTPException(status_code=status_code, detail=str(e)) from e

    return wrapper


def _parse_temperatures(raw: str | None) -> list[float] | None:
    if not raw or not raw.strip():
        return None
    try:
        return [float(item) for item in raw.split(",") if item.strip()]
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Invalid temperatures '{raw}'.") from e


# ---------------------------------------------------------------------------
# Model registry
# ---------------------------------------------------------------------------


@router.get("/models")
async def list_models() -> dict[str, Any]:
    return {
        "models": model_registry.available_models(),
        "temperatures": settings.variant_temperatures,
        "default_variant_count": settings.default_variant_count,
        "max_variants": settings.max_variants,
        "auto_select_winner": settings.auto_select_winner,
    }


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


@router.post("/sessions")
@handle_pipeline_errors
async def create_session(
    title: str = Form(...),
    style: str = Form("formal"),
    length: str = Form("medium"),
    variants: int | None = Form(None),
    temperatures: str | None = Form(None),
    database: UploadFile | None = File(None),
) -> StreamingResponse:
    """Creates a document session from the form and streams generation progress as NDJSON.

    Potential Stream Events:
    - `session`: The new session id and the section names.
    - `status`: Progress messages.
    - `variant`: One settled variant (content or error).
    - `section`: A section settled; carries its status and winner index.
    - `selection_needed`: Several candidates exist and auto-select is off.
    - `section_failed`: Every variant of a section failed; later sections are blocked.
    - `error`: Processing failed.
    - `finished`: Every section has content.
    """
    request_id = str(uuid4())
    logger.info("[%s] /sessions called: title=%r variants=%s", request_id, title, variants)

    document_request = await _build_document_request(title, style, length, database, request_id)
    try:
        configs = model_registry.variant_configs(variants, _parse_temperatures(temperatures))
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    session_id, pipeline = session_store.create(document_request, configs)
    return StreamingResponse(
        _stream_document_generation(session_id, pipeline),
        media_type=NDJSON_MEDIA_TYPE,
        headers={"X-Session-Id": session_id},
    )


@router.get("/sessions/{session_id}", response_model=SessionSnapshot)
@handle_pipeline_errors
async def get_session(session_id: str) -> SessionSnapshot:
    return _build_session_snapshot(session_id, session_store.get(session_id))


@router.post("/sessions/{session_id}/continue")
@handle_pipeline_errors
async def continue_session(session_id: str) -> StreamingResponse:
    """Resumes generation from the first section without resolved content."""
    pipeline = session_store.get(session_id)
    return StreamingResponse(
        _stream_document_generation(session_id, pipeline),
        media_type=NDJSON_MEDIA_TYPE,
    )


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
@handle_pipeline_errors
async def discard_session(session_id: str) -> Response:
    session_store.discard(session_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


@router.post("/sessions/{session_id}/sections/{index}/generate", response_model=list[VariantResult])
@handle_pipeline_errors
async def regenerate_section(session_id: str, index: int) -> list[VariantResult]:
    """Runs a fresh fan-out for one section on its predecessor's current content."""
    request_id = str(uuid4())
    pipeline = session_store.get(session_id)
    logger.info("[%s] Regenerating section %d of session %s", request_id, index, session_id)
    return await pipeline.generate_section(request_id, index)


@router.post("/sessions/{session_id}/sections/{index}/select", response_model=Winner)
@handle_pipeline_errors
async def select_section_variant(session_id: str, index: int, payload: SelectionPayload) -> Winner:
    pipeline = session_store.get(session_id)
    section = _section_or_error(pipeline.state, index)
    return select_variant(pipeline.state, section, payload.variant_index)


@router.put("/sessions/{session_id}/sections/{index}/content", response_model=Winner)
@handle_pipeline_errors
async def edit_section_content(session_id: str, index: int, payload: EditPayload) -> Winner:
    pipeline = session_store.get(session_id)
    section = _section_or_error(pipeline.state, index)
    return edit_winner(pipeline.state, section, payload.content)


@router.post("/sessions/{session_id}/navigate", response_model=SessionSnapshot)
@handle_pipeline_errors
async def navigate(session_id: str, payload: NavigationPayload) -> SessionSnapshot:
    pipeline = session_store.get(session_id)
    if payload.index is not None:
        pipeline.navigation.go_to(payload.index)
    elif payload.direction == "next":
        pipeline.navigation.next()
    else:
        pipeline.navigation.previous()
    return _build_session_snapshot(session_id, pipeline)


@router.get("/sessions/{session_id}/export")
@handle_pipeline_errors
async def export_document(session_id: str) -> Response:
    request_id = str(uuid4())
    return _generate_text_export(session_store.get(session_id), request_id)


def _section_or_error(state: PipelineState, index: int) -> str:
    size = len(state.sections)
    if not 0 <= index < size:
        raise OutOfRangeError(index, size)
    return state.section_at(index).name
