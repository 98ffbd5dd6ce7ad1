"""Builds the plain-text export download and the session snapshots returned by the API."""

import logging

from fastapi.responses import Response

from app.core.exceptions import PipelineError
from app.models.document_models import SectionSnapshot
from app.models.document_models import SessionSnapshot
from app.services.exporter import EXPORT_MEDIA_TYPE
from app.services.exporter import export_filename
from app.services.exporter import export_text
from app.services.pipeline import PipelineService

__all__ = [
    "_build_session_snapshot",
    "_generate_text_export",
]

logger = logging.getLogger(__name__)


def _generate_text_export(pipeline: PipelineService, request_id: str) -> Response:
    """Serialize the accepted content of every section and return it as an attachment."""
    try:
        text = export_text(pipeline.state)
    except Exception as e:
        logger.error("[%s] Failed to export document: %s", request_id, str(e), exc_info=True)
        raise PipelineError("An unexpected error occurred while exporting the document.") from e

    filename = export_filename(pipeline.state.request.title)
    logger.info("[%s] Exported %s (%d chars)", request_id, filename, len(text))
    return Response(
        content=text.encode("utf-8"),
        media_type=EXPORT_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def _build_session_snapshot(session_id: str, pipeline: PipelineService) -> SessionSnapshot:
    state = pipeline.state
    return SessionSnapshot(
        session_id=session_id,
        title=state.request.title,
        current_section_index=state.current_section_index,
        sections=[
            SectionSnapshot(
                index=index,
                name=section.name,
                status=pipeline.status(index),
                results=state.records[section.name].results,
                winner=state.records[section.name].winner,
            )
            for index, section in enumerate(state.sections)
        ],
    )
