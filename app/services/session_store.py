"""In-memory registry of live document sessions.

Sessions exist only for the lifetime of the process; a reset discards them.
"""

import logging
from uuid import uuid4

from app.core.exceptions import SessionNotFoundError
from app.models.document_models import DocumentRequest
from app.models.document_models import PipelineState
from app.models.document_models import SectionSpec
from app.models.document_models import VariantConfig
from app.services.pipeline import PipelineService
from app.services.sections import default_sections

logger = logging.getLogger(__name__)


class SessionStore:
    def __init__(self) -> None:
        self._sessions: dict[str, PipelineService] = {}

    def create(
        self,
        request: DocumentRequest,
        variant_configs: list[VariantConfig],
        sections: list[SectionSpec] | None = None,
        auto_select: bool | None = None,
    ) -> tuple[str, PipelineService]:
        session_id = str(uuid4())
        state = PipelineState(request=request, sections=sections or default_sections())
        pipeline = PipelineService(state, variant_configs, auto_select=auto_select)
        self._sessions[session_id] = pipeline
        logger.info("[%s] Session created for '%s'", session_id, request.title)
        return session_id, pipeline

    def get(self, session_id: str) -> PipelineService:
        try:
            return self._sessions[session_id]
        except KeyError:
            raise SessionNotFoundError(f"Session '{session_id}' not found.") from None

    def discard(self, session_id: str) -> None:
        if self._sessions.pop(session_id, None) is None:
            raise SessionNotFoundError(f"Session '{session_id}' not found.")
        logger.info("[%s] Session discarded", session_id)

    def __len__(self) -> int:
        return len(self._sessions)


session_store = SessionStore()
