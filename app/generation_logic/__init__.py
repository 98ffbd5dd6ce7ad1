"""Generation logic package.

This package groups the helper functions that connect the HTTP layer to the
section pipeline (reading the uploaded database, streaming pipeline progress,
building the export download and session snapshots).
Keeping them here allows `app/api/routes.py` to stay minimal and focused on
HTTP routing while core business logic lives in `app.services`.
"""

from .file_processing import _build_document_request  # noqa: F401
from .file_processing import _read_database_file  # noqa: F401
from .report_finalization import _build_session_snapshot  # noqa: F401
from .report_finalization import _generate_text_export  # noqa: F401
from .stream_orchestrator import _stream_document_generation  # noqa: F401
