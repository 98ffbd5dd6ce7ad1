"""Plain-text export of the assembled document."""

import re

from app.core.config import settings
from app.models.document_models import PipelineState

DEFAULT_EXPORT_FILENAME = "document.txt"
EXPORT_MEDIA_TYPE = "text/plain; charset=utf-8"


def exported_section_content(state: PipelineState, section_name: str) -> str | None:
    """Winner content, else the sole successful variant (single-path output), else None."""
    record = state.records[section_name]
    if record.winner is not None:
        return record.winner.content
    successful = record.successful
    if len(successful) == 1:
        return successful[0].content
    return None


def export_text(state: PipelineState, placeholder: str | None = None) -> str:
    """Title, then ``"{name}:\\n\\n{content}\\n\\n"`` per section in pipeline order.

    Pure read: nothing is generated or selected here.
    """
    placeholder = settings.empty_section_placeholder if placeholder is None else placeholder
    parts = [f"{state.request.title}\n\n"]
    for section in state.sections:
        content = exported_section_content(state, section.name)
        parts.append(f"{section.name}:\n\n{content if content is not None else placeholder}\n\n")
    return "".join(parts)


def export_filename(title: str) -> str:
    slug = re.sub(r"[^A-Za-z0-9]+", "_", title).strip("_").lower()
    return f"{slug[:80]}.txt" if slug else DEFAULT_EXPORT_FILENAME
