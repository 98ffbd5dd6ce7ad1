"""Section pipeline: the ordered section definitions and their prompt construction.

Each section's human prompt embeds the accepted content of the section before
it, so prompts can only be built in pipeline order. ``build_prompt`` is pure;
``prior_content_for`` is the barrier that refuses to build section *i* while
section *i-1* has nothing resolved.
"""

import logging
import pathlib

import jinja2

from app.core.exceptions import ConfigurationError
from app.core.exceptions import UpstreamUnresolvedError
from app.models.document_models import DocumentRequest
from app.models.document_models import PipelineState
from app.models.document_models import SectionSpec
from app.services.winner_state import resolved_content

logger = logging.getLogger(__name__)

PROMPT_DIR = pathlib.Path(__file__).parent / "prompt_templates"
env = jinja2.Environment(loader=jinja2.FileSystemLoader(PROMPT_DIR), undefined=jinja2.StrictUndefined)

DEFAULT_SECTIONS: tuple[SectionSpec, ...] = (
    SectionSpec(name="Introduction", order=0, human_template="introduction.jinja2"),
    SectionSpec(name="Background and Context", order=1, human_template="background.jinja2"),
    SectionSpec(name="Key Methodologies", order=2, human_template="methodologies.jinja2"),
    SectionSpec(name="Results and Findings", order=3, human_template="results.jinja2"),
    SectionSpec(name="Discussion and Conclusion", order=4, human_template="conclusion.jinja2"),
)

LENGTH_GUIDANCE: dict[str, str] = {
    "short": "about 150 words",
    "medium": "about 300 to 400 words",
    "long": "about 700 to 900 words",
}


def default_sections() -> list[SectionSpec]:
    return sorted(DEFAULT_SECTIONS, key=lambda s: s.order)


def length_guidance(length: str) -> str:
    return LENGTH_GUIDANCE.get(length.lower(), length)


def build_prompt(
    section: SectionSpec,
    request: DocumentRequest,
    prior_content: str | None,
) -> tuple[str, str]:
    """Renders the (system_instruction, human_prompt) pair for *section*.

    *prior_content* is embedded verbatim; it is ``None`` only for the first
    section.
    """
    context = {
        "section_name": section.name,
        "title": request.title,
        "database_text": request.database_text,
        "style": request.style,
        "length": request.length,
        "length_guidance": length_guidance(request.length),
        "prior_content": prior_content or "",
    }
    try:
        system_instruction = env.get_template(section.system_template).render(**context)
        human_prompt = env.get_template(section.human_template).render(**context)
    except jinja2.TemplateNotFound as e:
        logger.error("Template not found for section '%s': %s", section.name, e.name)
        raise ConfigurationError(f"Prompt template '{e.name}' not found for section '{section.name}'.") from None
    except jinja2.TemplateError as e:
        logger.exception("Failed to render prompt for section '%s'", section.name)
        raise ConfigurationError(f"Could not render prompt for section '{section.name}': {e}") from e
    return system_instruction, human_prompt


def prior_content_for(state: PipelineState, index: int) -> str | None:
    """Content section *index* builds on, or ``None`` for the first section.

    Raises UpstreamUnresolvedError when the previous section has no accepted
    or single-path content.
    """
    if index == 0:
        return None
    previous = state.section_at(index - 1)
    content = resolved_content(state, previous.name)
    if not content.strip():
        raise UpstreamUnresolvedError(state.section_at(index).name, previous.name, reason="empty content")
    return content
