import logging

from app.core.exceptions import OutOfRangeError
from app.models.document_models import PipelineState
from app.models.document_models import SectionSpec

logger = logging.getLogger(__name__)


class NavigationController:
    """Moves the current-section cursor of a PipelineState. Never touches section records."""

    def __init__(self, state: PipelineState):
        self.state = state

    @property
    def current_index(self) -> int:
        return self.state.current_section_index

    @property
    def current_section(self) -> SectionSpec:
        return self.state.section_at(self.state.current_section_index)

    def go_to(self, index: int) -> int:
        size = len(self.state.sections)
        if not 0 <= index < size:
            raise OutOfRangeError(index, size)
        self.state.current_section_index = index
        logger.debug("Navigated to section %d (%s)", index, self.current_section.name)
        return index

    def next(self) -> int:
        """Moves forward one section, staying on the last one."""
        return self.go_to(min(self.current_index + 1, len(self.state.sections) - 1))

    def previous(self) -> int:
        """Moves back one section, staying on the first one."""
        return self.go_to(max(self.current_index - 1, 0))
