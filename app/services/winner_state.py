"""Transitions of the per-section winner state machine.

    UNRESOLVED -> GENERATED -> SELECTED(i) -> EDITED(i, text)

A section is GENERATED once a fan-out settled with at least one success,
SELECTED once a variant is accepted, and EDITED once the accepted content was
changed by the user. Selecting a variant again always starts from that
variant's original content. VariantResults are never modified; only the
Winner record changes.
"""

import logging

from app.core.config import settings
from app.core.exceptions import SelectionError
from app.core.exceptions import UpstreamUnresolvedError
from app.models.document_models import PipelineState
from app.models.document_models import SectionRecord
from app.models.document_models import SectionStatus
from app.models.document_models import VariantResult
from app.models.document_models import Winner

logger = logging.getLogger(__name__)


def _record(state: PipelineState, section_name: str) -> SectionRecord:
    try:
        return state.records[section_name]
    except KeyError:
        raise SelectionError(f"Unknown section '{section_name}'.") from None


def _auto_select_enabled(auto_select: bool | None) -> bool:
    return settings.auto_select_winner if auto_select is None else auto_select


def section_status(state: PipelineState, section_name: str) -> SectionStatus:
    record = _record(state, section_name)
    if record.winner is not None:
        return SectionStatus.EDITED if record.winner.edited else SectionStatus.SELECTED
    if record.successful:
        return SectionStatus.GENERATED
    return SectionStatus.UNRESOLVED


def record_results(
    state: PipelineState,
    section_name: str,
    results: list[VariantResult],
    auto_select: bool | None = None,
) -> SectionRecord:
    """Stores the settled results of a fan-out, replacing any earlier round.

    The previous winner is discarded. With auto-select on, the first
    successful variant becomes the winner straight away.
    """
    record = _record(state, section_name)
    if any(r.section_name != section_name for r in results):
        raise SelectionError(f"Results do not all belong to section '{section_name}'.")

    record.results = list(results)
    record.winner = None
    if record.successful and _auto_select_enabled(auto_select):
        _accept(record, record.successful[0])
    logger.debug(
        "Recorded %d results for '%s' (%d successful), status now %s",
        len(results),
        section_name,
        len(record.successful),
        section_status(state, section_name).value,
    )
    return record


def _accept(record: SectionRecord, result: VariantResult) -> Winner:
    record.winner = Winner(
        section_name=record.section_name,
        variant_index=result.variant_index,
        content=result.content or "",
    )
    return record.winner


def select_variant(state: PipelineState, section_name: str, variant_index: int) -> Winner:
    """Explicit user pick of a settled, successful variant."""
    record = _record(state, section_name)
    if section_name in state.in_flight:
        raise SelectionError(f"Section '{section_name}' is still generating.")
    if not record.results:
        raise SelectionError(f"Section '{section_name}' has no generated variants yet.")

    match = next((r for r in record.results if r.variant_index == variant_index), None)
    if match is None:
        raise SelectionError(f"Section '{section_name}' has no variant {variant_index}.")
    if not match.succeeded:
        raise SelectionError(f"Variant {variant_index} of section '{section_name}' failed and cannot be selected.")

    previous = record.winner.variant_index if record.winner else None
    winner = _accept(record, match)
    logger.info("Section '%s': selected variant %d (was %s)", section_name, variant_index, previous)
    return winner


def edit_winner(state: PipelineState, section_name: str, content: str) -> Winner:
    """Replaces the accepted content in place, keeping the chosen variant."""
    record = _record(state, section_name)
    if section_name in state.in_flight:
        raise SelectionError(f"Section '{section_name}' is still generating; its winner cannot be edited.")
    if record.winner is None:
        raise SelectionError(f"Section '{section_name}' has no selected variant to edit.")
    record.winner.content = content
    record.winner.edited = True
    return record.winner


def resolved_content(state: PipelineState, section_name: str, auto_select: bool | None = None) -> str:
    """Content downstream sections build on.

    Returns the winner's content. Without a winner, a GENERATED section is
    auto-selected (first success) when auto-select is on or when it has a
    single successful variant; otherwise the section is unresolved.
    """
    record = _record(state, section_name)
    if record.winner is not None:
        return record.winner.content

    successful = record.successful
    if not successful:
        raise UpstreamUnresolvedError(_downstream_name(state, section_name), section_name)
    if not _auto_select_enabled(auto_select) and len(successful) > 1:
        raise UpstreamUnresolvedError(
            _downstream_name(state, section_name),
            section_name,
            reason=f"{len(successful)} candidate variants awaiting selection",
        )
    return _accept(record, successful[0]).content


def _downstream_name(state: PipelineState, section_name: str) -> str:
    index = state.index_of(section_name)
    if index + 1 < len(state.sections):
        return state.section_at(index + 1).name
    return section_name


def is_resolved(state: PipelineState, section_name: str, auto_select: bool | None = None) -> bool:
    """Whether ``resolved_content`` would succeed, without triggering auto-selection."""
    record = _record(state, section_name)
    if record.winner is not None:
        return True
    successful = record.successful
    return bool(successful) and (_auto_select_enabled(auto_select) or len(successful) == 1)
