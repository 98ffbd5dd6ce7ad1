from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncGenerator
from typing import Any

from app.core.exceptions import GenerationInProgressError
from app.core.exceptions import OutOfRangeError
from app.core.exceptions import PipelineError
from app.models.document_models import PipelineState
from app.models.document_models import SectionStatus
from app.models.document_models import VariantConfig
from app.models.document_models import VariantResult
from app.services.fan_out import VariantFanOutService
from app.services.llm import LLMError
from app.services.navigation import NavigationController
from app.services.sections import prior_content_for
from app.services.winner_state import is_resolved
from app.services.winner_state import record_results
from app.services.winner_state import section_status

# Configure module logger
logger = logging.getLogger(__name__)


def _event(event_type: str, **fields: Any) -> str:
    return json.dumps({"type": event_type, **fields})


def _log_fan_out_failure(task: asyncio.Task) -> None:
    # Surfaces failures of fan-outs whose caller went away before they settled.
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Fan-out task failed: %s: %s", type(exc).__name__, exc)


def variant_event(result: VariantResult) -> str:
    """Rendering-sink event for one settled variant."""
    return _event(
        "variant",
        section=result.section_name,
        variant_index=result.variant_index,
        model_id=result.model_id,
        temperature=result.temperature,
        content=result.content,
        error=result.error.model_dump(mode="json") if result.error else None,
    )


class PipelineService:
    """Generates the sections of one document strictly in order.

    Section *i+1* is never started before the fan-out of section *i* has
    settled and section *i* has resolved content. At most one fan-out per
    section is in flight at a time.
    """

    def __init__(
        self,
        state: PipelineState,
        variant_configs: list[VariantConfig],
        auto_select: bool | None = None,
        fan_out_service: VariantFanOutService | None = None,
    ):
        logger.info(
            "Initializing PipelineService for '%s' with %d sections x %d variants",
            state.request.title,
            len(state.sections),
            len(variant_configs),
        )
        self.state = state
        self.variant_configs = list(variant_configs)
        self.auto_select = auto_select
        self.fan_out_service = fan_out_service or VariantFanOutService()
        self.navigation = NavigationController(state)
        self._fan_out_tasks: set[asyncio.Task] = set()

    def status(self, index: int) -> SectionStatus:
        return section_status(self.state, self.state.section_at(index).name)

    def is_section_resolved(self, index: int) -> bool:
        """A section still being generated is never resolved, whatever its current winner."""
        if self.state.section_at(index).name in self.state.in_flight:
            return False
        return is_resolved(self.state, self.state.section_at(index).name, self.auto_select)

    def first_pending_index(self) -> int | None:
        """Index of the first section without resolved content, or None when all are resolved."""
        for index in range(len(self.state.sections)):
            if not self.is_section_resolved(index):
                return index
        return None

    async def _fan_out_and_record(self, request_id: str, index: int, prior_content: str | None) -> list[VariantResult]:
        section = self.state.section_at(index)
        try:
            results = await self.fan_out_service.generate_section(
                request_id,
                section,
                self.state.request,
                prior_content,
                self.variant_configs,
            )
            record_results(self.state, section.name, results, self.auto_select)
            return results
        finally:
            self.state.in_flight.discard(section.name)

    async def generate_section(self, request_id: str, index: int) -> list[VariantResult]:
        """Builds the prompt for section *index* on its predecessor's content and fans it out.

        Raises UpstreamUnresolvedError before any call when the predecessor
        has nothing resolved, and GenerationInProgressError when this section
        or its predecessor already has a fan-out running.
        """
        size = len(self.state.sections)
        if not 0 <= index < size:
            raise OutOfRangeError(index, size)
        section = self.state.section_at(index)
        if section.name in self.state.in_flight:
            raise GenerationInProgressError(f"Section '{section.name}' is already being generated.")
        if index > 0:
            upstream = self.state.section_at(index - 1)
            if upstream.name in self.state.in_flight:
                raise GenerationInProgressError(
                    f"Section '{section.name}' must wait for '{upstream.name}' to finish generating."
                )

        prior_content = prior_content_for(self.state, index)

        self.state.in_flight.add(section.name)
        task = asyncio.create_task(self._fan_out_and_record(request_id, index, prior_content))
        self._fan_out_tasks.add(task)
        task.add_done_callback(self._fan_out_tasks.discard)
        task.add_done_callback(_log_fan_out_failure)
        # Shielded: a disconnecting caller does not cancel the member calls.
        return await asyncio.shield(task)

    async def run(self, request_id: str) -> AsyncGenerator[str, None]:
        """Generate every pending section in order, yielding NDJSON-ready event strings."""
        sections = self.state.sections
        logger.info("[%s] Starting pipeline run for '%s'", request_id, self.state.request.title)
        try:
            start = self.first_pending_index()
            if start is None:
                yield _event("finished", message="All sections already have content.")
                return

            for index in range(start, len(sections)):
                section = sections[index]
                if self.is_section_resolved(index):
                    continue
                if section.name in self.state.in_flight:
                    raise GenerationInProgressError(f"Section '{section.name}' is still being generated.")
                if self.status(index) is SectionStatus.GENERATED:
                    yield _event(
                        "selection_needed",
                        section=section.name,
                        index=index,
                        message=f"Choose a variant for '{section.name}' to continue.",
                    )
                    return

                yield _event(
                    "status",
                    message=f"Generating section {index + 1}/{len(sections)}: {section.name}...",
                )
                self.navigation.go_to(index)
                results = await self.generate_section(request_id, index)
                for result in results:
                    yield variant_event(result)

                status = self.status(index)
                winner = self.state.records[section.name].winner
                yield _event(
                    "section",
                    section=section.name,
                    index=index,
                    status=status.value,
                    winner_index=winner.variant_index if winner else None,
                )

                if status is SectionStatus.UNRESOLVED:
                    logger.error("[%s] All variants failed for section '%s'", request_id, section.name)
                    yield _event(
                        "section_failed",
                        section=section.name,
                        index=index,
                        message=f"No variant produced content for '{section.name}'; later sections are blocked.",
                    )
                    return
                if not self.is_section_resolved(index):
                    yield _event(
                        "selection_needed",
                        section=section.name,
                        index=index,
                        message=f"Choose a variant for '{section.name}' to continue.",
                    )
                    return

            logger.info("[%s] Pipeline completed successfully", request_id)
            yield _event("finished", message="All sections generated.")

        except PipelineError as e:
            logger.error(
                "[%s] Pipeline run failed due to %s: %s",
                request_id,
                type(e).__name__,
                str(e),
                exc_info=False,
            )
            yield _event("error", message=f"Pipeline Error: {str(e)}")
        except LLMError as e:
            logger.error("[%s] Pipeline run failed due to LLMError: %s", request_id, str(e), exc_info=False)
            yield _event("error", message=f"LLM Service Error: {str(e)}")
        except Exception as e:
            logger.exception("[%s] Pipeline run failed with unexpected error", request_id)
            yield _event("error", message=f"An unexpected problem occurred in the pipeline: {str(e)}")
        finally:
            logger.info("[%s] Pipeline processing finished.", request_id)
