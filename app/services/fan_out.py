from __future__ import annotations

import asyncio
import logging
import time

from app.core.exceptions import ConfigurationError
from app.models.document_models import DocumentRequest
from app.models.document_models import SectionSpec
from app.models.document_models import VariantConfig
from app.models.document_models import VariantError
from app.models.document_models import VariantResult
from app.services import llm
from app.services.sections import build_prompt

logger = logging.getLogger(__name__)


class VariantFanOutService:
    """Runs every variant of a section concurrently and waits for all of them.

    A failing variant becomes a VariantResult carrying the error; it never
    cancels or fails its siblings.
    """

    async def _run_variant(
        self,
        request_id: str,
        section: SectionSpec,
        variant_index: int,
        config: VariantConfig,
        system_instruction: str,
        human_prompt: str,
    ) -> VariantResult:
        start = time.perf_counter()
        try:
            content = await llm.invoke(config.model_id, config.temperature, system_instruction, human_prompt)
        except llm.GenerationError as e:
            logger.warning(
                "[%s] Variant %d of '%s' failed (%s): %s",
                request_id,
                variant_index,
                section.name,
                e.kind.value,
                e.detail,
            )
            error = VariantError(kind=e.kind, detail=e.detail)
            return VariantResult(
                variant_index=variant_index,
                section_name=section.name,
                model_id=config.model_id,
                temperature=config.temperature,
                error=error,
                elapsed_ms=int((time.perf_counter() - start) * 1000),
            )
        return VariantResult(
            variant_index=variant_index,
            section_name=section.name,
            model_id=config.model_id,
            temperature=config.temperature,
            content=content,
            elapsed_ms=int((time.perf_counter() - start) * 1000),
        )

    async def generate_section(
        self,
        request_id: str,
        section: SectionSpec,
        request: DocumentRequest,
        prior_content: str | None,
        variant_configs: list[VariantConfig],
    ) -> list[VariantResult]:
        """Returns one VariantResult per config, in config order, once every call settled."""
        if not variant_configs:
            raise ConfigurationError(f"No variant configurations given for section '{section.name}'.")

        system_instruction, human_prompt = build_prompt(section, request, prior_content)
        logger.info(
            "[%s] Fanning out section '%s' to %d variants",
            request_id,
            section.name,
            len(variant_configs),
        )

        tasks = [
            asyncio.create_task(self._run_variant(request_id, section, i, config, system_instruction, human_prompt))
            for i, config in enumerate(variant_configs)
        ]
        settled = await asyncio.gather(*tasks, return_exceptions=True)

        results: list[VariantResult] = []
        for i, (config, outcome) in enumerate(zip(variant_configs, settled)):
            if isinstance(outcome, VariantResult):
                results.append(outcome)
                continue
            # Anything that escaped _run_variant is still confined to its own slot.
            err = llm.classify_exception(outcome)
            logger.error(
                "[%s] Variant %d of '%s' raised unexpectedly: %s",
                request_id,
                i,
                section.name,
                err.detail,
            )
            results.append(
                VariantResult(
                    variant_index=i,
                    section_name=section.name,
                    model_id=config.model_id,
                    temperature=config.temperature,
                    error=VariantError(kind=err.kind, detail=err.detail),
                )
            )

        succeeded = sum(1 for r in results if r.succeeded)
        logger.info(
            "[%s] Section '%s' settled: %d/%d variants succeeded",
            request_id,
            section.name,
            succeeded,
            len(results),
        )
        return results
