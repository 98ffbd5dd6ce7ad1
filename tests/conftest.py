import io

import pytest

from app.models.document_models import DocumentRequest
from app.models.document_models import PipelineState
from app.models.document_models import SectionSpec
from app.models.document_models import VariantConfig
from app.models.document_models import VariantError
from app.models.document_models import VariantResult


# Fixture factory to create dummy upload files with filename and content
@pytest.fixture
def make_dummy_upload():
    def _make_dummy_upload(filename: str, content: bytes):
        class DummyFile:
            def __init__(self):
                self.filename = filename
                self._content = content
                self.file = io.BytesIO(content)

            async def read(self):
                return self._content

        return DummyFile()

    return _make_dummy_upload


@pytest.fixture
def climate_request():
    return DocumentRequest(title="Climate Report", database_text="CO2 rose 2ppm in 2023.")


@pytest.fixture
def two_sections():
    return [
        SectionSpec(name="Intro", order=0, human_template="introduction.jinja2"),
        SectionSpec(name="Conclusion", order=1, human_template="conclusion.jinja2"),
    ]


@pytest.fixture
def make_state(climate_request, two_sections):
    def _make_state(sections=None, request=None):
        return PipelineState(request=request or climate_request, sections=sections or two_sections)

    return _make_state


@pytest.fixture
def make_result():
    def _make_result(section_name, variant_index, content=None, error_kind=None):
        error = VariantError(kind=error_kind, detail="boom") if error_kind else None
        return VariantResult(
            variant_index=variant_index,
            section_name=section_name,
            model_id="m",
            temperature=0.5,
            content=content,
            error=error,
        )

    return _make_result


@pytest.fixture
def configs():
    def _configs(*temperatures):
        return [VariantConfig(model_id="test-model", temperature=t) for t in temperatures]

    return _configs


@pytest.fixture
def fake_invoke(monkeypatch):
    """Replaces the generation client with *handler* and records every call.

    The handler receives the call as a dict and returns content or raises.
    """
    calls = []

    def _install(handler):
        async def _invoke(model_id, temperature, system_instruction, human_prompt):
            call = {
                "model_id": model_id,
                "temperature": temperature,
                "system_instruction": system_instruction,
                "human_prompt": human_prompt,
            }
            calls.append(call)
            return handler(call)

        monkeypatch.setattr("app.services.llm.invoke", _invoke)
        return calls

    return _install
