from enum import Enum

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import field_validator
from pydantic import model_validator

from app.core.exceptions import MissingInputError


class GenerationErrorKind(str, Enum):
    """Failure categories surfaced by a single generation call."""

    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"
    INVALID_RESPONSE = "invalid_response"
    UNEXPECTED = "unexpected"


class SectionStatus(str, Enum):
    """States of the per-section winner state machine."""

    UNRESOLVED = "unresolved"
    GENERATED = "generated"
    SELECTED = "selected"
    EDITED = "edited"


class DocumentRequest(BaseModel):
    """User input for one document; frozen once generation starts."""

    model_config = ConfigDict(frozen=True)

    title: str
    database_text: str
    style: str = "formal"
    length: str = "medium"

    @field_validator("title", "style", "length")
    @classmethod
    def _strip(cls, v: str) -> str:
        return v.strip()

    @field_validator("database_text")
    @classmethod
    def _require_database(cls, v: str) -> str:
        if not v.strip():
            raise MissingInputError("Database text is required before generation can start.")
        return v


class SectionSpec(BaseModel):
    """A static pipeline step: its name, position, and the Jinja2 templates forming its prompt."""

    model_config = ConfigDict(frozen=True)

    name: str
    order: int = Field(ge=0)
    human_template: str
    system_template: str = "section_system.jinja2"


class VariantConfig(BaseModel):
    model_config = ConfigDict(frozen=True, protected_namespaces=())

    model_id: str
    temperature: float = Field(ge=0.0, le=2.0)


class VariantError(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: GenerationErrorKind
    detail: str


class VariantResult(BaseModel):
    """Outcome of exactly one generation call; carries either content or an error."""

    model_config = ConfigDict(frozen=True, protected_namespaces=())

    variant_index: int
    section_name: str
    model_id: str
    temperature: float
    content: str | None = None
    error: VariantError | None = None
    elapsed_ms: int = 0

    @model_validator(mode="after")
    def _content_xor_error(self) -> "VariantResult":
        if (self.content is None) == (self.error is None):
            raise ValueError("VariantResult needs exactly one of content or error")
        return self

    @property
    def succeeded(self) -> bool:
        return self.content is not None


class Winner(BaseModel):
    """Accepted variant for a section. Only ``content`` and ``edited`` change after creation."""

    section_name: str
    variant_index: int
    content: str
    edited: bool = False


class SectionRecord(BaseModel):
    """Winner-state slot of a single section."""

    section_name: str
    results: list[VariantResult] = Field(default_factory=list)
    winner: Winner | None = None

    @property
    def successful(self) -> list[VariantResult]:
        return [r for r in self.results if r.succeeded]


class PipelineState(BaseModel):
    """Session-wide generation state: the request, the ordered sections, and per-section records."""

    request: DocumentRequest
    sections: list[SectionSpec]
    current_section_index: int = 0
    records: dict[str, SectionRecord] = Field(default_factory=dict)
    in_flight: set[str] = Field(default_factory=set)

    @model_validator(mode="after")
    def _init_records(self) -> "PipelineState":
        if not self.sections:
            raise ValueError("PipelineState needs at least one section")
        names = [s.name for s in self.sections]
        if len(set(names)) != len(names):
            raise ValueError("Section names must be unique")
        for name in names:
            self.records.setdefault(name, SectionRecord(section_name=name))
        return self

    @property
    def winners(self) -> dict[str, Winner]:
        return {name: rec.winner for name, rec in self.records.items() if rec.winner is not None}

    def section_at(self, index: int) -> SectionSpec:
        return self.sections[index]

    def index_of(self, section_name: str) -> int:
        for i, section in enumerate(self.sections):
            if section.name == section_name:
                return i
        raise KeyError(section_name)


# ---------------------------------------------------------------------------
# API payloads
# ---------------------------------------------------------------------------


class SelectionPayload(BaseModel):
    variant_index: int = Field(ge=0)


class EditPayload(BaseModel):
    content: str


class NavigationPayload(BaseModel):
    """Either an absolute ``index`` or a relative ``direction`` ("next" / "previous")."""

    index: int | None = None
    direction: str | None = Field(default=None, pattern="^(next|previous)$")

    @model_validator(mode="after")
    def _one_of(self) -> "NavigationPayload":
        if (self.index is None) == (self.direction is None):
            raise ValueError("Provide exactly one of 'index' or 'direction'")
        return self


class SectionSnapshot(BaseModel):
    index: int
    name: str
    status: SectionStatus
    results: list[VariantResult]
    winner: Winner | None


class SessionSnapshot(BaseModel):
    session_id: str
    title: str
    current_section_index: int
    sections: list[SectionSnapshot]
