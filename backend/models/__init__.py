from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class OperationKind(str, Enum):
    GENERATE = "generate"
    IMPROVE = "improve"
    CONTINUE = "continue"
    IDEAS = "ideas"


class MergeMode(str, Enum):
    REPLACE = "replace"
    APPEND = "append"


class ReferenceKind(str, Enum):
    CHARACTER = "character"
    WORLD = "world"
    MAGIC = "magic"
    CULTIVATION = "cultivation"


class ReaderTheme(str, Enum):
    LIGHT = "light"
    DARK = "dark"
    SEPIA = "sepia"


class ProviderInfo(BaseModel):
    provider_id: str
    display_name: str
    models: List[str] = Field(default_factory=list)
    default_model: str = ""

    @property
    def effective_default(self) -> Optional[str]:
        if self.default_model:
            return self.default_model
        return self.models[0] if self.models else None


class ProviderConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    provider_id: str
    model_id: Optional[str] = None
    temperature: float = Field(default=0.7, ge=0, le=1)
    max_tokens: int = Field(default=2000, ge=100, le=4000)

    def to_wire(self) -> Dict[str, Any]:
        return {
            "provider": self.provider_id,
            "model": self.model_id,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }


class _RequestBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    config: ProviderConfig


class GenerateRequest(_RequestBase):
    kind: Literal[OperationKind.GENERATE] = OperationKind.GENERATE
    novel_id: Optional[str] = None
    chapter_number: Optional[str] = None
    chapter_title: str = ""
    user_prompt: str = ""

    @field_validator("novel_id", "chapter_number", mode="before")
    @classmethod
    def _coerce_identifier(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


class ImproveRequest(_RequestBase):
    kind: Literal[OperationKind.IMPROVE] = OperationKind.IMPROVE
    content: str = ""
    instruction_prompt: str = ""


class ContinueRequest(_RequestBase):
    kind: Literal[OperationKind.CONTINUE] = OperationKind.CONTINUE
    novel_id: Optional[str] = None
    previous_content: str = ""
    user_instructions: str = ""

    @field_validator("novel_id", mode="before")
    @classmethod
    def _coerce_identifier(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


class IdeasRequest(_RequestBase):
    kind: Literal[OperationKind.IDEAS] = OperationKind.IDEAS
    novel_id: Optional[str] = None

    @field_validator("novel_id", mode="before")
    @classmethod
    def _coerce_identifier(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


GenerationRequest = Annotated[
    Union[GenerateRequest, ImproveRequest, ContinueRequest, IdeasRequest],
    Field(discriminator="kind"),
]


class SimulatedResponseNotice(BaseModel):
    provider_label: str
    message: str = (
        "No generation backend is configured for this provider; "
        "the text below is a simulated placeholder."
    )


class GenerationResult(BaseModel):
    kind: OperationKind
    content: Optional[str] = None
    ideas: List[str] = Field(default_factory=list)
    provider_label: str = ""
    simulated: bool = False
    draft_ticket: Optional[str] = None

    @property
    def notice(self) -> Optional[SimulatedResponseNotice]:
        if not self.simulated:
            return None
        return SimulatedResponseNotice(provider_label=self.provider_label)


class ChapterDraft(BaseModel):
    chapter_number: str = ""
    title: str = ""
    content: str = ""


class WorldbuildingReference(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: ReferenceKind
    name: str
    description: str = ""
    levels: Optional[List[str]] = None


class DocumentStats(BaseModel):
    words: int = 0
    characters: int = 0
    paragraphs: int = 0
    reading_time: int = 0


class ReaderPreferences(BaseModel):
    font_size: int = Field(default=18, ge=10, le=40)
    font_family: str = "serif"
    line_height: float = Field(default=1.8, ge=1.0, le=3.0)
    theme: ReaderTheme = ReaderTheme.LIGHT
    max_width: int = Field(default=800, ge=400, le=1600)
    paragraph_spacing: float = Field(default=1.5, ge=0, le=4.0)
    justify_text: bool = True
    show_progress: bool = True
    auto_advance: bool = False


class ChapterSummary(BaseModel):
    chapter_number: int
    title: str = ""


class NovelInfo(BaseModel):
    id: str
    title: str
    description: str = ""
    genres: List[str] = Field(default_factory=list)
    chapters: List[ChapterSummary] = Field(default_factory=list)

    def recent_chapters(self, limit: int = 5) -> List[ChapterSummary]:
        ordered = sorted(self.chapters, key=lambda c: c.chapter_number, reverse=True)
        return ordered[:limit]
