from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class _Record(BaseModel):
    # camelCase aliases double as template token names
    model_config = ConfigDict(frozen=True, populate_by_name=True)


class ThemeEntry(_Record):
    name: str = ""
    explanation: str = ""
    quote: str = ""
    context: str = ""


class ResourceEntry(_Record):
    topic: str = ""
    why_it_matters: str = Field(default="", alias="whyItMatters")
    where_to_learn_more: str = Field(default="", alias="whereToLearnMore")


class ReportData(_Record):
    character_name: str = Field(..., alias="characterName")
    character_tagline: str = Field(default="", alias="characterTagline")
    character_birth_year: str = Field(default="", alias="characterBirthYear")
    character_death_year: str = Field(default="", alias="characterDeathYear")
    character_bio: str = Field(default="", alias="characterBio")
    character_image_url: str = Field(default="", alias="characterImageUrl")
    character_facts: tuple[str, ...] = Field(default=(), alias="characterFacts")

    session_date: str = Field(default="", alias="sessionDate")
    session_duration: str = Field(default="", alias="sessionDuration")
    user_name: str = Field(default="", alias="userName")
    session_summary: str = Field(default="", alias="sessionSummary")
    headline_insight: str = Field(default="", alias="headlineInsight")

    themes: tuple[ThemeEntry, ...] = ()
    resources: tuple[ResourceEntry, ...] = ()
    reflection_questions: tuple[str, ...] = Field(default=(), alias="reflectionQuestions")

    def to_template_context(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class CharacterMetadata(BaseModel):
    tagline: Optional[str] = None
    birth_year: Optional[str] = Field(default=None, alias="birthYear")
    death_year: Optional[str] = Field(default=None, alias="deathYear")
    bio: Optional[str] = None
    facts: Optional[List[str]] = None

    model_config = ConfigDict(populate_by_name=True)


class GenerateReportRequest(BaseModel):
    transcript: str = Field(default="", max_length=200_000)
    character_name: str = Field(default="", alias="characterName", max_length=200)
    character_image_url: str = Field(default="", alias="characterImageUrl")
    character_metadata: CharacterMetadata = Field(
        default_factory=CharacterMetadata, alias="characterMetadata"
    )
    session_date: Optional[str] = Field(default=None, alias="sessionDate")
    session_duration: Optional[str] = Field(default=None, alias="sessionDuration")
    user_name: Optional[str] = Field(default=None, alias="userName")

    model_config = ConfigDict(populate_by_name=True)


class TaskState(str, Enum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class TaskStatus(BaseModel):
    status: str
    progress: Optional[float] = None
    result_document_id: Optional[str] = None
    raw: dict = {}

    @classmethod
    def from_payload(cls, payload: dict, result_field: str = "resultDocumentId") -> "TaskStatus":
        progress = payload.get("progress")
        result_id = payload.get(result_field)
        return cls(
            status=str(payload.get("status", "")).upper(),
            progress=progress if isinstance(progress, (int, float)) else None,
            result_document_id=str(result_id) if result_id else None,
            raw=payload,
        )

    @property
    def state(self) -> TaskState:
        try:
            return TaskState(self.status)
        except ValueError:
            # unrecognized statuses are treated as still in flight
            return TaskState.RUNNING

    @property
    def is_terminal(self) -> bool:
        return self.state in (TaskState.COMPLETED, TaskState.FAILED)


class PipelineResult(BaseModel):
    content: bytes

    model_config = ConfigDict(frozen=True)

    @property
    def byte_length(self) -> int:
        return len(self.content)

