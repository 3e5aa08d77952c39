# --- API Models ---
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class ConvertRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    content: Optional[str] = None
    source_type: Literal["googledocs", "docx", "md"] = Field(alias="sourceType")
    url: Optional[str] = None
    model: Optional[str] = None

class ModelsResponse(BaseModel):
    models: List[str]

class UploadResponse(BaseModel):
    content: str

class ValidationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    valid: bool
    violations: List[str] = Field(default_factory=list)


# --- Stream Events ---
class ChunkEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["chunk"] = "chunk"
    content: str

class ValidationEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["validation"] = "validation"
    valid: bool
    errors: List[str]

    @classmethod
    def from_result(cls, result: ValidationResult) -> "ValidationEvent":
        return cls(valid=result.valid, errors=list(result.violations))

class ErrorEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["error"] = "error"
    message: str

class DoneEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["done"] = "done"


StreamEvent = Union[ChunkEvent, ValidationEvent, ErrorEvent, DoneEvent]


def format_sse(event: StreamEvent) -> str:
    """Encode one event as a Server-Sent-Events data frame."""
    return f"data: {event.model_dump_json()}\n\n"
