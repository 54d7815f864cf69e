"""Prompt request validation and normalization."""

from enum import Enum
from typing import Any, Dict, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from enhancer.app.exceptions import PromptValidationError

MAX_PROMPT_IDEA_LENGTH = 1000


class PromptMode(str, Enum):
    """Kind of content the enhanced prompt targets."""
    TEXT = "Text"
    IMAGE = "Image"
    VIDEO = "Video"
    AUDIO = "Audio"
    CODE = "Code"


class OutputStructure(str, Enum):
    """Shape the completion is asked to answer in."""
    DESCRIPTIVE_PARAGRAPH = "Descriptive Paragraph"
    SIMPLE_JSON = "Simple JSON"
    DETAILED_JSON = "Detailed JSON"

    @property
    def is_json(self) -> bool:
        return self is not OutputStructure.DESCRIPTIVE_PARAGRAPH


MODIFIER_OPTIONS: Dict[str, list[str]] = {
    "contentTone": ["Professional", "Casual", "Creative", "Technical", "Friendly", "Formal"],
    "outputFormat": ["Plain Text", "Markdown", "HTML", "JSON", "CSV"],
    "style": ["Photorealistic", "Artistic", "Cartoon", "Abstract", "Minimalist", "Vintage"],
    "aspectRatio": ["1:1", "16:9", "4:3", "3:2", "9:16", "21:9"],
    "lighting": ["Natural", "Studio", "Golden Hour", "Blue Hour", "Dramatic", "Soft"],
    "framing": ["Close-up", "Medium Shot", "Wide Shot", "Extreme Close-up", "Bird's Eye", "Worm's Eye"],
    "cameraAngle": ["Eye Level", "High Angle", "Low Angle", "Dutch Angle", "Over Shoulder"],
    "detailLevel": ["High", "Medium", "Low", "Ultra High", "Minimal"],
    "audioType": ["Music", "Voice", "Sound Effects", "Ambient", "Podcast", "Audiobook"],
    "vibeMood": ["Energetic", "Calm", "Dark", "Uplifting", "Mysterious", "Romantic"],
    "language": ["JavaScript", "Python", "TypeScript", "Java", "C++", "Go", "Rust", "PHP"],
    "task": ["Function", "Class", "Algorithm", "API", "Database Query", "UI Component"],
}


class PromptRequest(BaseModel):
    """Normalized prompt enhancement request."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    core_prompt_idea: str = Field(
        alias="corePromptIdea", min_length=1, max_length=MAX_PROMPT_IDEA_LENGTH
    )
    prompt_mode: PromptMode = Field(alias="promptMode")
    modifiers: Dict[str, str] = Field(default_factory=dict)
    output_structure: OutputStructure = Field(alias="outputStructure")

    @field_validator("core_prompt_idea", mode="before")
    @classmethod
    def strip_prompt_idea(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("modifiers", mode="before")
    @classmethod
    def normalize_modifiers(cls, v: Any) -> Any:
        """Non-object modifiers become empty; blank values are dropped."""
        if not isinstance(v, Mapping):
            return {}
        normalized = {}
        for key, value in v.items():
            if value is None:
                continue
            if not isinstance(value, str):
                raise ValueError(f"modifier '{key}' must be a string")
            value = value.strip()
            if value:
                normalized[str(key)] = value
        return normalized

    def to_api(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


_FIELD_LABELS = {
    "corePromptIdea": "Core prompt idea",
    "promptMode": "Prompt mode",
    "outputStructure": "Output structure",
    "modifiers": "Modifiers",
}


def _describe(error: ValidationError) -> str:
    """Collapse pydantic errors into one readable message."""
    messages = []
    for detail in error.errors():
        field = str(detail["loc"][0]) if detail["loc"] else ""
        label = _FIELD_LABELS.get(field, field)
        kind = detail["type"]
        if kind == "missing":
            messages.append(f"{label} is required")
        elif kind == "string_too_short":
            messages.append(f"{label} cannot be empty")
        elif kind == "string_too_long":
            messages.append(
                f"{label} must be at most {MAX_PROMPT_IDEA_LENGTH} characters"
            )
        elif kind == "enum":
            messages.append(f"Invalid {label.lower()}")
        elif kind == "string_type":
            messages.append(f"{label} must be a string")
        else:
            messages.append(f"{label}: {detail['msg']}")
    return "; ".join(messages)


def validate_prompt_input(raw: Any) -> PromptRequest:
    """Validate raw input and return a normalized request.

    Raises:
        PromptValidationError: On any violated constraint
    """
    if not isinstance(raw, Mapping):
        raise PromptValidationError("Invalid input: must be an object")
    try:
        return PromptRequest.model_validate(dict(raw))
    except ValidationError as e:
        raise PromptValidationError(_describe(e)) from e
