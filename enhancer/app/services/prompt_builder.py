"""Builds the system and user prompts sent to the completion service."""

import re

from enhancer.app.services.validation import OutputStructure, PromptRequest

_CAMEL_BOUNDARY = re.compile(r"([A-Z])")

_STRUCTURE_INSTRUCTIONS = {
    OutputStructure.SIMPLE_JSON: (
        "Please provide the response as a simple JSON object with key-value pairs."
    ),
    OutputStructure.DETAILED_JSON: (
        "Please provide the response as a detailed JSON object with comprehensive "
        "metadata and structured information."
    ),
    OutputStructure.DESCRIPTIVE_PARAGRAPH: (
        "Please provide the response as a well-structured descriptive paragraph."
    ),
}


def humanize_modifier(key: str) -> str:
    """``cameraAngle`` -> ``camera angle``."""
    return _CAMEL_BOUNDARY.sub(r" \1", key).strip().lower()


def build_system_prompt(request: PromptRequest) -> str:
    return (
        "You are an expert prompt engineer. Your task is to enhance and optimize "
        f"prompts for {request.prompt_mode.value} generation."
    )


def build_user_prompt(request: PromptRequest) -> str:
    parts = [
        f'Please enhance this {request.prompt_mode.value.lower()} prompt: '
        f'"{request.core_prompt_idea}"'
    ]

    specs = [
        f"- {humanize_modifier(key)}: {value}"
        for key, value in request.modifiers.items()
        if value
    ]
    if specs:
        parts.append("Please incorporate these specifications:\n" + "\n".join(specs))

    parts.append(_STRUCTURE_INSTRUCTIONS[request.output_structure])
    return "\n\n".join(parts)
