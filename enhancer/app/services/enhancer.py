"""Prompt enhancement: builds prompts, calls the provider, shapes the result."""

import json
import re
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from enhancer.app.core.logging import get_log_context, get_logger
from enhancer.app.providers.base import BaseProvider
from enhancer.app.services.prompt_builder import build_system_prompt, build_user_prompt
from enhancer.app.services.validation import PromptRequest

logger = get_logger(__name__)

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


class EnhancedPrompt(BaseModel):
    """Result of one enhancement."""

    model_config = ConfigDict(populate_by_name=True)

    primary_result: str = Field(alias="primaryResult")
    structured_json: Optional[Dict[str, Any]] = Field(default=None, alias="structuredJSON")


def extract_json_object(content: str) -> Optional[Dict[str, Any]]:
    """Parse the outermost ``{...}`` span of a reply, if it is a JSON object."""
    match = _JSON_OBJECT.search(content)
    if not match:
        return None
    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError:
        logger.warning("Failed to parse JSON from response, returning as text")
        return None
    return parsed if isinstance(parsed, dict) else None


class PromptEnhancer:
    def __init__(self, provider: BaseProvider):
        self.provider = provider

    async def enhance(
        self, request: PromptRequest, request_id: Optional[str] = None
    ) -> EnhancedPrompt:
        """Enhance a validated prompt request.

        Raises:
            CompletionServiceError: If the completion service fails
        """
        logger.info(
            f"Enhancing {request.prompt_mode.value} prompt",
            extra=get_log_context(
                request_id=request_id,
                provider=self.provider.name,
                output_structure=request.output_structure.value,
            ),
        )
        content = await self.provider.complete(
            build_system_prompt(request), build_user_prompt(request)
        )

        structured = None
        if request.output_structure.is_json:
            structured = extract_json_object(content)
        return EnhancedPrompt(primary_result=content, structured_json=structured)
