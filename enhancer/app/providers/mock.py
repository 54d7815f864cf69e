"""Mock provider for development and tests.

Simulates completion responses without making external API calls.

Enable by setting environment variable:
    ENHANCER_MOCK_PROVIDER=true
"""

import asyncio
import json
import time
import uuid
from typing import Any, Dict

from enhancer.app.providers.base import BaseProvider


class MockProvider(BaseProvider):
    """Completion provider that answers locally and deterministically.

    Replies echo the user prompt, and include a JSON object whenever the
    prompt asks for one, so JSON extraction can be exercised end to end.
    """

    name = "mock"

    def __init__(self, delay: float = 0.0, **kwargs: Any):
        kwargs.setdefault("base_url", "http://mock.provider")
        kwargs.setdefault("api_key", "mock-key")
        super().__init__(**kwargs)
        self.delay = delay
        self.calls: list[Dict[str, Any]] = []

    def _generate_content(self, user_message: str) -> str:
        first_line = user_message.splitlines()[0] if user_message else ""
        text = f"Enhanced prompt: {first_line}"
        if "JSON" in user_message:
            return json.dumps({"prompt": text, "source": "mock"})
        return text

    async def chat_completion(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        if self.delay:
            await asyncio.sleep(self.delay)
        self.calls.append(payload)

        user_message = ""
        for msg in reversed(payload.get("messages", [])):
            if msg.get("role") == "user":
                user_message = msg.get("content", "")
                break

        return {
            "id": f"chatcmpl-{uuid.uuid4().hex[:24]}",
            "object": "chat.completion",
            "created": int(time.time()),
            "model": payload.get("model", "mock-model"),
            "choices": [{
                "index": 0,
                "message": {
                    "role": "assistant",
                    "content": self._generate_content(user_message)
                },
                "finish_reason": "stop"
            }],
        }

    async def health_check(self, timeout: float = 2.0) -> bool:
        return True
