from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional

import httpx

from enhancer.app.core.logging import get_log_context, get_logger
from enhancer.app.exceptions import CompletionServiceError, CompletionTimeoutError

logger = get_logger(__name__)


class BaseProvider(ABC):
    """Base class for completion providers.

    Subclasses can accept an external httpx.AsyncClient for connection pooling,
    or create their own if not provided. ``complete`` is the entry point the
    rest of the application uses; it turns transport failures into
    CompletionServiceError so callers only deal with one error family.
    """

    name: str = "base"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        model: str = "gpt-4",
        max_tokens: int = 1500,
        temperature: float = 0.7,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 45.0
    ):
        """Initialize the provider.

        Args:
            base_url: The API base URL
            api_key: The API key for authentication
            model: Model name sent with every request
            max_tokens: Completion token limit
            temperature: Sampling temperature
            http_client: Optional shared HTTP client for connection pooling
            timeout: Request timeout in seconds
        """
        self._http_client = http_client
        self.base_url = base_url.rstrip('/')
        self.api_key = api_key
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.timeout = timeout
        self.headers = self._build_headers()

    @property
    def http_client(self) -> Optional[httpx.AsyncClient]:
        return self._http_client

    def _build_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json"
        }

    @asynccontextmanager
    async def _client_context(self) -> AsyncGenerator[httpx.AsyncClient, None]:
        """Yield the shared client, or a per-request one that is closed after use."""
        if self._http_client is not None:
            yield self._http_client
            return
        client = httpx.AsyncClient(timeout=self.timeout)
        try:
            yield client
        finally:
            await client.aclose()

    def _get_endpoint_url(self, endpoint: str) -> str:
        return f"{self.base_url}{endpoint}"

    def build_payload(self, system_prompt: str, user_prompt: str) -> Dict[str, Any]:
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
        }

    @staticmethod
    def extract_content(response: Dict[str, Any]) -> str:
        """Pull the assistant message out of a chat completion response.

        Raises:
            CompletionServiceError: If the response carries no content
        """
        try:
            content = response["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            content = None
        if not content:
            raise CompletionServiceError("No content received from completion API")
        return content

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        """Run one completion and return the reply text.

        Raises:
            CompletionTimeoutError: If the API does not answer in time
            CompletionServiceError: On any other transport or API failure
        """
        payload = self.build_payload(system_prompt, user_prompt)
        try:
            response = await self.chat_completion(payload)
        except httpx.TimeoutException as e:
            logger.error(
                f"Completion request timed out: {e}",
                extra=get_log_context(provider=self.name),
            )
            raise CompletionTimeoutError("Request timeout - please try again") from e
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.error(
                f"Completion API returned HTTP {status}",
                extra=get_log_context(provider=self.name),
            )
            raise CompletionServiceError(
                f"Completion service error: HTTP {status}"
            ) from e
        except httpx.HTTPError as e:
            logger.error(
                f"Completion request failed: {type(e).__name__}: {e}",
                extra=get_log_context(provider=self.name),
            )
            raise CompletionServiceError(f"Network error: {e}") from e
        return self.extract_content(response)

    @abstractmethod
    async def chat_completion(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Send a non-streaming chat completion request.

        Args:
            payload: The request payload containing model, messages, etc.

        Returns:
            The JSON response from the API
        """

    @abstractmethod
    async def health_check(self, timeout: float = 2.0) -> bool:
        """Check if the provider is reachable."""
