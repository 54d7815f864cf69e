"""OpenAI API provider implementation.

Compatible with OpenAI API and other OpenAI-compatible endpoints
(e.g., Azure OpenAI, local LLMs with OpenAI-compatible API).
"""

from typing import Any, Dict, Optional

import httpx

from enhancer.app.providers.base import BaseProvider
from enhancer.app.providers.retry import RetryPolicy, with_retry


class OpenAIProvider(BaseProvider):
    """OpenAI chat completions provider.

    If http_client is provided, it will be used for all requests (connection reuse).
    Transient failures are retried according to ``retry_policy``.
    """

    name = "openai"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        organization: Optional[str] = None,
        retry_policy: Optional[RetryPolicy] = None,
        **kwargs: Any,
    ):
        """Initialize OpenAI provider.

        Args:
            base_url: The OpenAI API base URL
            api_key: The OpenAI API key
            organization: Optional organization ID
            retry_policy: Retry behaviour for transient failures
            **kwargs: Passed through to BaseProvider
        """
        super().__init__(base_url, api_key, **kwargs)
        self.organization = organization
        self.retry_policy = retry_policy or RetryPolicy()

        if organization:
            self.headers["OpenAI-Organization"] = organization

    async def _post_completion(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        url = self._get_endpoint_url("/chat/completions")
        async with self._client_context() as client:
            resp = await client.post(url, headers=self.headers, json=payload)
            resp.raise_for_status()
            return resp.json()

    async def chat_completion(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Send a non-streaming chat completion request.

        Raises:
            httpx.HTTPStatusError: If the API returns an error after retries
        """
        return await with_retry(self.retry_policy)(self._post_completion)(payload)

    async def health_check(self, timeout: float = 2.0) -> bool:
        """Call the /models endpoint with a short timeout."""
        try:
            url = self._get_endpoint_url("/models")
            async with self._client_context() as client:
                resp = await client.get(url, headers=self.headers, timeout=timeout)
                return resp.status_code == 200
        except httpx.HTTPError:
            return False
