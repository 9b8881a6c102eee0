"""Base provider class with the shared rate-limit, retry and error handling path."""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import httpx

from ..exceptions import ResponseFormatError, create_api_error
from ..services.http_pool import get_http_client
from ..services.rate_limiter import SlidingWindowRateLimiter
from ..utils.logging_security import SecureLogger
from ..utils.retry import RetryConfig, retry_async

logger = logging.getLogger(__name__)


class BaseProvider(ABC):
    """Base class for all statistics providers.

    Every outbound call goes through :meth:`_request_json`:

    1. wait for admission from the source's rate limiter (every attempt,
       including retries)
    2. run the HTTP GET under the retry policy
    3. decode the JSON body (a non-JSON body is a malformed response)
    4. wrap any failure in an :class:`~statsmcp.exceptions.ApiError`
       carrying the source name and redacted request context

    Subclasses implement ``provider_name`` / ``source_id`` and their own
    ``get_*`` operations, validating the envelope of each response.
    """

    # Default timeout (seconds)
    DEFAULT_TIMEOUT = 30.0

    def __init__(
        self,
        base_url: str,
        rate_limiter: SlidingWindowRateLimiter,
        retry_config: Optional[RetryConfig] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        """Initialize base provider.

        Args:
            base_url: Root URL of the upstream REST API
            rate_limiter: Admission window shared by all calls to this source
            retry_config: Backoff parameters (defaults to 3 retries)
            timeout: Request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.rate_limiter = rate_limiter
        self.retry_config = retry_config or RetryConfig()
        self.timeout = timeout

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Human-readable source name used in logs and error messages."""
        pass

    @property
    @abstractmethod
    def source_id(self) -> str:
        """Stable source identifier (e.g., ``"estat"``)."""
        pass

    async def _request_json(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        """GET ``base_url + path`` and return the decoded JSON body.

        Raises:
            ApiError: If the call fails after exhausting retries
            ResponseFormatError: If the body is not valid JSON
        """
        url = f"{self.base_url}{path}"
        query = {key: value for key, value in (params or {}).items() if value is not None}

        async def _attempt() -> httpx.Response:
            await self.rate_limiter.wait_for_availability()
            client = get_http_client()
            logger.debug(
                f"{self.provider_name} GET {url} params={SecureLogger.sanitize_params(query)}"
            )
            response = await client.get(url, params=query, headers=headers, timeout=self.timeout)
            response.raise_for_status()
            return response

        try:
            response = await retry_async(_attempt, self.retry_config)
        except httpx.HTTPError as exc:
            api_error = create_api_error(self.provider_name, exc)
            logger.warning(f"{api_error.message} ({api_error.request_url or url})")
            raise api_error from exc

        return self._parse_json_safe(response)

    def _parse_json_safe(self, response: httpx.Response) -> Any:
        """Decode a JSON response, treating decode failures as malformed payloads."""
        try:
            return response.json()
        except ValueError as exc:
            raise ResponseFormatError(
                self.provider_name,
                f"{self.provider_name} API returned a non-JSON response",
                status_code=response.status_code,
                response_data=response.text[:500] or None,
                request_url=str(response.request.url),
                request_method=response.request.method,
            ) from exc

    def _malformed(self, message: str, payload: Any = None) -> ResponseFormatError:
        """Build the error raised when a payload lacks its expected envelope."""
        return ResponseFormatError(
            self.provider_name,
            f"{self.provider_name} API returned an unexpected response: {message}",
            response_data=self._preview(payload),
        )

    def _require_mapping(self, payload: Any, *keys: str) -> Dict[str, Any]:
        """Require a JSON object holding at least one of ``keys`` (if any given)."""
        if not isinstance(payload, dict):
            raise self._malformed(f"expected a JSON object, got {type(payload).__name__}", payload)
        if keys and not any(key in payload for key in keys):
            raise self._malformed(f"missing {' or '.join(repr(key) for key in keys)}", payload)
        return payload

    @staticmethod
    def _as_list(node: Any) -> List[Any]:
        """Upstream XML-to-JSON envelopes collapse one-element arrays into objects."""
        if node is None:
            return []
        if isinstance(node, list):
            return node
        return [node]

    @staticmethod
    def _preview(payload: Any) -> Any:
        if isinstance(payload, (dict, list)):
            return payload if len(payload) <= 5 else f"<{type(payload).__name__} of {len(payload)} items>"
        if isinstance(payload, str):
            return payload[:500]
        return payload
