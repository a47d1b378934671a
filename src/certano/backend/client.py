"""Backend HTTP client.

Delivers quiz results and fetches the question set from the remote
backend over httpx.

Contract:
- POST {base_url}/api/quiz-results with the JSON attempt payload;
  any 2xx is success, anything else or a transport error is failure
- GET {base_url}/api/questions returns a list of question records
- GET {base_url}/health is the reachability probe
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from certano.config.app_config import BackendConfig
from certano.core.attempt import QuizAttempt

logger = structlog.get_logger(__name__)


# =============================================================================
# ERRORS AND RESULTS
# =============================================================================


class BackendError(Exception):
    """Error during backend interaction."""

    pass


class BackendConnectionError(BackendError):
    """Backend could not be reached."""

    pass


class BackendResponseError(BackendError):
    """Backend answered with a non-2xx status or an unusable body."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class DeliveryResult:
    """Outcome of delivering one attempt."""

    result_id: str
    success: bool
    status_code: int | None = None
    message: str = ""
    latency_ms: int = 0


# =============================================================================
# CLIENT
# =============================================================================


class BackendClient:
    """Async client for the quiz backend."""

    def __init__(
        self,
        config: BackendConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize backend client.

        Args:
            config: Backend configuration (defaults if not provided)
            transport: Optional httpx transport (tests use MockTransport)
        """
        self.config = config or BackendConfig()

        headers = {"Accept": "application/json"}
        api_key = self.config.get_api_key()
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"

        self._client = httpx.AsyncClient(
            base_url=self.config.base_url,
            headers=headers,
            timeout=self.config.timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> BackendClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def post_quiz_result(self, attempt: QuizAttempt) -> DeliveryResult:
        """Deliver one attempt.

        Failures are reported in the result, never raised.
        """
        start_time = time.time()
        try:
            response = await self._client.post(
                self.config.results_path, json=attempt.to_dict()
            )
        except httpx.HTTPError as e:
            logger.warning(
                "quiz_result_delivery_failed",
                result_id=attempt.id,
                error=str(e),
            )
            return DeliveryResult(
                result_id=attempt.id,
                success=False,
                message=f"Cannot reach {self.config.base_url}: {e}",
            )

        latency_ms = int((time.time() - start_time) * 1000)

        if not response.is_success:
            logger.warning(
                "quiz_result_rejected",
                result_id=attempt.id,
                status_code=response.status_code,
            )
            return DeliveryResult(
                result_id=attempt.id,
                success=False,
                status_code=response.status_code,
                message=f"Backend answered {response.status_code}",
                latency_ms=latency_ms,
            )

        logger.info(
            "quiz_result_delivered",
            result_id=attempt.id,
            status_code=response.status_code,
            latency_ms=latency_ms,
        )
        return DeliveryResult(
            result_id=attempt.id,
            success=True,
            status_code=response.status_code,
            latency_ms=latency_ms,
        )

    async def fetch_questions(self, chapter: str | None = None) -> list[dict[str, Any]]:
        """Fetch the question set.

        Returns:
            Raw question records (normalized later by the loader)

        Raises:
            BackendConnectionError: If the backend cannot be reached
            BackendResponseError: If the response is not a 2xx JSON list
        """
        params = {"chapter": chapter} if chapter else None
        try:
            response = await self._client.get(self.config.questions_path, params=params)
        except httpx.HTTPError as e:
            raise BackendConnectionError(
                f"Cannot reach {self.config.base_url}: {e}"
            ) from e

        if not response.is_success:
            raise BackendResponseError(
                f"Question fetch answered {response.status_code}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise BackendResponseError("Question fetch returned invalid JSON") from e

        # Accept a bare list or {"questions": [...]}
        if isinstance(data, dict):
            data = data.get("questions")
        if not isinstance(data, list):
            raise BackendResponseError("Question fetch did not return a list")

        logger.info("questions_fetched", count=len(data), chapter=chapter)
        return data

    async def is_available(self) -> bool:
        """Check if the backend answers its health probe.

        Returns:
            True if the probe returns 2xx, False otherwise
        """
        try:
            response = await self._client.get(self.config.health_path)
        except httpx.HTTPError:
            return False
        return response.is_success
