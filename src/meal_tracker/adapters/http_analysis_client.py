"""HTTP client for the calculate-calories edge function."""

from collections.abc import Callable
from dataclasses import dataclass

import httpx

from meal_tracker.domain.errors import DecodeFailedError, TransportFailedError
from meal_tracker.services.dispatcher import AnalysisClient


@dataclass
class HttpxAnalysisClient(AnalysisClient):
    """HTTPX-backed client for the nutrition analysis endpoint."""

    url: str
    api_key: str
    http_client: httpx.AsyncClient
    timeout: float = 120.0
    access_token: Callable[[], str | None] | None = None

    @classmethod
    def create(
        cls,
        url: str,
        api_key: str,
        timeout: float = 120.0,
        access_token: Callable[[], str | None] | None = None,
    ) -> "HttpxAnalysisClient":
        """Create an analysis client with a managed httpx session."""
        return cls(
            url=url,
            api_key=api_key,
            http_client=httpx.AsyncClient(),
            timeout=timeout,
            access_token=access_token,
        )

    async def analyze(self, transcript: str, user_id: str) -> dict[str, object]:
        """Post a meal description and return the response body."""
        try:
            response = await self.http_client.post(
                self.url,
                json={"transcribed_meal": transcript, "user_id": user_id},
                headers=self._headers(),
                timeout=self.timeout,
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise TransportFailedError(f"Analysis request failed: {exc}") from exc
        try:
            body = response.json()
        except ValueError as exc:
            raise DecodeFailedError("Analysis response is not JSON") from exc
        if not isinstance(body, dict):
            raise DecodeFailedError("Analysis response is not a JSON object")
        return body

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()

    def _headers(self) -> dict[str, str]:
        token = self.access_token() if self.access_token else None
        return {
            "apikey": self.api_key,
            "Authorization": f"Bearer {token or self.api_key}",
        }
