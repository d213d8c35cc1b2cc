"""AI extraction collaborator.

The AI service is optional. Every failure is reported as an
AiExtractionError so the review workflow can fall back to heuristic-only
suggestions and show a dismissible notice.
"""

from abc import ABC, abstractmethod
from typing import Sequence

import httpx
from pydantic import ValidationError

from loresuggest.config import AiConfig
from loresuggest.errors import AiExtractionError, AiUnavailableError
from loresuggest.logging import setup_logging
from loresuggest.models import AiExtractionResult, RecordSummary

SUBSCRIPTION_REQUIRED_CODE = "AI_SUBSCRIPTION_REQUIRED"


class AiExtractorInterface(ABC):
    """Extract entities and relationships from session text with an AI model."""

    @abstractmethod
    async def extract(
        self,
        team_id: str,
        content: str,
        records: Sequence[RecordSummary] = (),
    ) -> AiExtractionResult:
        """Return entities and relationships found in content.

        Raises:
            AiUnavailableError: AI features are not enabled for the team.
            AiExtractionError: any other failure.
        """


class HttpAiExtractor(AiExtractorInterface):
    """Calls POST {base_url}/api/teams/{team_id}/extract-entities.

    The server looks up existing records itself, so `records` is not sent.
    """

    def __init__(
        self,
        config: AiConfig | None = None,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config or AiConfig()
        self.headers = dict(headers or {})
        self._transport = transport
        self.logger = setup_logging()

    def _url(self, team_id: str) -> str:
        return f"{self.config.base_url.rstrip('/')}/api/teams/{team_id}/extract-entities"

    async def extract(
        self,
        team_id: str,
        content: str,
        records: Sequence[RecordSummary] = (),
    ) -> AiExtractionResult:
        if not content.strip():
            return AiExtractionResult()
        url = self._url(team_id)
        try:
            async with httpx.AsyncClient(
                timeout=self.config.timeout,
                headers=self.headers,
                transport=self._transport,
            ) as client:
                response = await client.post(url, json={"content": content})
        except httpx.HTTPError as e:
            self.logger.warning({"message": "AI extraction request failed", "url": url, "error": str(e)})
            raise AiExtractionError(f"AI extraction request failed: {e}") from e

        if response.status_code == 403 and self._error_code(response) == SUBSCRIPTION_REQUIRED_CODE:
            raise AiUnavailableError("AI features require a subscription")
        if response.is_error:
            self.logger.warning(
                {"message": "AI extraction returned an error", "url": url, "status": response.status_code}
            )
            raise AiExtractionError(f"AI extraction failed with HTTP {response.status_code}")

        try:
            result = AiExtractionResult.model_validate_json(response.content)
        except ValidationError as e:
            raise AiExtractionError(f"Unexpected AI extraction payload: {e.error_count()} error(s)") from e
        self.logger.debug(
            {"message": "AI extraction finished", "entities": len(result.entities), "relationships": len(result.relationships)}
        )
        return result

    @staticmethod
    def _error_code(response: httpx.Response) -> str | None:
        try:
            body = response.json()
        except ValueError:
            return None
        return body.get("code") if isinstance(body, dict) else None
