"""Project evaluation against the external scoring model."""

import json
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError

from idol_agent.backend.models import EvaluationResult, fallback_evaluation
from idol_agent.config import EvaluationConfig, config
from idol_agent.lib.logger import configure_logger
from idol_agent.services.ai.prompts import format_evaluation_prompt

logger = configure_logger(__name__)


class EvaluationResponseError(ValueError):
    """Raised internally when the service answer does not carry a usable result."""

    pass


async def call_anthropic(
    client: httpx.AsyncClient,
    evaluation_config: EvaluationConfig,
    prompt: str,
) -> Dict[str, Any]:
    """Make a direct HTTP call to the Messages API.

    Args:
        client: HTTP client to send the request with
        evaluation_config: API location, credentials and model settings
        prompt: User prompt to send

    Returns:
        Decoded JSON body of the response
    """
    payload = {
        "model": evaluation_config.model,
        "max_tokens": evaluation_config.max_tokens,
        "messages": [{"role": "user", "content": prompt}],
    }
    headers = {
        "Content-Type": "application/json",
        "x-api-key": evaluation_config.api_key,
        "anthropic-version": evaluation_config.api_version,
    }

    logger.debug(f"Making evaluation API call to model: {payload['model']}")

    response = await client.post(
        evaluation_config.api_url,
        json=payload,
        headers=headers,
        timeout=evaluation_config.timeout_seconds,
    )
    response.raise_for_status()
    return response.json()


def parse_evaluation_response(
    body: Dict[str, Any], strict_breakdown: bool = False
) -> EvaluationResult:
    """Extract the evaluation JSON from a Messages API response body.

    Raises:
        EvaluationResponseError: if the body has no text content or the text
            is not a valid evaluation
    """
    content = body.get("content") if isinstance(body, dict) else None
    if not content or not isinstance(content, list):
        raise EvaluationResponseError("No content in evaluation response")

    first_block = content[0]
    text = first_block.get("text") if isinstance(first_block, dict) else None
    if not isinstance(text, str):
        raise EvaluationResponseError("Invalid text content in evaluation response")

    try:
        evaluation_json = json.loads(text)
    except json.JSONDecodeError as e:
        raise EvaluationResponseError(f"JSON decode error: {e}") from e

    if not isinstance(evaluation_json, dict):
        raise EvaluationResponseError("Evaluation JSON is not an object")

    try:
        result = EvaluationResult(**evaluation_json)
    except ValidationError as e:
        raise EvaluationResponseError(f"Pydantic validation error: {e}") from e

    if strict_breakdown and result.breakdown.total != result.score:
        raise EvaluationResponseError(
            f"Breakdown total {result.breakdown.total} does not match score {result.score}"
        )

    return result


class ProjectEvaluator:
    """Client for the evaluation service.

    ``evaluate`` never raises on service failure; any problem with the call or
    its answer yields the fixed fallback result. No retries happen here.
    """

    def __init__(
        self,
        evaluation_config: Optional[EvaluationConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = evaluation_config or config.evaluation
        self._client = client

    async def evaluate(
        self, name: str, description: str, github_url: str
    ) -> EvaluationResult:
        """Score a project from its name, description and repository URL."""
        prompt = format_evaluation_prompt(name, description, github_url)

        try:
            if self._client is not None:
                body = await call_anthropic(self._client, self.config, prompt)
            else:
                async with httpx.AsyncClient() as client:
                    body = await call_anthropic(client, self.config, prompt)

            result = parse_evaluation_response(
                body, strict_breakdown=self.config.strict_breakdown
            )
        except httpx.HTTPStatusError as e:
            logger.error(
                f"Evaluation API error: {e.response.status_code} {e.response.reason_phrase}",
                extra={"project_name": name, "event_type": "evaluation_fallback"},
            )
            return fallback_evaluation()
        except httpx.HTTPError as e:
            logger.error(
                f"Evaluation API request failed: {e!r}",
                extra={"project_name": name, "event_type": "evaluation_fallback"},
            )
            return fallback_evaluation()
        except ValueError as e:
            # non-JSON bodies and shape mismatches both land here
            logger.error(
                f"Invalid evaluation response: {e}",
                extra={"project_name": name, "event_type": "evaluation_fallback"},
            )
            return fallback_evaluation()
        except Exception as e:
            logger.error(
                f"Error evaluating project: {e}",
                extra={"project_name": name, "event_type": "evaluation_fallback"},
                exc_info=True,
            )
            return fallback_evaluation()

        logger.info(
            f"Successfully evaluated project {name}",
            extra={"project_name": name, "score": result.score},
        )
        return result
