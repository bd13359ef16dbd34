"""
Marketing assistant endpoint.

POST /api/ai accepts either
    {"action": "caption" | "hashtags" | "audit" | "message" | "post", "payload": {...}}
or the single-prompt form
    {"prompt": "..."}
and answers {"result": <structured | text>} (plus "raw" when the result
was parsed out of the model's text).
"""

import logging

import httpx
from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError

from .completion_client import CompletionClient, completion_client, extract_assistant_text
from .config import Config, config
from .errors import BadRequest, RateLimited, ServerMisconfigured, UpstreamError
from .models import AssistRequest
from .normalizer import normalize
from .prompts import build_freeform_prompt, build_prompt
from .rate_limiter import RateLimiter, client_id_from, limiter

logger = logging.getLogger(__name__)

router = APIRouter()


# =============================================================================
# Dependencies
# =============================================================================

def get_config() -> Config:
    return config


def get_rate_limiter() -> RateLimiter:
    return limiter


def get_completion_client() -> CompletionClient:
    return completion_client


async def _parse_body(request: Request) -> AssistRequest:
    try:
        body = await request.json()
    except ValueError:
        raise BadRequest("Invalid JSON body") from None

    if not isinstance(body, dict):
        raise BadRequest("Request body must be a JSON object")

    try:
        return AssistRequest.model_validate(body)
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        raise BadRequest(f"Invalid request fields: {fields}") from None


@router.post("/api/ai")
async def assist(
    request: Request,
    settings: Config = Depends(get_config),
    rate_limiter: RateLimiter = Depends(get_rate_limiter),
    client: CompletionClient = Depends(get_completion_client),
):
    """
    Generate marketing content for one action or free-form prompt.

    Steps run strictly in order; nothing before the completion call is retried:
    1. Validate the body (action or prompt required)
    2. Check the OpenAI credential is configured
    3. Admit the caller through the rate limiter
    4. Build the prompt (unknown actions rejected)
    5. Call the completion service (retries happen inside the client)
    6. Normalize the assistant text into the response
    """
    body = await _parse_body(request)

    action = (body.action or "").strip()
    prompt = (body.prompt or "").strip()
    if not action and not prompt:
        raise BadRequest("Missing action")

    if not settings.has_api_key:
        logger.error("OPENAI_API_KEY not configured")
        raise ServerMisconfigured("OPENAI_API_KEY not configured")

    client_id = client_id_from(request)
    admission = await rate_limiter.admit(client_id)
    if not admission.allowed:
        raise RateLimited(admission.retry_after)

    if action:
        pair = build_prompt(action, body.payload)
    else:
        pair = build_freeform_prompt(prompt)

    completion_request = client.build_request(pair.to_messages())
    logger.info(f"Completion: client={client_id}, action={action or 'prompt'}, "
                f"model={completion_request.model}")

    try:
        result = await client.complete(completion_request, settings.openai_api_key)
    except httpx.TransportError as e:
        raise UpstreamError(None, type(e).__name__, error="Completion service unavailable") from None

    if not result.ok:
        logger.warning(f"Completion failed: status={result.status_code}, retries={result.retries}")
        raise UpstreamError(result.status_code, result.body, result.retry_after)

    try:
        text = extract_assistant_text(result.envelope())
    except ValueError:
        logger.error("Completion service returned a malformed envelope")
        raise UpstreamError(result.status_code, result.body[:500],
                            error="Malformed response from completion service") from None

    return normalize(text).to_response()
