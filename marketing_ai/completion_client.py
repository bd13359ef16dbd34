"""OpenAI chat completions client with retry and backoff."""

import asyncio
import json
import logging
import math
import random
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

from .config import Config, config
from .models import CompletionRequest

logger = logging.getLogger(__name__)

# Upper bounds of the random jitter added to each backoff delay, in seconds.
RATE_LIMIT_JITTER = 0.3
SERVER_ERROR_JITTER = 0.2

DIAGNOSTIC_HEADERS = ("retry-after", "x-ratelimit-remaining-requests")


@dataclass
class CompletionResult:
    """Final response of a completion call, after retries."""
    status_code: int
    body: str = ""
    retry_after: Optional[str] = None
    attempts: int = 1
    delays: List[float] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def retries(self) -> int:
        return self.attempts - 1

    def envelope(self) -> Dict[str, Any]:
        """
        Decode the provider's JSON envelope.

        Raises:
            ValueError: if the body is not a JSON object.
        """
        data = json.loads(self.body)
        if not isinstance(data, dict):
            raise ValueError("Completion envelope is not a JSON object")
        return data


def extract_assistant_text(envelope: Dict[str, Any]) -> str:
    """
    Pull the first candidate's text out of a chat completions envelope.

    Raises:
        ValueError: if `choices` is present but not a list.
    """
    choices = envelope.get("choices") or []
    if not isinstance(choices, list):
        raise ValueError("Completion envelope choices is not a list")
    if not choices or not isinstance(choices[0], dict):
        return ""

    choice = choices[0]
    message = choice.get("message") or {}
    content = message.get("content") if isinstance(message, dict) else None
    if content is None:
        content = choice.get("text")
    return content if isinstance(content, str) else ""


def _retry_after_seconds(value: Optional[str]) -> Optional[float]:
    """Parse a numeric Retry-After header; HTTP dates are ignored."""
    if not value:
        return None
    try:
        seconds = float(value)
    except ValueError:
        return None
    if not math.isfinite(seconds) or seconds < 0:
        return None
    return seconds


class CompletionClient:
    """
    Async client for the OpenAI chat completions endpoint.

    Handles:
    - 429: exponential backoff honouring Retry-After, last response returned as-is
    - 5xx and transport errors: exponential backoff, bounded attempts
    - other non-2xx: returned immediately
    """

    def __init__(
        self,
        settings: Config = config,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        jitter: Callable[[float], float] = lambda upper: random.uniform(0, upper),
    ):
        self.settings = settings
        self.url = settings.openai_url
        self.max_retries = settings.max_retries
        self.base_delay = settings.base_delay
        self.client = httpx.AsyncClient(
            timeout=httpx.Timeout(settings.request_timeout, connect=10.0),
            transport=transport,
        )
        self._sleep = sleep
        self._jitter = jitter

    async def close(self):
        """Close HTTP client."""
        await self.client.aclose()

    def build_request(self, messages, model: Optional[str] = None) -> CompletionRequest:
        return CompletionRequest(
            model=model or self.settings.openai_model,
            messages=messages,
            temperature=self.settings.temperature,
            max_tokens=self.settings.max_tokens,
        )

    async def complete(self, request: CompletionRequest, api_key: str) -> CompletionResult:
        """
        Send a completion request, retrying transient failures.

        Ordinary HTTP failures are returned as a non-ok CompletionResult.
        Only transport errors on the final attempt are raised.
        """
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {api_key}",
        }
        payload = request.model_dump(exclude_none=True)
        delays: List[float] = []

        for attempt in range(self.max_retries + 1):
            last_attempt = attempt == self.max_retries

            try:
                response = await self.client.post(self.url, json=payload, headers=headers)
            except httpx.TransportError as e:
                if last_attempt:
                    logger.error(f"Completion transport error after {attempt + 1} attempts: {e}")
                    raise
                delay = self.base_delay * (2 ** attempt) + self._jitter(SERVER_ERROR_JITTER)
                logger.warning(f"Completion transport error: {e}; retrying in {delay:.2f}s "
                               f"(attempt {attempt + 1}/{self.max_retries + 1})")
                delays.append(delay)
                await self._sleep(delay)
                continue

            self._log_diagnostics(response)
            status = response.status_code
            retry_after = response.headers.get("retry-after")

            if 200 <= status < 300:
                return self._result(response, attempt, delays)

            if status == 429:
                if last_attempt:
                    logger.error(f"Completion still rate limited after {attempt + 1} attempts")
                    return self._result(response, attempt, delays)
                delay = self.base_delay * (2 ** attempt)
                hinted = _retry_after_seconds(retry_after)
                if hinted is not None:
                    delay = max(delay, hinted)
                delay += self._jitter(RATE_LIMIT_JITTER)

            elif 500 <= status < 600 and not last_attempt:
                delay = self.base_delay * (2 ** attempt) + self._jitter(SERVER_ERROR_JITTER)

            else:
                return self._result(response, attempt, delays)

            logger.warning(f"Completion returned {status}; retrying in {delay:.2f}s "
                           f"(attempt {attempt + 1}/{self.max_retries + 1})")
            delays.append(delay)
            await self._sleep(delay)

        # Unreachable: the final attempt always returns or raises above.
        raise RuntimeError("Completion retry loop exited without a result")

    def _result(self, response: httpx.Response, attempt: int, delays: List[float]) -> CompletionResult:
        return CompletionResult(
            status_code=response.status_code,
            body=response.text,
            retry_after=response.headers.get("retry-after"),
            attempts=attempt + 1,
            delays=delays,
        )

    def _log_diagnostics(self, response: httpx.Response):
        """Log status and rate-limit headers of one attempt."""
        try:
            info = {"status": response.status_code}
            for name in DIAGNOSTIC_HEADERS:
                info[name] = response.headers.get(name)
            logger.info(f"OpenAI response: {info}")
        except Exception as e:
            logger.debug(f"Could not read diagnostic headers: {e}")


# Global instance
completion_client = CompletionClient()
