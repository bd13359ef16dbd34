"""Data models for the marketing assistant."""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel


# ============================================================================
# Inbound Request Models
# ============================================================================

class Action(str, Enum):
    """Marketing action selecting a prompt template."""
    CAPTION = "caption"
    HASHTAGS = "hashtags"
    AUDIT = "audit"
    MESSAGE = "message"
    POST = "post"


class AssistRequest(BaseModel):
    """Body of POST /api/ai.

    Either `action` (with an optional action-specific `payload`) or a
    free-form `prompt` must be supplied.
    """
    action: Optional[str] = None
    payload: Optional[Dict[str, Any]] = None
    prompt: Optional[str] = None


# ============================================================================
# Outbound (OpenAI Chat Completions) Models
# ============================================================================

class Message(BaseModel):
    """Chat message format."""
    role: str
    content: str


class CompletionRequest(BaseModel):
    """Chat completion request sent to the provider."""
    model: str
    messages: List[Message]
    temperature: float = 0.7
    max_tokens: Optional[int] = None
