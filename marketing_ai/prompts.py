"""Prompt templates for the marketing actions.

Each action maps to a user-message template; the system message is a
fixed persona shared by every action and by free-form prompts.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .errors import InvalidAction
from .models import Action, Message

SYSTEM_PROMPT = "You are a helpful marketing assistant."

DEFAULT_CAPTION_COUNT = 5

CAPTION_PROMPT = (
    "Write {count} short Instagram captions for {product_name} in {tone} tone. "
    "Also return one image prompt and 10 hashtags. "
    "Respond in JSON with keys: captions (array), image_prompt, hashtags (array)."
)

HASHTAGS_PROMPT = (
    "Generate 30 relevant hashtags for {topic}. "
    "Group them in three groups of 10: broad reach, niche and community."
)

AUDIT_PROMPT = (
    "Perform a quick SEO/profile audit for this website: {website}. "
    "Provide top 5 issues and short fixes as JSON {{ issues: [{{title, fix}}], score: number }}"
)

MESSAGE_PROMPT = (
    "Write a professional message/email: {context}. "
    "Respond as JSON {{ subject, body }}"
)

POST_PROMPT = (
    "Create a short social media post for: {topic}. "
    "Provide caption and image prompt in JSON {{ caption, image_prompt }}"
)


@dataclass(frozen=True)
class PromptPair:
    """System and user message for one completion."""
    system: str
    user: str

    def to_messages(self) -> List[Message]:
        return [
            Message(role="system", content=self.system),
            Message(role="user", content=self.user),
        ]


def _text(payload: Dict[str, Any], key: str, default: str) -> str:
    """Payload value as text, falling back to `default` when missing or empty."""
    value = payload.get(key)
    if value is None or value == "":
        return default
    return str(value)


def _count(payload: Dict[str, Any]) -> int:
    value = payload.get("count")
    if isinstance(value, bool):
        return DEFAULT_CAPTION_COUNT
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return DEFAULT_CAPTION_COUNT


def _caption(payload: Dict[str, Any]) -> str:
    return CAPTION_PROMPT.format(
        count=_count(payload),
        product_name=_text(payload, "productName", "a product"),
        tone=_text(payload, "tone", "friendly"),
    )


def _hashtags(payload: Dict[str, Any]) -> str:
    return HASHTAGS_PROMPT.format(topic=_text(payload, "topic", "topic"))


def _audit(payload: Dict[str, Any]) -> str:
    return AUDIT_PROMPT.format(website=_text(payload, "website", "unknown"))


def _message(payload: Dict[str, Any]) -> str:
    return MESSAGE_PROMPT.format(context=_text(payload, "context", ""))


def _post(payload: Dict[str, Any]) -> str:
    return POST_PROMPT.format(topic=_text(payload, "topic", ""))


_BUILDERS = {
    Action.CAPTION: _caption,
    Action.HASHTAGS: _hashtags,
    Action.AUDIT: _audit,
    Action.MESSAGE: _message,
    Action.POST: _post,
}


def build_prompt(action: str, payload: Optional[Dict[str, Any]] = None) -> PromptPair:
    """
    Build the system/user messages for a marketing action.

    Raises:
        InvalidAction: if `action` is not one of the recognized actions.
    """
    try:
        builder = _BUILDERS[Action(action)]
    except (ValueError, KeyError):
        raise InvalidAction(action) from None

    return PromptPair(system=SYSTEM_PROMPT, user=builder(payload or {}))


def build_freeform_prompt(prompt: str) -> PromptPair:
    """Wrap a free-form user prompt with the marketing persona."""
    return PromptPair(system=SYSTEM_PROMPT, user=prompt.strip())
