"""Turn free-form completion text into structured data when possible."""

import json
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

# Greedy: first "{" to last "}" across lines.
_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


@dataclass(frozen=True)
class NormalizedResult:
    """
    Either structured data with the raw text it came from, or plain text.

    `structured` may legitimately be None (the model answered `null`), so
    `is_structured` is what tells the two variants apart.
    """
    structured: Any = None
    raw: Optional[str] = None
    text: Optional[str] = None

    @property
    def is_structured(self) -> bool:
        return self.raw is not None

    def to_response(self) -> Dict[str, Any]:
        if self.is_structured:
            return {"result": self.structured, "raw": self.raw}
        return {"result": self.text}


def normalize(text: str) -> NormalizedResult:
    """
    Parse model output as JSON, tolerating prose or code fences around it.

    Strategy:
    1. Try json.loads on the whole text
    2. Fallback to the greedy {...} substring
    3. Return the text unparsed

    NEVER throws.
    """
    text = text or ""

    try:
        return NormalizedResult(structured=json.loads(text), raw=text)
    except ValueError:
        pass

    match = _JSON_OBJECT.search(text)
    if match:
        try:
            return NormalizedResult(structured=json.loads(match.group(0)), raw=text)
        except ValueError:
            pass

    return NormalizedResult(text=text)
