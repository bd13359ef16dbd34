"""Service configuration."""

import os
from dataclasses import dataclass, field
from typing import List

from dotenv import load_dotenv

load_dotenv()


@dataclass
class Config:
    """Configuration loaded from environment variables."""

    # Server
    host: str = field(default_factory=lambda: os.getenv("MARKETING_HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: int(os.getenv("MARKETING_PORT", "8000")))
    cors_origins: List[str] = field(default_factory=lambda:
        [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()])

    # OpenAI
    openai_api_key: str = field(default_factory=lambda: os.getenv("OPENAI_API_KEY", ""), repr=False)
    openai_model: str = field(default_factory=lambda: os.getenv("OPENAI_MODEL", "gpt-3.5-turbo"))
    openai_url: str = field(default_factory=lambda:
        os.getenv("OPENAI_URL", "https://api.openai.com/v1/chat/completions"))
    temperature: float = field(default_factory=lambda: float(os.getenv("OPENAI_TEMPERATURE", "0.7")))
    max_tokens: int = field(default_factory=lambda: int(os.getenv("OPENAI_MAX_TOKENS", "400")))
    request_timeout: float = field(default_factory=lambda: float(os.getenv("OPENAI_TIMEOUT", "60")))

    # Retry policy
    max_retries: int = field(default_factory=lambda: int(os.getenv("COMPLETION_MAX_RETRIES", "4")))
    base_delay: float = field(default_factory=lambda: float(os.getenv("COMPLETION_BASE_DELAY", "0.6")))

    # Rate limiting
    rate_limit_window: float = field(default_factory=lambda: float(os.getenv("RATE_LIMIT_WINDOW", "60")))
    rate_limit_max: int = field(default_factory=lambda: int(os.getenv("RATE_LIMIT_MAX", "20")))

    @property
    def has_api_key(self) -> bool:
        """Whether an OpenAI credential is configured."""
        return bool(self.openai_api_key)


# Global config instance
config = Config()
