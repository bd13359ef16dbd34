"""
Marketing AI

Server-side relay between the marketing UI and the OpenAI chat
completions API.

Components:
- prompts: Action-to-prompt templates
- rate_limiter: Per-client fixed-window admission control
- completion_client: OpenAI client with retry/backoff
- normalizer: Best-effort JSON extraction from completions
- api: POST /api/ai request handler
"""

__version__ = "0.1.0"
