# File: backend/app/llm/claude_client.py
import logging

from app.llm.gateway import MALFORMED_REPLY_ERRORS, GenerationAuthError, GenerationError, post_json

logger = logging.getLogger(__name__)

class ClaudeClient:
    def __init__(self, api_key: str, model: str, timeout: float = 30.0, max_tokens: int = 4000):
        if not api_key:
            raise GenerationAuthError("ANTHROPIC_API_KEY environment variable not set")

        self.base_url = "https://api.anthropic.com/v1/messages"
        self.headers = {
            "x-api-key": api_key,
            "anthropic-version": "2023-06-01",
            "content-type": "application/json"
        }
        self.model = model
        self.timeout = timeout
        self.max_tokens = max_tokens
        logger.info(f"Initialized ClaudeClient with model: {self.model}")

    async def generate(self, system_prompt: str, user_prompt: str) -> str:
        """Send one system/user prompt pair to the Claude messages API."""
        logger.info(f"Sending request to Claude API with model: {self.model}")
        result = await post_json(
            "Claude",
            self.base_url,
            {
                "model": self.model,
                "system": system_prompt,
                "messages": [
                    {
                        "role": "user",
                        "content": user_prompt
                    }
                ],
                "max_tokens": self.max_tokens
            },
            self.headers,
            self.timeout,
        )

        try:
            blocks = result.get("content") or []
            content = "".join(b.get("text", "") for b in blocks if b.get("type") == "text")
        except MALFORMED_REPLY_ERRORS as e:
            raise GenerationError(f"Claude returned a malformed response: {e}") from e
        if not content:
            raise GenerationError("Claude returned an empty response")
        logger.info(f"Received response from Claude API (first 100 chars): {content[:100]}...")
        return content
