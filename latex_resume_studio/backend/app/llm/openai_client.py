# File: backend/app/llm/openai_client.py
"""OpenAI-compatible chat completions variant (Nebius token factory by default)."""
import logging

from app.llm.gateway import MALFORMED_REPLY_ERRORS, GenerationAuthError, GenerationError, post_json

logger = logging.getLogger(__name__)


class OpenAICompatibleClient:
    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.tokenfactory.nebius.com/v1/",
        model: str = "openai/gpt-oss-20b",
        timeout: float = 30.0,
        max_tokens: int = 4000,
    ):
        if not api_key:
            raise GenerationAuthError("OPENAI_API_KEY (or NEBIUS_API_KEY) environment variable not set")

        self.url = base_url.rstrip("/") + "/chat/completions"
        self.headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        self.model = model
        self.timeout = timeout
        self.max_tokens = max_tokens
        logger.info(f"Initialized OpenAICompatibleClient with model: {self.model}")

    async def generate(self, system_prompt: str, user_prompt: str) -> str:
        logger.info(f"Sending request to chat completions API with model: {self.model}")
        result = await post_json(
            "OpenAI-compatible",
            self.url,
            {
                "model": self.model,
                "messages": [
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                "temperature": 0.7,
                "max_tokens": self.max_tokens,
            },
            self.headers,
            self.timeout,
        )

        try:
            choices = result.get("choices") or [{}]
            content = (choices[0].get("message") or {}).get("content")
        except MALFORMED_REPLY_ERRORS as e:
            raise GenerationError(f"AI service returned a malformed response: {e}") from e
        if not isinstance(content, str) or not content:
            raise GenerationError("AI service returned empty response")
        logger.info(f"Received completion (first 100 chars): {content[:100]}...")
        return content
