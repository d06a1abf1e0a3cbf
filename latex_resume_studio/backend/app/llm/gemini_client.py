# File: backend/app/llm/gemini_client.py
"""Gemini variant of the generation gateway (Google generative language API)."""
import logging
from typing import Any, Dict

from app.llm.gateway import MALFORMED_REPLY_ERRORS, GenerationAuthError, GenerationError, post_json

logger = logging.getLogger(__name__)


def _extract_text(data: Dict[str, Any]) -> str:
    """Concatenate the text parts of the first candidate."""
    candidates = data.get("candidates") or []
    if not candidates:
        return ""
    parts = candidates[0].get("content", {}).get("parts", [])
    # Thinking models emit thought parts flagged with "thought": true
    return "".join(p.get("text", "") for p in parts if not p.get("thought"))


class GeminiClient:
    def __init__(self, api_key: str, model: str = "gemini-2.0-flash", timeout: float = 30.0, max_tokens: int = 4000):
        if not api_key:
            raise GenerationAuthError("GEMINI_API_KEY environment variable not set")

        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.max_tokens = max_tokens
        self.base_url = "https://generativelanguage.googleapis.com/v1beta"
        logger.info(f"Initialized GeminiClient with model: {self.model}")

    def _endpoint(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent?key={self.api_key}"

    def _build_body(self, system_prompt: str, user_prompt: str) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "contents": [
                {"role": "user", "parts": [{"text": user_prompt}]},
            ],
            "generationConfig": {
                "maxOutputTokens": self.max_tokens,
                "temperature": 0.7,
            },
        }
        if system_prompt:
            body["systemInstruction"] = {"parts": [{"text": system_prompt}]}
        return body

    async def generate(self, system_prompt: str, user_prompt: str) -> str:
        logger.info(f"Sending request to Gemini API with model: {self.model}")
        data = await post_json(
            "Gemini",
            self._endpoint(),
            self._build_body(system_prompt, user_prompt),
            {"Content-Type": "application/json"},
            self.timeout,
        )

        try:
            text = _extract_text(data)
            finish = "" if text else (data.get("candidates") or [{}])[0].get("finishReason", "")
        except MALFORMED_REPLY_ERRORS as e:
            raise GenerationError(f"Gemini returned a malformed response: {e}") from e
        if not text:
            raise GenerationError(f"Gemini returned no text (finishReason={finish or 'unknown'})")
        logger.info(f"Received Gemini response (first 100 chars): {text[:100]}...")
        return text
