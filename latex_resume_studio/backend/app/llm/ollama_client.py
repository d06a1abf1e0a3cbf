# File: backend/app/llm/ollama_client.py
import logging

from app.llm.gateway import MALFORMED_REPLY_ERRORS, GenerationError, post_json

logger = logging.getLogger(__name__)

class OllamaClient:
    def __init__(self, base_url: str = "http://localhost:11434", model: str = "llama3:8b", timeout: float = 30.0):
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout

    async def generate(self, system_prompt: str, user_prompt: str) -> str:
        """Send a request to the Ollama API."""
        result = await post_json(
            "Ollama",
            f"{self.base_url}/api/generate",
            {
                "model": self.model,
                "system": system_prompt,
                "prompt": user_prompt,
                "stream": False
            },
            {"Content-Type": "application/json"},
            self.timeout,
        )

        try:
            text = result.get("response", "")
        except MALFORMED_REPLY_ERRORS as e:
            raise GenerationError(f"Ollama returned a malformed response: {e}") from e
        if not isinstance(text, str):
            raise GenerationError("Ollama returned a non-text response")
        if not text:
            raise GenerationError("Ollama returned an empty response")
        return text
