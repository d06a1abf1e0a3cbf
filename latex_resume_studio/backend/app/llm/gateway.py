# File: backend/app/llm/gateway.py
"""
Generation gateway contract and provider selection.

Every provider client exposes:

    async generate(system_prompt: str, user_prompt: str) -> str

and raises only GenerationError subclasses, so the job orchestrator never
sees provider-specific HTTP details.
"""
import logging
from typing import Protocol

import httpx

logger = logging.getLogger(__name__)


class GenerationError(Exception):
    """The provider produced no usable output."""


class GenerationTimeout(GenerationError):
    pass


class GenerationAuthError(GenerationError):
    pass


class GenerationQuotaError(GenerationError):
    pass


class GenerationGateway(Protocol):
    async def generate(self, system_prompt: str, user_prompt: str) -> str:
        ...


def raise_for_provider_status(provider: str, response: httpx.Response) -> None:
    """Map a non-200 provider response onto the gateway error types."""
    if response.status_code == 200:
        return
    detail = response.text[:500]
    logger.error(f"{provider} API request failed with status code {response.status_code}: {detail}")
    if response.status_code in (401, 403):
        raise GenerationAuthError(f"{provider} rejected the credentials ({response.status_code})")
    if response.status_code == 429:
        raise GenerationQuotaError(f"{provider} rate limit or quota exceeded")
    if response.status_code in (408, 504):
        raise GenerationTimeout(f"{provider} timed out ({response.status_code})")
    raise GenerationError(f"{provider} API request failed with status code {response.status_code}: {detail}")


async def post_json(provider: str, url: str, payload: dict, headers: dict, timeout: float) -> dict:
    """POST a JSON body and return the decoded response, with errors mapped."""
    try:
        async with httpx.AsyncClient() as client:
            response = await client.post(url, json=payload, headers=headers, timeout=timeout)
    except httpx.TimeoutException as e:
        raise GenerationTimeout(f"{provider} request timed out after {timeout}s") from e
    except httpx.HTTPError as e:
        raise GenerationError(f"{provider} request failed: {e}") from e

    raise_for_provider_status(provider, response)
    try:
        data = response.json()
    except ValueError as e:
        raise GenerationError(f"{provider} returned a non-JSON body") from e
    if not isinstance(data, dict):
        raise GenerationError(f"{provider} returned a JSON {type(data).__name__}, expected an object")
    return data


# What indexing into a reply of the wrong structure raises
MALFORMED_REPLY_ERRORS = (AttributeError, KeyError, IndexError, TypeError)


def build_generation_gateway(settings) -> GenerationGateway:
    """Construct the configured provider once, at process start."""
    provider = settings.GENERATION_PROVIDER

    if provider == "openai":
        from app.llm.openai_client import OpenAICompatibleClient
        return OpenAICompatibleClient(
            api_key=settings.OPENAI_API_KEY,
            base_url=settings.OPENAI_BASE_URL,
            model=settings.OPENAI_MODEL,
            timeout=settings.GENERATION_TIMEOUT_SECONDS,
            max_tokens=settings.GENERATION_MAX_TOKENS,
        )
    if provider == "claude":
        from app.llm.claude_client import ClaudeClient
        return ClaudeClient(
            api_key=settings.ANTHROPIC_API_KEY,
            model=settings.ANTHROPIC_MODEL,
            timeout=settings.GENERATION_TIMEOUT_SECONDS,
            max_tokens=settings.GENERATION_MAX_TOKENS,
        )
    if provider == "gemini":
        from app.llm.gemini_client import GeminiClient
        return GeminiClient(
            api_key=settings.GEMINI_API_KEY,
            model=settings.GEMINI_MODEL,
            timeout=settings.GENERATION_TIMEOUT_SECONDS,
            max_tokens=settings.GENERATION_MAX_TOKENS,
        )
    if provider == "ollama":
        from app.llm.ollama_client import OllamaClient
        return OllamaClient(
            base_url=settings.OLLAMA_BASE_URL,
            model=settings.OLLAMA_MODEL,
            timeout=settings.GENERATION_TIMEOUT_SECONDS,
        )

    raise ValueError(f"Unknown GENERATION_PROVIDER: {provider}")
