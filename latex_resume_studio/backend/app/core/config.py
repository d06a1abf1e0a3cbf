# File: backend/app/core/config.py
import os
from dotenv import load_dotenv

load_dotenv()

class Settings:
    PROJECT_NAME: str = "LaTeX Resume Studio API"
    PROJECT_VERSION: str = "0.1.0"

    # Database settings
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./latex_resume_studio.db")

    # Generation gateway: "openai", "claude", "gemini" or "ollama"
    GENERATION_PROVIDER: str = os.getenv("GENERATION_PROVIDER", "openai").lower()
    GENERATION_TIMEOUT_SECONDS: float = float(os.getenv("GENERATION_TIMEOUT_SECONDS", "30"))
    GENERATION_DELAY_SECONDS: float = float(os.getenv("GENERATION_DELAY_SECONDS", "1.0"))
    GENERATION_MAX_TOKENS: int = int(os.getenv("GENERATION_MAX_TOKENS", "4000"))

    # OpenAI-compatible settings (Nebius token factory by default)
    OPENAI_BASE_URL: str = os.getenv("OPENAI_BASE_URL", "https://api.tokenfactory.nebius.com/v1/")
    OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", os.getenv("NEBIUS_API_KEY", ""))
    OPENAI_MODEL: str = os.getenv("OPENAI_MODEL", "openai/gpt-oss-20b")

    # Claude API settings
    ANTHROPIC_API_KEY: str = os.getenv("ANTHROPIC_API_KEY", "")
    ANTHROPIC_MODEL: str = os.getenv("ANTHROPIC_MODEL", "claude-3-sonnet-20240229")

    # Gemini API settings
    GEMINI_API_KEY: str = os.getenv("GEMINI_API_KEY", "")
    GEMINI_MODEL: str = os.getenv("GEMINI_MODEL", "gemini-2.0-flash")

    # Ollama settings
    OLLAMA_BASE_URL: str = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")
    OLLAMA_MODEL: str = os.getenv("OLLAMA_MODEL", "llama3:8b")

    # CORS settings
    CORS_ORIGINS: list = os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

settings = Settings()
