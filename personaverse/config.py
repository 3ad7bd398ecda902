"""
Personaverse Configuration

Loads configuration from environment variables with sensible defaults.
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load .env file if it exists
load_dotenv()


class Config:
    """Application configuration loaded from environment variables."""

    # Oracle (language model) configuration
    LLM_PROVIDER: str = os.getenv("LLM_PROVIDER", "openai")
    LLM_MODEL: str = os.getenv("LLM_MODEL", "gpt-4o-mini")
    ORACLE_RETRY_BUDGET: int = int(os.getenv("ORACLE_RETRY_BUDGET", "3"))
    LLM_TIMEOUT_SECONDS: float = float(os.getenv("LLM_TIMEOUT_SECONDS", "120"))

    # API Keys
    ANTHROPIC_API_KEY: str | None = os.getenv("ANTHROPIC_API_KEY")
    OPENAI_API_KEY: str | None = os.getenv("OPENAI_API_KEY")

    # Ollama server used when LLM_PROVIDER or EMBEDDING_PROVIDER is "ollama"
    OLLAMA_BASE_URL: str = os.getenv("OLLAMA_BASE_URL", "http://127.0.0.1:11434")

    # Embeddings
    EMBEDDING_PROVIDER: str = os.getenv("EMBEDDING_PROVIDER", "openai")
    EMBEDDING_MODEL: str = os.getenv("EMBEDDING_MODEL", "text-embedding-3-small")
    # OpenAI-compatible endpoint; point it at a local server to avoid the hosted API
    EMBEDDING_BASE_URL: str = os.getenv("EMBEDDING_BASE_URL", "https://api.openai.com")

    # Simulation Configuration
    SEC_PER_STEP: int = int(os.getenv("SEC_PER_STEP", "10"))
    DEFAULT_STEP_COUNT: int = int(os.getenv("DEFAULT_STEP_COUNT", "50"))

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Project Paths
    PROJECT_ROOT: Path = Path(__file__).parent.parent
    STORAGE_DIR: Path = Path(os.getenv("STORAGE_DIR", str(PROJECT_ROOT / "storage")))

    @classmethod
    def validate(cls) -> None:
        """Validate configuration and raise errors if required values are missing."""
        if cls.ORACLE_RETRY_BUDGET < 1:
            raise ValueError("ORACLE_RETRY_BUDGET must be at least 1")

        if cls.LLM_PROVIDER == "anthropic" and not cls.ANTHROPIC_API_KEY:
            raise ValueError(
                "ANTHROPIC_API_KEY is required when using the 'anthropic' provider"
            )

        if cls.LLM_PROVIDER == "openai" and not cls.OPENAI_API_KEY:
            raise ValueError(
                "OPENAI_API_KEY is required when using the 'openai' provider. "
                "For local models, set LLM_PROVIDER=ollama instead."
            )

        if cls.EMBEDDING_PROVIDER not in ("openai", "ollama"):
            raise ValueError(
                f"Unknown EMBEDDING_PROVIDER {cls.EMBEDDING_PROVIDER!r}; expected 'openai' or 'ollama'"
            )

        hosted_embeddings = cls.EMBEDDING_BASE_URL.startswith("https://api.openai.com")
        if cls.EMBEDDING_PROVIDER == "openai" and hosted_embeddings and not cls.OPENAI_API_KEY:
            raise ValueError(
                "OPENAI_API_KEY is required for hosted OpenAI embeddings. "
                "Set EMBEDDING_BASE_URL to a local OpenAI-compatible server or use EMBEDDING_PROVIDER=ollama."
            )

    @classmethod
    def display(cls) -> str:
        """Return a formatted string showing current configuration."""
        lines = [
            "Personaverse Configuration:",
            f"  LLM Provider: {cls.LLM_PROVIDER}",
            f"  LLM Model: {cls.LLM_MODEL}",
            f"  Oracle Retry Budget: {cls.ORACLE_RETRY_BUDGET}",
            f"  Embeddings: {cls.EMBEDDING_PROVIDER} ({cls.EMBEDDING_MODEL})",
            f"  Storage: {cls.STORAGE_DIR}",
            f"  Seconds per Step: {cls.SEC_PER_STEP}s",
        ]
        return "\n".join(lines)
