"""Configuration management for generation providers and settings."""

import os
from typing import Optional
from pathlib import Path

from dotenv import load_dotenv

# config.py is in diagram_backend/, .env is in project root
env_path = Path(__file__).parent.parent / ".env"
load_dotenv(env_path)


def _int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


def _float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except ValueError:
        return default


class Config:
    """Application configuration from environment variables."""

    # Generation provider: "worker", "ollama" or "gemini"
    GENERATION_PROVIDER: str = os.getenv("GENERATION_PROVIDER", "worker").strip().lower()
    GENERATION_URL: str = os.getenv("GENERATION_URL", "http://127.0.0.1:8787/generate")
    GENERATION_TIMEOUT_SECONDS: float = _float("GENERATION_TIMEOUT_SECONDS", 90)
    GENERATION_MAX_CONCURRENCY: int = _int("GENERATION_MAX_CONCURRENCY", 1)

    # Utterances shorter than this are not worth a generation request
    MIN_UTTERANCE_WORDS: int = _int("MIN_UTTERANCE_WORDS", 3)

    # Ollama settings (no API key needed, it's local)
    OLLAMA_URL: str = os.getenv("OLLAMA_URL", "http://127.0.0.1:11434")
    OLLAMA_MODEL: str = os.getenv("OLLAMA_MODEL", "gemma3:4b")

    # Gemini settings
    GEMINI_API_KEY: Optional[str] = os.getenv("GEMINI_API_KEY")
    GEMINI_MODEL: str = os.getenv("GEMINI_MODEL", "gemini-2.0-flash")
    GEMINI_BASE_URL: str = os.getenv("GEMINI_BASE_URL", "https://generativelanguage.googleapis.com")

    # Transcription websocket
    TRANSCRIPT_WS_URL: str = os.getenv("TRANSCRIPT_WS_URL", "ws://127.0.0.1:8799")

    # Placement of applied content
    APPLY_GAP: float = _float("APPLY_GAP", 200)
    APPLY_START_Y: float = _float("APPLY_START_Y", 100)

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    @classmethod
    def validate(cls) -> list[str]:
        """Validate configuration and return list of problems."""
        problems = []

        if cls.GENERATION_PROVIDER not in ("worker", "ollama", "gemini"):
            problems.append(f"GENERATION_PROVIDER must be worker, ollama or gemini (got '{cls.GENERATION_PROVIDER}')")
        if cls.GENERATION_PROVIDER == "gemini" and not cls.GEMINI_API_KEY:
            problems.append("GEMINI_API_KEY (required when GENERATION_PROVIDER=gemini)")
        if cls.GENERATION_MAX_CONCURRENCY < 1:
            problems.append("GENERATION_MAX_CONCURRENCY must be at least 1")
        if cls.MIN_UTTERANCE_WORDS < 0:
            problems.append("MIN_UTTERANCE_WORDS must not be negative")

        return problems
