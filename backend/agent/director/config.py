from __future__ import annotations

import os
from dataclasses import dataclass


DEFAULT_LLM_MODEL = "anthropic/claude-3.5-sonnet"
DEFAULT_IMAGE_MODEL = "fal-ai/flux-pro/v1.1"
DEFAULT_VIDEO_MODEL = "fal-ai/kling-video/v1.5/pro/image-to-video"
DEFAULT_TTS_MODEL = "fal-ai/elevenlabs/tts/multilingual-v2"


class MissingCredentialError(RuntimeError):
    """Raised when a provider key is needed but not configured."""

    def __init__(self, provider: str):
        self.provider = provider
        super().__init__(f"No API key configured for provider: {provider}")


def _env_flag(name: str, default: str = "") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_secret(name: str) -> str | None:
    raw = os.getenv(name, "")
    value = raw.strip().strip('"').strip("'")
    return value or None


@dataclass(frozen=True)
class AgentConfig:
    """Settings handed to the director agent and its tool executor."""

    default_llm_model: str = DEFAULT_LLM_MODEL
    default_image_model: str = DEFAULT_IMAGE_MODEL
    default_video_model: str = DEFAULT_VIDEO_MODEL
    tts_model: str = DEFAULT_TTS_MODEL

    max_iterations: int = 5
    max_tool_calls: int = 10
    history_limit: int = 50
    temperature: float = 0.7
    max_tokens: int = 4096

    openrouter_api_key: str | None = None
    fal_api_key: str | None = None

    mock_generation: bool = False
    log_payloads: bool = False
    log_max_chars: int = 2000

    @classmethod
    def from_env(cls) -> AgentConfig:
        return cls(
            default_llm_model=os.getenv("DEFAULT_LLM_MODEL") or DEFAULT_LLM_MODEL,
            default_image_model=os.getenv("DEFAULT_IMAGE_MODEL") or DEFAULT_IMAGE_MODEL,
            default_video_model=os.getenv("DEFAULT_VIDEO_MODEL") or DEFAULT_VIDEO_MODEL,
            tts_model=os.getenv("TTS_MODEL") or DEFAULT_TTS_MODEL,
            max_iterations=_env_int("DIRECTOR_MAX_ITERATIONS", 5),
            max_tool_calls=_env_int("DIRECTOR_MAX_TOOL_CALLS", 10),
            history_limit=_env_int("DIRECTOR_HISTORY_LIMIT", 50),
            temperature=_env_float("DIRECTOR_TEMPERATURE", 0.7),
            max_tokens=_env_int("DIRECTOR_MAX_TOKENS", 4096),
            openrouter_api_key=_env_secret("OPENROUTER_API_KEY"),
            fal_api_key=_env_secret("FAL_KEY"),
            mock_generation=_env_flag("MOCK_GENERATION"),
            log_payloads=_env_flag("DIRECTOR_LOG_PAYLOADS"),
            log_max_chars=_env_int("DIRECTOR_LOG_MAX_CHARS", 2000),
        )

    def credential(self, provider: str) -> str:
        keys = {
            "openrouter": self.openrouter_api_key,
            "fal": self.fal_api_key,
        }
        key = keys.get(provider)
        if not key:
            raise MissingCredentialError(provider)
        return key
