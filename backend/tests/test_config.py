import pytest

from agent.director.config import AgentConfig, MissingCredentialError


def test_defaults():
    config = AgentConfig()

    assert config.default_llm_model == "anthropic/claude-3.5-sonnet"
    assert config.default_image_model == "fal-ai/flux-pro/v1.1"
    assert config.default_video_model == "fal-ai/kling-video/v1.5/pro/image-to-video"
    assert config.tts_model == "fal-ai/elevenlabs/tts/multilingual-v2"
    assert (config.max_iterations, config.max_tool_calls, config.history_limit) == (5, 10, 50)
    assert config.mock_generation is False


def test_from_env(monkeypatch):
    monkeypatch.setenv("DEFAULT_LLM_MODEL", "openai/gpt-4o")
    monkeypatch.setenv("DIRECTOR_MAX_TOOL_CALLS", "4")
    monkeypatch.setenv("DIRECTOR_MAX_ITERATIONS", "not-a-number")
    monkeypatch.setenv("OPENROUTER_API_KEY", ' "sk-or-123" ')
    monkeypatch.setenv("MOCK_GENERATION", "True")
    monkeypatch.delenv("FAL_KEY", raising=False)

    config = AgentConfig.from_env()

    assert config.default_llm_model == "openai/gpt-4o"
    assert config.max_tool_calls == 4
    assert config.max_iterations == 5
    assert config.credential("openrouter") == "sk-or-123"
    assert config.mock_generation is True


@pytest.mark.parametrize("provider", ["fal", "openrouter", "replicate"])
def test_missing_credential(provider):
    with pytest.raises(MissingCredentialError) as exc_info:
        AgentConfig().credential(provider)

    assert exc_info.value.provider == provider
