from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any

from autogen import LLMConfig

DEFAULT_CHAT_MODEL = "gpt-4o-mini"


@dataclass(frozen=True, slots=True)
class OpenAICompatibleSettings:
    """Where the narrator (and scene art) requests go.

    Sampling defaults are shared by every narrator request.
    """

    model: str
    base_url: str | None
    api_key: str | None
    temperature: float = 0.85
    top_p: float = 0.95

    def resolved_api_key(self) -> str:
        # Local OpenAI-compatible servers ignore the key, but the client insists on one.
        key = self.api_key or ("ollama" if self.base_url else None)
        if not key:
            raise RuntimeError(
                "Set OPENAI_API_KEY for hosted OpenAI, or OPENAI_BASE_URL for a local OpenAI-compatible server"
            )
        return key


def settings_from_env(*, default_model: str = DEFAULT_CHAT_MODEL) -> OpenAICompatibleSettings:
    return OpenAICompatibleSettings(
        model=os.environ.get("OPENAI_MODEL", default_model),
        # For Ollama, typically http://127.0.0.1:11434/v1
        base_url=os.environ.get("OPENAI_BASE_URL") or None,
        api_key=os.environ.get("OPENAI_API_KEY") or None,
    )


def llm_config_for(s: OpenAICompatibleSettings) -> LLMConfig:
    entry: dict[str, Any] = {
        "model": s.model,
        "api_key": s.resolved_api_key(),
        "temperature": s.temperature,
        "top_p": s.top_p,
    }
    if s.base_url:
        entry["base_url"] = s.base_url
    return LLMConfig(config_list=[entry])
