"""
Model platforms and the built-in model catalogue.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class ModelPlatform(str, Enum):
    """API platforms Claude Code can be pointed at."""

    ANTHROPIC = "anthropic"
    OPENROUTER = "openrouter"
    SILICONFLOW = "siliconflow"
    VOLCANO = "volcano"
    ZAI = "zai"
    ZHIPU = "zhipu"
    GPTPROTO = "gptproto"

    @property
    def base_url(self) -> Optional[str]:
        """Base URL to write into the settings; None for the default endpoint."""
        return _BASE_URLS[self]

    @property
    def label(self) -> str:
        return _LABELS[self]

    @classmethod
    def detect(cls, base_url: Optional[str]) -> "ModelPlatform":
        """Guess the platform from a configured base URL."""
        if not base_url:
            return cls.ANTHROPIC
        for marker, platform in _URL_MARKERS:
            if marker in base_url:
                return platform
        return cls.ANTHROPIC


_BASE_URLS: dict[ModelPlatform, Optional[str]] = {
    ModelPlatform.ANTHROPIC: None,
    ModelPlatform.OPENROUTER: "https://openrouter.ai/api",
    ModelPlatform.SILICONFLOW: "https://api.siliconflow.cn/v1",
    ModelPlatform.VOLCANO: "https://ark.cn-beijing.volces.com/api/v3",
    ModelPlatform.ZAI: "https://api.z.ai/api/anthropic",
    ModelPlatform.ZHIPU: "https://open.bigmodel.cn/api/anthropic",
    ModelPlatform.GPTPROTO: "https://gptproto.com",
}

_LABELS: dict[ModelPlatform, str] = {
    ModelPlatform.ANTHROPIC: "Anthropic",
    ModelPlatform.OPENROUTER: "OpenRouter",
    ModelPlatform.SILICONFLOW: "SiliconFlow",
    ModelPlatform.VOLCANO: "Volcano",
    ModelPlatform.ZAI: "Z.ai",
    ModelPlatform.ZHIPU: "Zhipu AI",
    ModelPlatform.GPTPROTO: "GPTProto",
}

_URL_MARKERS: list[tuple[str, ModelPlatform]] = [
    ("openrouter", ModelPlatform.OPENROUTER),
    ("siliconflow", ModelPlatform.SILICONFLOW),
    ("volces", ModelPlatform.VOLCANO),
    ("z.ai", ModelPlatform.ZAI),
    ("bigmodel", ModelPlatform.ZHIPU),
    ("gptproto", ModelPlatform.GPTPROTO),
]


class ModelPreset(BaseModel):
    """A model the user can switch to."""

    model_id: str = Field(min_length=1)
    display_name: str
    platform: ModelPlatform
    description: Optional[str] = None
    is_custom: bool = False

    model_config = {"protected_namespaces": ()}

    @property
    def short_name(self) -> str:
        return self.display_name[:15]


def _p(model_id: str, name: str, platform: ModelPlatform, description: str) -> ModelPreset:
    return ModelPreset(
        model_id=model_id, display_name=name, platform=platform, description=description
    )


PRESETS: list[ModelPreset] = [
    _p("claude-opus-4-6", "Claude Opus 4.6", ModelPlatform.ANTHROPIC, "Most capable Opus"),
    _p("claude-sonnet-4-6", "Claude Sonnet 4.6", ModelPlatform.ANTHROPIC, "Balanced Sonnet"),
    _p("claude-haiku-4-5", "Claude Haiku 4.5", ModelPlatform.ANTHROPIC, "Fast Haiku"),
    _p("anthropic/claude-sonnet-4", "Claude Sonnet 4 (OR)", ModelPlatform.OPENROUTER, "Via OpenRouter"),
    _p("openai/gpt-4o", "GPT-4o", ModelPlatform.OPENROUTER, "OpenAI GPT-4o"),
    _p("google/gemini-pro-1.5", "Gemini Pro 1.5", ModelPlatform.OPENROUTER, "Google Gemini Pro"),
    _p("deepseek-ai/DeepSeek-V3", "DeepSeek V3", ModelPlatform.SILICONFLOW, "DeepSeek general model"),
    _p("deepseek-ai/DeepSeek-R1", "DeepSeek R1", ModelPlatform.SILICONFLOW, "DeepSeek reasoning model"),
    _p("Qwen/Qwen2.5-72B-Instruct", "Qwen 2.5 72B", ModelPlatform.SILICONFLOW, "Qwen 72B"),
    _p("doubao-pro-128k", "Doubao Pro 128K", ModelPlatform.VOLCANO, "Long context"),
    _p("doubao-lite-32k", "Doubao Lite 32K", ModelPlatform.VOLCANO, "Lightweight"),
    _p("glm-4.7", "GLM-4.7", ModelPlatform.ZAI, "GLM 4.7"),
    _p("glm-4.5-air", "GLM-4.5 Air", ModelPlatform.ZAI, "GLM lightweight"),
    _p("glm-5", "GLM-5", ModelPlatform.ZHIPU, "Latest GLM"),
    _p("glm-4-flash", "GLM-4 Flash", ModelPlatform.ZHIPU, "Fast GLM"),
    _p("gpt-5.2", "GPT-5.2", ModelPlatform.GPTPROTO, "OpenAI GPT-5.2"),
    _p("gemini-2.5-pro", "Gemini 2.5 Pro", ModelPlatform.GPTPROTO, "Google Gemini 2.5 Pro"),
]


def presets_for(platform: ModelPlatform) -> list[ModelPreset]:
    return [p for p in PRESETS if p.platform is platform]


def find_preset(model_id: str, platform: Optional[ModelPlatform] = None) -> Optional[ModelPreset]:
    """First preset with this model id, preferring `platform` when given.

    The same id can exist on several platforms (e.g. claude-opus-4-6).
    """
    matches = [p for p in PRESETS if p.model_id == model_id]
    if platform is not None:
        for preset in matches:
            if preset.platform is platform:
                return preset
    return matches[0] if matches else None
