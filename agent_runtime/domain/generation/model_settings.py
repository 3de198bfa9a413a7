"""
Per-provider model defaults.

The runtime never talks to a provider directly; these values only parameterise
the model invoker (token budgets, stop sequences, model names per class).
"""
from typing import Dict, List, Optional, Union
from pydantic import BaseModel, Field

from agent_runtime.domain.exceptions import UnknownModelProviderError
from agent_runtime.domain.models.character import ModelClass, ModelProviderName


class GenerationSettings(BaseModel):
    stop: List[str] = Field(default_factory=list)
    max_input_tokens: int = 128000
    max_output_tokens: int = 8192
    temperature: float = 0.7
    frequency_penalty: float = 0.0
    presence_penalty: float = 0.0
    repetition_penalty: Optional[float] = None


class ProviderModels(BaseModel):
    """Endpoint, sampling settings and model name per class for one provider"""
    endpoint: Optional[str] = None
    settings: GenerationSettings = Field(default_factory=GenerationSettings)
    model: Dict[ModelClass, str] = Field(default_factory=dict)


_PENALISED = dict(frequency_penalty=0.4, presence_penalty=0.4, temperature=0.7)
_HERMES_GGUF = "NousResearch/Hermes-3-Llama-3.1-8B-GGUF/resolve/main/Hermes-3-Llama-3.1-8B.Q8_0.gguf?download=true"

MODELS: Dict[ModelProviderName, ProviderModels] = {
    ModelProviderName.OPENAI: ProviderModels(
        endpoint="https://api.openai.com/v1",
        settings=GenerationSettings(temperature=0.6),
        model={
            ModelClass.SMALL: "gpt-4o-mini",
            ModelClass.MEDIUM: "gpt-4o",
            ModelClass.LARGE: "gpt-4o",
            ModelClass.EMBEDDING: "text-embedding-3-small",
            ModelClass.IMAGE: "dall-e-3",
        },
    ),
    ModelProviderName.ANTHROPIC: ProviderModels(
        endpoint="https://api.anthropic.com/v1",
        settings=GenerationSettings(max_input_tokens=200000, **_PENALISED),
        model={
            ModelClass.SMALL: "claude-3-5-haiku-20241022",
            ModelClass.MEDIUM: "claude-3-5-sonnet-20241022",
            ModelClass.LARGE: "claude-3-5-sonnet-20241022",
        },
    ),
    ModelProviderName.CLAUDE_VERTEX: ProviderModels(
        endpoint="https://api.anthropic.com/v1",
        settings=GenerationSettings(max_input_tokens=200000, **_PENALISED),
        model={
            ModelClass.SMALL: "claude-3-5-sonnet-20241022",
            ModelClass.MEDIUM: "claude-3-5-sonnet-20241022",
            ModelClass.LARGE: "claude-3-opus-20240229",
        },
    ),
    ModelProviderName.GROK: ProviderModels(
        endpoint="https://api.x.ai/v1",
        settings=GenerationSettings(**_PENALISED),
        model={
            ModelClass.SMALL: "grok-beta",
            ModelClass.MEDIUM: "grok-beta",
            ModelClass.LARGE: "grok-beta",
            ModelClass.EMBEDDING: "grok-beta",
        },
    ),
    ModelProviderName.GROQ: ProviderModels(
        endpoint="https://api.groq.com/openai/v1",
        settings=GenerationSettings(max_output_tokens=8000, **_PENALISED),
        model={
            ModelClass.SMALL: "llama-3.1-8b-instant",
            ModelClass.MEDIUM: "llama-3.1-70b-versatile",
            ModelClass.LARGE: "llama-3.2-90b-text-preview",
            ModelClass.EMBEDDING: "llama-3.1-8b-instant",
        },
    ),
    ModelProviderName.LLAMACLOUD: ProviderModels(
        endpoint="https://api.together.ai/v1",
        settings=GenerationSettings(repetition_penalty=0.4, temperature=0.7),
        model={
            ModelClass.SMALL: "meta-llama/Llama-3.2-3B-Instruct-Turbo",
            ModelClass.MEDIUM: "meta-llama-3.1-8b-instruct",
            ModelClass.LARGE: "meta-llama/Meta-Llama-3.1-405B-Instruct-Turbo",
            ModelClass.EMBEDDING: "togethercomputer/m2-bert-80M-32k-retrieval",
            ModelClass.IMAGE: "black-forest-labs/FLUX.1-schnell",
        },
    ),
    ModelProviderName.LLAMALOCAL: ProviderModels(
        settings=GenerationSettings(
            stop=["<|eot_id|>", "<|eom_id|>"],
            max_input_tokens=32768,
            repetition_penalty=0.4,
            temperature=0.7,
        ),
        model={
            ModelClass.SMALL: _HERMES_GGUF,
            ModelClass.MEDIUM: _HERMES_GGUF,
            ModelClass.LARGE: _HERMES_GGUF,
            ModelClass.EMBEDDING: "togethercomputer/m2-bert-80M-32k-retrieval",
        },
    ),
    ModelProviderName.GOOGLE: ProviderModels(
        settings=GenerationSettings(**_PENALISED),
        model={
            ModelClass.SMALL: "gemini-1.5-flash-latest",
            ModelClass.MEDIUM: "gemini-1.5-flash-latest",
            ModelClass.LARGE: "gemini-1.5-pro-latest",
            ModelClass.EMBEDDING: "text-embedding-004",
        },
    ),
    ModelProviderName.REDPILL: ProviderModels(
        endpoint="https://api.red-pill.ai/v1",
        settings=GenerationSettings(temperature=0.6),
        model={
            ModelClass.SMALL: "gpt-4o-mini",
            ModelClass.MEDIUM: "gpt-4o",
            ModelClass.LARGE: "gpt-4o",
            ModelClass.EMBEDDING: "text-embedding-3-small",
        },
    ),
    ModelProviderName.OPENROUTER: ProviderModels(
        endpoint="https://openrouter.ai/api/v1",
        settings=GenerationSettings(**_PENALISED),
        model={
            ModelClass.SMALL: "nousresearch/hermes-3-llama-3.1-405b",
            ModelClass.MEDIUM: "nousresearch/hermes-3-llama-3.1-405b",
            ModelClass.LARGE: "nousresearch/hermes-3-llama-3.1-405b",
            ModelClass.EMBEDDING: "text-embedding-3-small",
        },
    ),
    ModelProviderName.OLLAMA: ProviderModels(
        endpoint="http://localhost:11434",
        settings=GenerationSettings(**_PENALISED),
        model={
            ModelClass.SMALL: "llama3.2",
            ModelClass.MEDIUM: "hermes3",
            ModelClass.LARGE: "hermes3:70b",
            ModelClass.EMBEDDING: "mxbai-embed-large",
        },
    ),
    ModelProviderName.HEURIST: ProviderModels(
        endpoint="https://llm-gateway.heurist.xyz",
        settings=GenerationSettings(repetition_penalty=0.4, temperature=0.7),
        model={
            ModelClass.SMALL: "meta-llama/llama-3-70b-instruct",
            ModelClass.MEDIUM: "meta-llama/llama-3-70b-instruct",
            ModelClass.LARGE: "meta-llama/llama-3.1-405b-instruct",
            ModelClass.IMAGE: "PepeXL",
        },
    ),
}


def get_provider_models(provider: Union[str, ModelProviderName]) -> ProviderModels:
    try:
        return MODELS[ModelProviderName(provider)]
    except (ValueError, KeyError):
        raise UnknownModelProviderError(str(getattr(provider, "value", provider)))
