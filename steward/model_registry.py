"""
Known model backends and local/cloud classification.

Local models are reachable without leaving the user's machine or network
(containerized or on-device); cloud models only through an external API.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum


class ModelLocation(Enum):
    LOCAL = "local"
    CLOUD = "cloud"


class Provider(Enum):
    """Backend that serves a model."""

    LOCAL_DOCKER = "local_docker"
    ANTHROPIC = "anthropic"
    OPENAI = "openai"
    PERPLEXITY = "perplexity"


@dataclass(frozen=True)
class ModelInfo:
    name: str  # Shorthand used in routing decisions
    location: ModelLocation
    provider: Provider
    api_model: str  # Identifier sent to the backend

    @property
    def is_local(self) -> bool:
        return self.location is ModelLocation.LOCAL


# Model registry with provider info
MODEL_REGISTRY: dict[str, ModelInfo] = {
    # Local containerized models
    "smollm3": ModelInfo("smollm3", ModelLocation.LOCAL, Provider.LOCAL_DOCKER, "ai/smollm3"),
    "smollm3-1.7b": ModelInfo(
        "smollm3-1.7b", ModelLocation.LOCAL, Provider.LOCAL_DOCKER, "ai/smollm3:1.7B"
    ),
    "smollm3-8b": ModelInfo(
        "smollm3-8b", ModelLocation.LOCAL, Provider.LOCAL_DOCKER, "ai/smollm3:8B"
    ),
    "codellama": ModelInfo("codellama", ModelLocation.LOCAL, Provider.LOCAL_DOCKER, "ai/codellama"),
    "llama": ModelInfo("llama", ModelLocation.LOCAL, Provider.LOCAL_DOCKER, "ai/llama3.2"),
    "mistral": ModelInfo("mistral", ModelLocation.LOCAL, Provider.LOCAL_DOCKER, "ai/mistral"),
    # Cloud models
    "claude-3.5-sonnet": ModelInfo(
        "claude-3.5-sonnet", ModelLocation.CLOUD, Provider.ANTHROPIC, "claude-3-5-sonnet-latest"
    ),
    "gpt-4": ModelInfo("gpt-4", ModelLocation.CLOUD, Provider.OPENAI, "gpt-4"),
    "perplexity": ModelInfo(
        "perplexity", ModelLocation.CLOUD, Provider.PERPLEXITY, "sonar"
    ),
}

# Name fragments that mark a model as local when no registry is supplied
LOCAL_MODEL_MARKERS: tuple[str, ...] = ("smol", "llama", "mistral", "local", "codellama")


def is_local_model(name: str | None, registry: Mapping[str, ModelInfo] | None = None) -> bool:
    """
    Check whether a model runs locally.

    With a registry, only models registered as local count. Without one, a
    case-insensitive substring match against LOCAL_MODEL_MARKERS is used.
    """
    if not name:
        return False
    if registry is not None:
        info = registry.get(name)
        return info is not None and info.is_local
    lowered = name.lower()
    return any(marker in lowered for marker in LOCAL_MODEL_MARKERS)


def adapter_type(name: str | None) -> str:
    """Adapter family for a model name: local, cloud or unknown."""
    if not name:
        return "unknown"
    return "local" if is_local_model(name) else "cloud"


def resolve_model(name: str) -> ModelInfo:
    """Resolve a model shorthand, guessing the provider for unregistered names."""
    if name in MODEL_REGISTRY:
        return MODEL_REGISTRY[name]
    if is_local_model(name):
        return ModelInfo(name, ModelLocation.LOCAL, Provider.LOCAL_DOCKER, name)
    if name.startswith("claude"):
        return ModelInfo(name, ModelLocation.CLOUD, Provider.ANTHROPIC, name)
    if name.startswith(("sonar", "perplexity")):
        return ModelInfo(name, ModelLocation.CLOUD, Provider.PERPLEXITY, name)
    return ModelInfo(name, ModelLocation.CLOUD, Provider.OPENAI, name)
