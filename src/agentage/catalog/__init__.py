# Model provider catalog — configured providers, validation and model lists.
# Created: 2026-02-21

from agentage.catalog.models import ChatModelInfo, ModelInfo, ModelProviderConfig
from agentage.catalog.registry import ModelProviderRegistry
from agentage.catalog.validation import validate_token

__all__ = [
    "ChatModelInfo",
    "ModelInfo",
    "ModelProviderConfig",
    "ModelProviderRegistry",
    "validate_token",
]
