"""Resilient structured-generation client."""

from fishcap.generation.gateway import CompletionGateway, LiteLLMGateway
from fishcap.generation.models import (
    AttemptOutcome,
    AttemptRecord,
    CompletionCall,
    ConversationTurn,
    ErrorCode,
    GenerationFailure,
    GenerationMeta,
    GenerationRequest,
    GenerationResult,
    GenerationSuccess,
)
from fishcap.generation.service import StructuredGenerationClient

__all__ = [
    "AttemptOutcome",
    "AttemptRecord",
    "CompletionCall",
    "CompletionGateway",
    "ConversationTurn",
    "ErrorCode",
    "GenerationFailure",
    "GenerationMeta",
    "GenerationRequest",
    "GenerationResult",
    "GenerationSuccess",
    "LiteLLMGateway",
    "StructuredGenerationClient",
]
